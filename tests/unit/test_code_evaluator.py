"""Tests for the heuristic code evaluator."""

from cs_tutor.agents.code_evaluator import evaluate_code, score_tier


STRONG_PYTHON = '''
# Ask for numbers until the user types stop
def read_numbers():
    numbers = []
    while True:
        value = input("Number: ")
        if value == "stop":
            break
        try:
            numbers.append(int(value))
        except ValueError:
            print("Not a number")
    return numbers
'''


class TestEvaluateCode:

    def test_empty_code_scores_minimum(self):
        result = evaluate_code("   \n\n")
        assert result.score == 1
        assert result.line_count == 0
        assert result.topics == []

    def test_single_line(self):
        result = evaluate_code('print("hi")')
        assert result.score == 3
        assert result.tier == "emerging"
        assert result.topics == ["Sequence"]

    def test_strong_solution_hits_every_feature(self):
        result = evaluate_code(STRONG_PYTHON)
        assert result.score == 10
        assert result.tier == "strong"
        assert result.improvements == []
        assert set(result.topics) == {"Sequence", "Selection", "Iteration", "Subroutines", "Error Handling"}

    def test_missing_features_become_improvements(self):
        code = "x = 1\ny = 2\nprint(x + y)"
        result = evaluate_code(code)
        assert result.score == 4
        assert any("comments" in item for item in result.improvements)
        assert any("functions" in item for item in result.improvements)

    def test_javascript_is_recognised(self):
        code = "// sum an array\nfunction total(xs) {\n  let t = 0;\n  for (const x of xs) { t += x; }\n  return t;\n}"
        result = evaluate_code(code)
        assert "Iteration" in result.topics
        assert "Subroutines" in result.topics

    def test_score_is_always_in_range(self):
        for code in ["", "a", STRONG_PYTHON * 5]:
            assert 1 <= evaluate_code(code).score <= 10


class TestScoreTier:

    def test_boundaries(self):
        assert score_tier(8) == "strong"
        assert score_tier(7) == "developing"
        assert score_tier(5) == "developing"
        assert score_tier(4) == "emerging"
