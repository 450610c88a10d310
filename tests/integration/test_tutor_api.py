"""Integration tests for POST /api/tutor."""

from jose import jwt

from cs_tutor.auth import create_access_token
from cs_tutor.config import settings
from cs_tutor.exceptions import LLMServiceError
from cs_tutor.main import app, get_llm_service, get_rate_limiter
from cs_tutor.models.agent import ModelResponse
from cs_tutor.models.entities import ChatMessage, DailyUsage
from cs_tutor.services.llm_service import LLMService
from cs_tutor.services.rate_limiter import RateLimiter
from tests.fakes import ScriptedLLM, SlowLLM, auth_headers, tool_call


EXPLAIN = {"message": "Explain loops", "level": "KS3", "topic": "Programming Basics", "mode": "Explain"}


def usage_rows(db_session, user_id="student-1"):
    return db_session.query(DailyUsage).filter(DailyUsage.user_id == user_id).all()


class TestTutorSuccess:

    def test_free_user_explain(self, client, db_session):
        response = client.post("/api/tutor", json=EXPLAIN, headers=auth_headers())

        assert response.status_code == 200
        assert response.json() == {"reply": "Loops repeat a set of instructions."}

        [row] = usage_rows(db_session)
        assert row.turns == 1
        messages = db_session.query(ChatMessage).order_by(ChatMessage.id).all()
        assert [(m.role, m.content) for m in messages] == [
            ("user", "Explain loops"),
            ("assistant", "Loops repeat a set of instructions."),
        ]

    def test_request_is_normalized(self, client, fake_llm, db_session):
        body = {"message": "hi", "level": "Year 9", "topic": "Astrophysics", "mode": "Lecture"}
        response = client.post("/api/tutor", json=body, headers=auth_headers())

        assert response.status_code == 200
        prompt = fake_llm.calls[0]["turn"].system_prompt
        assert "Level: KS3" in prompt
        assert "Topic: Programming Basics" in prompt
        assert "Mode: Explain" in prompt
        assert db_session.query(ChatMessage).first().topic == "Programming Basics"

    def test_paid_user_quiz(self, client, paid_user):
        response = client.post(
            "/api/tutor",
            json={**EXPLAIN, "mode": "Quiz"},
            headers=auth_headers(paid_user.id),
        )
        assert response.status_code == 200

    def test_agent_uses_tools(self, client, db_session, paid_user):
        app.dependency_overrides[get_llm_service] = lambda: ScriptedLLM([
            ModelResponse(response_id="r1", tool_calls=[tool_call("generate_quiz", count=3)]),
            ModelResponse(response_id="r2", text="1. What is a loop?"),
        ])
        response = client.post("/api/tutor", json={**EXPLAIN, "mode": "Quiz"}, headers=auth_headers(paid_user.id))
        assert response.json() == {"reply": "1. What is a loop?"}

    def test_agent_failure_falls_back_to_direct_reply(self, client):
        llm = ScriptedLLM([LLMServiceError("agent down"), ModelResponse(text="Direct reply.")])
        app.dependency_overrides[get_llm_service] = lambda: llm

        response = client.post("/api/tutor", json=EXPLAIN, headers=auth_headers())

        assert response.status_code == 200
        assert response.json() == {"reply": "Direct reply."}

    def test_empty_reply_placeholder(self, client):
        app.dependency_overrides[get_llm_service] = lambda: ScriptedLLM([ModelResponse(response_id="r1")])
        response = client.post("/api/tutor", json=EXPLAIN, headers=auth_headers())
        assert response.json() == {"reply": "(No output returned)"}


class TestEntitlements:

    def test_daily_limit(self, client, db_session):
        for _ in range(settings.free_daily_limit):
            assert client.post("/api/tutor", json=EXPLAIN, headers=auth_headers()).status_code == 200

        response = client.post("/api/tutor", json=EXPLAIN, headers=auth_headers())

        assert response.status_code == 402
        body = response.json()
        assert body["code"] == "LIMIT_REACHED"
        assert body["billing"]["daily_used"] == settings.free_daily_limit
        assert body["billing"]["daily_remaining"] == 0
        [row] = usage_rows(db_session)
        assert row.turns == settings.free_daily_limit

    def test_paid_mode_denied_for_free_user(self, client, fake_llm, db_session):
        response = client.post("/api/tutor", json={**EXPLAIN, "mode": "Mark"}, headers=auth_headers())

        assert response.status_code == 402
        assert response.json()["code"] == "PAID_FEATURE"
        assert response.json()["feature"] == "mode:Mark"
        assert fake_llm.calls == []
        assert usage_rows(db_session) == []

    def test_paid_user_is_not_limited(self, client, paid_user):
        for _ in range(settings.free_daily_limit + 2):
            response = client.post("/api/tutor", json=EXPLAIN, headers=auth_headers(paid_user.id))
            assert response.status_code == 200

    def test_failed_generation_costs_nothing(self, client, db_session):
        llm = ScriptedLLM([LLMServiceError("first"), LLMServiceError("second")])
        app.dependency_overrides[get_llm_service] = lambda: llm

        response = client.post("/api/tutor", json=EXPLAIN, headers=auth_headers())

        assert response.status_code == 500
        assert response.json() == {"error": "LLM failed", "details": "second"}
        assert usage_rows(db_session) == []
        assert db_session.query(ChatMessage).count() == 0


class TestRequestErrors:

    def test_missing_message(self, client):
        response = client.post("/api/tutor", json={"level": "KS3"}, headers=auth_headers())
        assert response.status_code == 400
        assert response.json() == {"error": "Missing 'message' string"}

    def test_blank_message(self, client):
        response = client.post("/api/tutor", json={"message": "   "}, headers=auth_headers())
        assert response.status_code == 400

    def test_no_body(self, client):
        response = client.post("/api/tutor", headers=auth_headers())
        assert response.status_code == 400

    def test_malformed_json(self, client):
        response = client.post(
            "/api/tutor",
            content=b"{not json",
            headers={**auth_headers(), "Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request body"

    def test_message_checked_before_entitlements(self, client):
        response = client.post("/api/tutor", json={"mode": "Quiz"}, headers=auth_headers())
        assert response.status_code == 400


class TestAuthentication:

    def test_missing_token(self, client):
        response = client.post("/api/tutor", json=EXPLAIN)
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    def test_garbage_token(self, client):
        response = client.post("/api/tutor", json=EXPLAIN, headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert response.json()["error"].startswith("Invalid token")

    def test_expired_token(self, client):
        token = create_access_token("student-1", expires_in_seconds=-60)
        response = client.post("/api/tutor", json=EXPLAIN, headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_wrong_secret(self, client):
        token = jwt.encode({"sub": "student-1"}, "some-other-secret", algorithm="HS256")
        response = client.post("/api/tutor", json=EXPLAIN, headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401


class TestRateLimiting:

    def test_limit_applies_before_auth(self, client):
        tight = RateLimiter(window_seconds=60, max_requests=1)
        app.dependency_overrides[get_rate_limiter] = lambda: tight

        assert client.post("/api/tutor", json=EXPLAIN).status_code == 401
        response = client.post("/api/tutor", json=EXPLAIN)

        assert response.status_code == 429
        assert int(response.headers["retry-after"]) >= 1
        assert response.json()["retry_after"] >= 1

    def test_keyed_per_user(self, client):
        tight = RateLimiter(window_seconds=60, max_requests=1)
        app.dependency_overrides[get_rate_limiter] = lambda: tight

        assert client.post("/api/tutor", json=EXPLAIN, headers=auth_headers("a")).status_code == 200
        assert client.post("/api/tutor", json=EXPLAIN, headers=auth_headers("b")).status_code == 200
        assert client.post("/api/tutor", json=EXPLAIN, headers=auth_headers("a")).status_code == 429


class TestServerErrors:

    def test_deadline(self, client, monkeypatch, db_session):
        monkeypatch.setattr(settings, "request_timeout_ms", 50)
        app.dependency_overrides[get_llm_service] = lambda: SlowLLM(delay=1.0)

        response = client.post("/api/tutor", json=EXPLAIN, headers=auth_headers())

        assert response.status_code == 504
        assert "timed out" in response.json()["error"]
        assert usage_rows(db_session) == []

    def test_missing_api_key(self, client, monkeypatch):
        monkeypatch.setattr(settings, "openai_api_key", None)
        app.dependency_overrides[get_llm_service] = lambda: LLMService(api_key=None, provider="openai")

        response = client.post("/api/tutor", json=EXPLAIN, headers=auth_headers())

        assert response.status_code == 500
        assert response.json() == {"error": "OPENAI_API_KEY is not configured"}
