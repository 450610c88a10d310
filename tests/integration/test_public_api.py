"""Integration tests for the demo, usage, topics and health endpoints."""

from cs_tutor import __version__
from cs_tutor.config import settings
from cs_tutor.exceptions import LLMServiceError
from cs_tutor.main import app, get_llm_service
from tests.fakes import ScriptedLLM, auth_headers


class TestDemo:

    def test_no_auth_needed(self, client, fake_llm):
        response = client.post("/api/demo", json={"message": "Explain loops"})
        assert response.status_code == 200
        assert response.json() == {"reply": "Loops repeat a set of instructions.", "fallback": False}
        assert [call["caller"] for call in fake_llm.calls] == ["direct_responder"]

    def test_model_failure_serves_fallback(self, client):
        app.dependency_overrides[get_llm_service] = lambda: ScriptedLLM([LLMServiceError("down")])
        response = client.post("/api/demo", json={"message": "Explain loops", "level": "GCSE"})

        assert response.status_code == 200
        body = response.json()
        assert body["fallback"] is True
        assert "Python Programming" in body["reply"]

    def test_missing_message(self, client):
        assert client.post("/api/demo", json={}).status_code == 400


class TestUsage:

    def test_fresh_free_user(self, client):
        response = client.get("/api/usage", headers=auth_headers())
        assert response.status_code == 200
        assert response.json() == {
            "user_id": "student-1",
            "plan": "free",
            "daily_limit": settings.free_daily_limit,
            "daily_used": 0,
            "daily_remaining": settings.free_daily_limit,
        }

    def test_counts_delivered_turns(self, client):
        client.post("/api/tutor", json={"message": "Explain loops"}, headers=auth_headers())
        body = client.get("/api/usage", headers=auth_headers()).json()
        assert body["daily_used"] == 1
        assert body["daily_remaining"] == settings.free_daily_limit - 1

    def test_paid_user(self, client, paid_user):
        body = client.get("/api/usage", headers=auth_headers(paid_user.id)).json()
        assert body["plan"] == "pro"
        assert body["daily_limit"] is None

    def test_requires_auth(self, client):
        assert client.get("/api/usage").status_code == 401


class TestTopics:

    def test_known_level(self, client):
        body = client.get("/api/topics", params={"level": "gcse"}).json()
        assert body["level"] == "GCSE"
        assert "Boolean Logic" in body["topics"]
        assert body["levels"] == ["KS3", "GCSE", "A-Level"]
        assert body["modes"] == ["Explain", "Hint", "Quiz", "Mark"]

    def test_unknown_level_falls_back(self, client):
        assert client.get("/api/topics", params={"level": "PhD"}).json()["level"] == "KS3"


class TestHealth:

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["status"] == "healthy"
        assert body["version"] == __version__
        assert body["database"] == "unconfigured"
        assert isinstance(body["llm_configured"], bool)

    def test_root_health_alias(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["ok"] is True

    def test_unknown_route_is_json(self, client):
        response = client.get("/api/nope")
        assert response.status_code == 404
        assert response.json() == {"error": "Not Found"}
