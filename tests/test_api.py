"""HTTP surface: the router against a real service with a scripted model."""

import pytest
from fastapi.testclient import TestClient
from openai import OpenAIError

from aira.deps import get_service
from aira.llm import prompts
from conftest import BUDGET_JSON, completion

HEADERS = {"X-Account-Id": "7"}


@pytest.fixture
def app(service):
    from main import app as _app

    _app.dependency_overrides[get_service] = lambda: service
    yield _app
    _app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


def _start(client):
    resp = client.post("/api/v1/conversations/start", headers=HEADERS)
    assert resp.status_code == 200
    return resp.json()


class TestConversationEndpoints:
    def test_start(self, client):
        data = _start(client)
        assert data["session_id"]
        assert data["message"] == "hai! 👋"

    def test_start_requires_account(self, client):
        resp = client.post("/api/v1/conversations/start")
        assert resp.status_code == 422

    def test_start_twice_conflicts(self, client):
        _start(client)
        resp = client.post("/api/v1/conversations/start", headers=HEADERS)
        assert resp.status_code == 409
        assert "active conversation" in resp.json()["detail"]

    def test_send_message(self, client, llm):
        session_id = _start(client)["session_id"]
        llm.chat.completions.create.return_value = completion("tinggal dimana?")

        resp = client.post(
            f"/api/v1/conversations/{session_id}/messages", json={"message": "gaji 5jt"}
        )

        assert resp.status_code == 200
        data = resp.json()
        assert data["assistant_message"] == "tinggal dimana?"
        assert data["completed"] is False
        assert data["budget_generated"] is False
        assert data["budgets"] == []

    def test_send_message_generates_budget(self, client, llm):
        session_id = _start(client)["session_id"]
        llm.chat.completions.create.return_value = completion(BUDGET_JSON)

        resp = client.post(
            f"/api/v1/conversations/{session_id}/messages", json={"message": "oke buatin aja"}
        )

        data = resp.json()
        assert data["completed"] is True
        assert data["budget_generated"] is True
        assert len(data["budgets"]) == 6
        assert data["budgets"][0]["period"] == "monthly"

        budgets = client.get("/api/v1/budgets", headers=HEADERS).json()
        assert {b["category"] for b in budgets} >= {"Makan", "Tabungan"}

    def test_generation_failure_is_reported(self, client, llm):
        session_id = _start(client)["session_id"]
        llm.chat.completions.create.side_effect = OpenAIError("down")

        resp = client.post(
            f"/api/v1/conversations/{session_id}/messages", json={"message": "oke buatin aja"}
        )

        assert resp.status_code == 502
        data = resp.json()
        assert data["assistant_message"] == prompts.GENERATION_FAILED_REPLY
        assert data["completed"] is False

    def test_invalid_budget_is_unprocessable(self, client, llm):
        session_id = _start(client)["session_id"]
        llm.chat.completions.create.return_value = completion("nggak ada json")

        resp = client.post(
            f"/api/v1/conversations/{session_id}/messages", json={"message": "oke buatin aja"}
        )

        assert resp.status_code == 422
        assert resp.json()["assistant_message"] == prompts.GENERATION_FAILED_REPLY

    def test_empty_message_rejected(self, client):
        session_id = _start(client)["session_id"]
        resp = client.post(f"/api/v1/conversations/{session_id}/messages", json={"message": ""})
        assert resp.status_code == 422

    def test_unknown_session(self, client):
        resp = client.post("/api/v1/conversations/nope/messages", json={"message": "halo"})
        assert resp.status_code == 404
        assert client.get("/api/v1/conversations/nope/history").status_code == 404
        assert client.post("/api/v1/conversations/nope/reset").status_code == 404

    def test_history(self, client, llm):
        session_id = _start(client)["session_id"]
        llm.chat.completions.create.return_value = completion("siap dicatat")
        client.post(f"/api/v1/conversations/{session_id}/messages", json={"message": "halo"})

        resp = client.get(f"/api/v1/conversations/{session_id}/history")

        assert resp.status_code == 200
        roles = [m["role"] for m in resp.json()["messages"]]
        assert roles == ["assistant", "user", "assistant"]

    def test_reset(self, client, llm):
        session_id = _start(client)["session_id"]
        llm.chat.completions.create.return_value = completion("halo lagi!")

        resp = client.post(f"/api/v1/conversations/{session_id}/reset")

        assert resp.status_code == 200
        data = resp.json()
        assert data["new_session_id"] != session_id
        assert data["greeting"] == "halo lagi!"

        # the old token no longer accepts turns
        old = client.post(
            f"/api/v1/conversations/{session_id}/messages", json={"message": "halo"}
        )
        assert old.status_code == 409
