"""HTTP tests for /history, /message and /health through the Flask test client."""

import pytest

from config import TestConfig
from ragchat import create_app
from ragchat.errors import ConfigError, EmptyCompletion, UpstreamUnavailable
from ragchat.services import chunk_store

GREETING_JSON = '{"intent": "GREETING", "response": "Hi! How can I help you today?"}'


def _post(client, **body):
    return client.post("/message", json=body)


class TestHistory:
    def test_requires_session_id(self, client):
        assert client.get("/history").status_code == 400
        assert client.get("/history?sessionId=").status_code == 400

    def test_empty_session(self, client):
        resp = client.get("/history?sessionId=nobody")
        assert resp.status_code == 200
        assert resp.get_json() == []

    def test_lists_messages_in_order(self, client, patched_service):
        _post(client, text="first", sessionId="s1")
        _post(client, text="second", sessionId="s1")
        _post(client, text="elsewhere", sessionId="s2")

        history = client.get("/history?sessionId=s1").get_json()

        assert [(m["role"], m["text"]) for m in history] == [
            ("user", "first"), ("model", "stub answer"),
            ("user", "second"), ("model", "stub answer"),
        ]
        assert set(history[0]) == {"id", "sessionId", "role", "text", "createdAt"}
        assert all(m["sessionId"] == "s1" for m in history)

    def test_session_id_is_kept_verbatim(self, client, patched_service):
        _post(client, text="hello", sessionId=" s1 ")
        _post(client, text="other", sessionId="s1")

        padded = client.get("/history", query_string={"sessionId": " s1 "}).get_json()
        plain = client.get("/history", query_string={"sessionId": "s1"}).get_json()

        assert [m["text"] for m in padded] == ["hello", "stub answer"]
        assert all(m["sessionId"] == " s1 " for m in padded)
        assert [m["text"] for m in plain] == ["other", "stub answer"]

    def test_whitespace_session_id_rejected(self, client):
        assert client.get("/history", query_string={"sessionId": "   "}).status_code == 400


class TestPostMessage:
    @pytest.mark.parametrize("body", [
        {"sessionId": "s1"},
        {"text": "hi"},
        {"text": "", "sessionId": "s1"},
        {"text": "   ", "sessionId": "s1"},
        {"text": "hi", "sessionId": "s1", "isEdit": True},
        {"text": "hi", "sessionId": "s1", "isEdit": True, "messageId": {"a": 1}},
        {"text": "hi", "sessionId": "s1", "isEdit": True, "messageId": 42},
        {"text": "hi", "sessionId": "s1", "isEdit": True, "messageId": "  "},
    ])
    def test_missing_fields(self, client, patched_service, body):
        resp = _post(client, **body)
        assert resp.status_code == 400
        assert "error" in resp.get_json()
        assert patched_service.generate_calls == []

    def test_non_json_body(self, client, patched_service):
        resp = client.post("/message", data="text=hi", content_type="text/plain")
        assert resp.status_code == 400

    def test_greeting(self, client, patched_service):
        patched_service.classify_response = GREETING_JSON

        resp = _post(client, text="hi", sessionId="s1")

        assert resp.status_code == 200
        data = resp.get_json()
        assert data["aiMessage"]["text"] == "Hi! How can I help you today?"
        assert data["userMessage"]["text"] == "hi"
        assert patched_service.embed_calls == []

    def test_document_query(self, app, client, patched_service):
        chunk_store.insert_chunk("chunk_1_0", "Employees get 20 days of leave.", [1.0, 0.0])
        patched_service.answer = "You get 20 days."

        resp = _post(client, text="What is the leave policy?", sessionId="s2")

        assert resp.status_code == 200
        assert resp.get_json()["aiMessage"]["text"] == "You get 20 days."
        assert len(patched_service.answer_calls) == 1
        assert "Employees get 20 days of leave." in patched_service.answer_calls[0][0]

    def test_edit(self, client, patched_service):
        first = _post(client, text="U1", sessionId="s3").get_json()
        _post(client, text="U2", sessionId="s3")
        patched_service.answer = "A1 prime"

        resp = _post(client, text="rephrased U1", sessionId="s3", isEdit=True,
                     messageId=first["userMessage"]["id"])

        assert resp.status_code == 200
        assert resp.get_json() == {"success": True}
        history = client.get("/history?sessionId=s3").get_json()
        assert [m["text"] for m in history] == ["rephrased U1", "A1 prime"]
        assert history[0]["createdAt"] == first["userMessage"]["createdAt"]

    def test_foreign_edit_is_404(self, client, patched_service):
        owned = _post(client, text="mine", sessionId="owner").get_json()

        resp = _post(client, text="hijack", sessionId="other", isEdit=True,
                     messageId=owned["userMessage"]["id"])

        assert resp.status_code == 404
        assert [m["text"] for m in client.get("/history?sessionId=owner").get_json()] == ["mine", "stub answer"]
        assert client.get("/history?sessionId=other").get_json() == []

    def test_upstream_failure_is_502_and_user_message_kept(self, client, patched_service):
        patched_service.answer = UpstreamUnavailable("Generation API failed", status=503)

        resp = _post(client, text="What is the leave policy?", sessionId="s4")

        assert resp.status_code == 502
        assert resp.get_json() == {"error": "Generation API failed"}
        history = client.get("/history?sessionId=s4").get_json()
        assert [m["role"] for m in history] == ["user"]

    def test_empty_completion_is_500(self, client, patched_service):
        patched_service.answer = EmptyCompletion("No text found in AI response")
        resp = _post(client, text="question", sessionId="s5")
        assert resp.status_code == 500


class TestHealth:
    def test_reports_chunk_count(self, app, client):
        chunk_store.insert_chunk("chunk_1_0", "alpha", [1.0])
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json() == {"status": "ok", "chunks": 1}


class TestAppFactory:
    def test_missing_api_key_is_fatal(self):
        class NoKeyConfig(TestConfig):
            LLM_API_KEY = ""

        with pytest.raises(ConfigError):
            create_app(NoKeyConfig)
