from datetime import datetime, timezone

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import InlineExecutor, encode, envelope, text_event
from inbox_api.dependencies import get_facebook_client, get_panic_mode, get_store
from inbox_api.main import app
from inbox_api.models import Page, WebhookLog
from inbox_api.services.dispatcher import Dispatcher
from inbox_api.services.facebook_client import FacebookClient
from inbox_api.services.panic_mode import PanicMode
from inbox_api.services.ports import StoreError

ADMIN_HEADERS = {"X-Admin-Token": "test-admin-token"}


class GraphStub:
    def __init__(self, response):
        self.response = response
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return self.response


@pytest.fixture
def graph():
    return GraphStub(httpx.Response(200, json={"recipient_id": "psid-1", "message_id": "m_out"}))


@pytest.fixture
def panic_mode():
    return PanicMode()


@pytest.fixture
def client(store, graph, panic_mode):
    gateway = FacebookClient(
        graph_url="https://graph.test",
        transport=httpx.MockTransport(graph),
        sleep_func=lambda seconds: None,
    )
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_facebook_client] = lambda: gateway
    app.dependency_overrides[get_panic_mode] = lambda: panic_mode
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def conversation_id(store, dedup, session_factory):
    db = session_factory()
    try:
        db.add(Page(tenant_id=1, page_id="1000", page_name="Shop", access_token="page-token", is_active=True))
        db.commit()
    finally:
        db.close()
    dispatcher = Dispatcher(store, store, store, dedup, executor=InlineExecutor())
    dispatcher.process_webhook("facebook", encode(envelope(text_event(mid="m_in", text="Where is my order?"))))
    return store.list_conversations()[0].id


class TestConversations:
    def test_list(self, client, conversation_id):
        response = client.get("/api/conversations", params={"page_id": "1000"})

        assert response.status_code == 200
        body = response.json()
        assert body["code"] == 200
        assert body["message"] == "Success"
        assert [c["id"] for c in body["data"]] == [conversation_id]
        assert body["data"][0]["status"] == "unread"
        assert "access_token" not in body["data"][0]

    def test_messages_mark_conversation_read(self, client, store, conversation_id):
        response = client.get(f"/api/conversations/{conversation_id}/messages")

        assert response.status_code == 200
        data = response.json()["data"]
        assert [m["content"] for m in data] == ["Where is my order?"]
        assert store.get_conversation(conversation_id).status == "read"

    def test_messages_for_unknown_conversation(self, client):
        response = client.get("/api/conversations/999/messages")

        assert response.status_code == 404
        assert response.json()["code"] == 404


class TestReply:
    def test_reply_is_sent_and_stored(self, client, store, graph, conversation_id):
        response = client.post("/api/messages/reply", json={"conversation_id": conversation_id, "text": "On its way"})

        assert response.status_code == 200
        assert response.json()["data"]["platform_message_id"] == "m_out"
        assert len(graph.requests) == 1
        assert graph.requests[0].url.params["access_token"] == "page-token"
        messages = store.list_messages(conversation_id)
        assert [(m.sender_type, m.sender_id, m.content) for m in messages][-1] == ("agent", "admin", "On its way")

    def test_empty_text(self, client, conversation_id):
        response = client.post("/api/messages/reply", json={"conversation_id": conversation_id, "text": ""})

        assert response.status_code == 400
        assert response.json()["code"] == 400

    def test_token_expiry_deactivates_page(self, client, store, graph, conversation_id):
        graph.response = httpx.Response(
            400,
            json={"error": {"message": "Error validating access token", "type": "OAuthException", "code": 190}},
        )

        response = client.post("/api/messages/reply", json={"conversation_id": conversation_id, "text": "Hi"})

        assert response.status_code == 400
        assert "reconnect" in response.json()["message"]
        assert len(graph.requests) == 1
        assert store.get_page("1000").is_active is False

        # A disconnected page is refused before reaching the Graph API.
        again = client.post("/api/messages/reply", json={"conversation_id": conversation_id, "text": "Hi"})
        assert again.status_code == 400
        assert len(graph.requests) == 1

    def test_rate_limited(self, client, graph, conversation_id):
        graph.response = httpx.Response(400, json={"error": {"message": "Too many calls", "code": 613}})

        response = client.post("/api/messages/reply", json={"conversation_id": conversation_id, "text": "Hi"})

        assert response.status_code == 429
        assert "Too many calls" not in response.json()["message"]


class TestPanicMode:
    def test_requires_admin_token(self, client):
        assert client.get("/api/panic-mode").status_code == 401
        assert client.post("/api/panic-mode", json={"active": True}, headers={"X-Admin-Token": "x"}).status_code == 401

    def test_enable_blocks_replies(self, client, graph, conversation_id):
        response = client.post(
            "/api/panic-mode",
            json={"active": True, "reason": "bad template", "actor": "ops"},
            headers=ADMIN_HEADERS,
        )
        assert response.status_code == 200
        assert response.json()["data"]["active"] is True
        assert response.json()["data"]["activated_by"] == "ops"

        reply = client.post("/api/messages/reply", json={"conversation_id": conversation_id, "text": "Hi"})
        assert reply.status_code == 503
        assert graph.requests == []

        client.post("/api/panic-mode", json={"active": False, "actor": "ops"}, headers=ADMIN_HEADERS)
        status = client.get("/api/panic-mode", headers=ADMIN_HEADERS).json()["data"]
        assert status["active"] is False


class TestPageActivation:
    def test_reactivate_page(self, client, store, conversation_id):
        store.deactivate_page("1000")

        response = client.post("/api/pages/1000/activate", headers=ADMIN_HEADERS)

        assert response.status_code == 200
        assert store.get_page("1000").is_active is True

    def test_unknown_page(self, client):
        response = client.post("/api/pages/missing/activate", headers=ADMIN_HEADERS)
        assert response.status_code == 404

    def test_requires_admin_token(self, client):
        assert client.post("/api/pages/1000/activate").status_code == 401


class TestSyncStatus:
    def test_counts_backlog(self, client, store, conversation_id):
        store.save_log(
            WebhookLog(platform="facebook", payload=b"{}", status="pending", created_at=datetime.now(timezone.utc))
        )

        response = client.get("/api/sync/status")

        assert response.status_code == 200
        assert response.json()["data"] == {"pending_messages": 1, "pending_webhooks": 1, "sync_health": "healthy"}

    def test_store_failure(self, client, store, monkeypatch):
        def _fail():
            raise StoreError("db down")

        monkeypatch.setattr(store, "count_unsynced_messages", _fail)

        response = client.get("/api/sync/status")

        assert response.status_code == 500
        assert response.json()["code"] == 500


class TestPlatforms:
    def test_recent_activity_is_connected(self, client, conversation_id):
        response = client.get("/api/platforms")

        assert response.status_code == 200
        [facebook] = response.json()["data"]
        assert facebook["platform"] == "facebook"
        assert facebook["status"] == "connected"
        assert facebook["message_count_today"] == 1
        assert facebook["pending_sync"] == 1
        assert facebook["last_activity"] is not None

    def test_no_messages_is_offline(self, client):
        [facebook] = client.get("/api/platforms").json()["data"]

        assert facebook["status"] == "offline"
        assert facebook["message_count_today"] == 0
        assert facebook["last_activity"] is None
