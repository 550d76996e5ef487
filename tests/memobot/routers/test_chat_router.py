"""Tests for the chat endpoint, running the real pipeline against the test database."""

import uuid

import pytest
from fastapi.testclient import TestClient

from memobot.assistants.orchestrator import GREETING_REPLY
from memobot.models.conversation_event import ConversationEvent
from memobot.models.user import User


@pytest.fixture
def chat_client(app_state, make_router, client):
    app_state.router = make_router()
    return client


def test_chat_requires_identity(app_state, make_router, client_no_auth: TestClient):
    app_state.router = make_router()
    resp = client_no_auth.post("/chat", json={"message": "hello"})
    assert resp.status_code == 401


def test_chat_rejects_empty_message(chat_client: TestClient):
    assert chat_client.post("/chat", json={"message": ""}).status_code == 422


def test_greeting(chat_client: TestClient):
    resp = chat_client.post("/chat", json={"message": "hello"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["reply"] == GREETING_REPLY
    assert body["retrievedMemories"] == []
    assert body["createdMemory"] is None
    assert {b["id"] for b in body["buttons"]}


def test_save_then_recall(db, chat_client: TestClient):
    chat_client.post("/chat", json={"message": "remember that the wifi password is tulip42"})
    saved = chat_client.post("/chat", json={"message": "save it"}).json()

    assert saved["createdMemory"]["content"] == "the wifi password is tulip42"

    found = chat_client.post("/chat", json={"message": "what is the wifi password?"}).json()
    assert found["reply"].startswith("Here's what I found:")
    assert found["retrievedMemories"][0]["memory"]["id"] == saved["createdMemory"]["id"]
    assert db.query(ConversationEvent).filter(ConversationEvent.channel == "chat").count() == 3


def test_first_request_creates_the_account(db, app_state, make_router, client_no_auth):
    app_state.router = make_router()
    user_id = uuid.uuid4()
    resp = client_no_auth.post(
        "/chat",
        json={"message": "hi"},
        headers={"X-User-Id": str(user_id), "X-User-Email": "new@example.com"},
    )
    assert resp.status_code == 200
    assert db.get(User, user_id).email == "new@example.com"
