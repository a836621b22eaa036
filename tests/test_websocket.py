import json
import uuid

import pytest
from fastapi import WebSocketDisconnect

from app.api.v1.ws import resolve_identity
from app.core.messages import WS_TOKEN_INVALID, WS_TOKEN_USER_MISMATCH, WS_USER_ID_REQUIRED
from app.core.security import create_access_token, create_refresh_token

from .helpers import wait_connected


def _url(user, token=None):
    url = f"/api/v1/ws?user_id={user.id}"
    if token:
        url += f"&token={token}"
    return url


def _frame(kind, chat_id, sender, **fields):
    return json.dumps({"type": kind, "chat_id": chat_id, "sender_id": sender.id, **fields})


def test_resolve_identity():
    user_id = str(uuid.uuid4())

    assert resolve_identity(user_id, None) == (user_id, "")
    assert resolve_identity(user_id.upper(), None) == (user_id, "")
    assert resolve_identity("", None) == (None, WS_USER_ID_REQUIRED)
    assert resolve_identity("42", None) == (None, WS_USER_ID_REQUIRED)
    assert resolve_identity(user_id, create_access_token(subject=user_id)) == (user_id, "")
    assert resolve_identity(user_id, "garbage") == (None, WS_TOKEN_INVALID)
    assert resolve_identity(user_id, create_refresh_token(subject=user_id)) == (None, WS_TOKEN_INVALID)
    other = create_access_token(subject=str(uuid.uuid4()))
    assert resolve_identity(user_id, other) == (None, WS_TOKEN_USER_MISMATCH)


def test_rejects_bad_user_id(client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/api/v1/ws?user_id=not-a-uuid"):
            pass
    assert exc.value.code == 1008


def test_rejects_token_for_other_user(client, make_user):
    alice = make_user("alice")
    bob = make_user("bob")
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(_url(alice, token=bob.token)):
            pass
    assert exc.value.code == 1008


def test_message_is_stored_and_delivered_to_both(client, make_user, make_chat):
    alice = make_user("alice")
    bob = make_user("bob")
    chat_id = make_chat(alice, bob)

    with client.websocket_connect(_url(alice, token=alice.token)) as ws_alice, \
            client.websocket_connect(_url(bob)) as ws_bob:
        wait_connected(client, alice.id)
        wait_connected(client, bob.id)

        raw = _frame("message", chat_id, alice, content="hello", encrypted_key="k")
        ws_alice.send_text(raw)

        assert ws_bob.receive_text() == raw
        assert ws_alice.receive_text() == raw

    history = client.get(f"/api/v1/chats/{chat_id}/messages", headers=bob.headers).json()
    assert [(m["content"], m["encrypted_key"]) for m in history["messages"]] == [("hello", "k")]


def test_typing_is_relayed_but_not_stored(client, make_user, make_chat):
    alice = make_user("alice")
    bob = make_user("bob")
    chat_id = make_chat(alice, bob)

    with client.websocket_connect(_url(alice)) as ws_alice, \
            client.websocket_connect(_url(bob)) as ws_bob:
        wait_connected(client, alice.id)
        wait_connected(client, bob.id)

        typing = _frame("typing", chat_id, alice)
        ws_alice.send_text(typing)
        assert ws_bob.receive_text() == typing

        message = _frame("message", chat_id, alice, content="done typing")
        ws_alice.send_text(message)
        # The typing frame never came back to alice
        assert ws_alice.receive_text() == message

    history = client.get(f"/api/v1/chats/{chat_id}/messages", headers=alice.headers).json()
    assert [m["content"] for m in history["messages"]] == ["done typing"]


def test_forged_sender_is_ignored(client, make_user, make_chat):
    alice = make_user("alice")
    bob = make_user("bob")
    chat_id = make_chat(alice, bob)

    with client.websocket_connect(_url(alice)) as ws_alice, \
            client.websocket_connect(_url(bob)) as ws_bob:
        wait_connected(client, alice.id)
        wait_connected(client, bob.id)

        ws_alice.send_text(_frame("message", chat_id, bob, content="not from bob"))
        ws_alice.send_text("not json")
        real = _frame("message", chat_id, alice, content="from alice")
        ws_alice.send_text(real)

        assert ws_bob.receive_text() == real

    history = client.get(f"/api/v1/chats/{chat_id}/messages", headers=alice.headers).json()
    assert [m["content"] for m in history["messages"]] == ["from alice"]


def test_second_connection_replaces_first(client, make_user, make_chat):
    alice = make_user("alice")
    bob = make_user("bob")
    chat_id = make_chat(alice, bob)

    with client.websocket_connect(_url(alice)) as first:
        wait_connected(client, alice.id)

        with client.websocket_connect(_url(alice)) as second, \
                client.websocket_connect(_url(bob)) as ws_bob:
            with pytest.raises(WebSocketDisconnect):
                first.receive_text()

            wait_connected(client, bob.id)
            raw = _frame("message", chat_id, bob, content="still there?")
            ws_bob.send_text(raw)
            assert second.receive_text() == raw


def test_http_message_is_pushed_to_connected_member(client, make_user, make_chat):
    alice = make_user("alice")
    bob = make_user("bob")
    chat_id = make_chat(alice, bob)

    with client.websocket_connect(_url(alice)) as ws_alice:
        wait_connected(client, alice.id)

        response = client.post(
            "/api/v1/messages",
            json={"chat_id": chat_id, "content": "over http"},
            headers=bob.headers,
        )
        assert response.status_code == 201

        frame = json.loads(ws_alice.receive_text())
        assert frame["type"] == "message"
        assert frame["chat_id"] == chat_id
        assert frame["sender_id"] == bob.id
        assert frame["content"] == "over http"
        assert frame["message_id"] == response.json()["id"]
        assert frame["sender_name"] == "bob"


def test_uppercase_user_id_can_send(client, make_user, make_chat):
    alice = make_user("alice")
    bob = make_user("bob")
    chat_id = make_chat(alice, bob)

    with client.websocket_connect(f"/api/v1/ws?user_id={alice.id.upper()}") as ws_alice, \
            client.websocket_connect(_url(bob)) as ws_bob:
        wait_connected(client, alice.id)
        wait_connected(client, bob.id)

        raw = json.dumps(
            {"type": "message", "chat_id": chat_id, "sender_id": alice.id.upper(), "content": "loud"}
        )
        ws_alice.send_text(raw)

        assert ws_bob.receive_text() == raw
        assert ws_alice.receive_text() == raw

    history = client.get(f"/api/v1/chats/{chat_id}/messages", headers=bob.headers).json()
    assert [(m["content"], m["sender_id"]) for m in history["messages"]] == [("loud", alice.id)]
