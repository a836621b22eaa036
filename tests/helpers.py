"""In-memory stand-ins for the stream and storage collaborators."""
import asyncio
import time
import uuid
from datetime import datetime, timezone
from typing import Optional

from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

from app.realtime import ChatRecord, StoredMessage, hub


DEFAULT_PASSWORD = "password123"


class FakeStream:
    """A text stream fed from a queue. Closing it ends the peer's reads."""

    def __init__(self):
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.sent: list[str] = []
        self.closed = False
        self.close_calls = 0
        self.fail_writes = False

    def feed(self, raw: str) -> None:
        self.incoming.put_nowait(raw)

    def hang_up(self) -> None:
        self.incoming.put_nowait(WebSocketDisconnect(1000))

    async def receive_text(self) -> str:
        item = await self.incoming.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def send_text(self, data: str) -> None:
        if self.fail_writes:
            raise ConnectionResetError("broken pipe")
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.close_calls += 1
        self.closed = True
        self.hang_up()


class FakeChats:
    def __init__(self, *chats: ChatRecord, fail: bool = False):
        self.chats = {chat.chat_id: chat for chat in chats}
        self.fail = fail

    def get_chat(self, chat_id: str) -> Optional[ChatRecord]:
        if self.fail:
            raise RuntimeError("directory unavailable")
        return self.chats.get(chat_id)


class FakeMessages:
    def __init__(self, fail: bool = False):
        self.persisted: list[tuple[str, str, str, Optional[str]]] = []
        self.fail = fail

    def persist(self, chat_id, sender_id, content, encrypted_key=None) -> StoredMessage:
        if self.fail:
            raise RuntimeError("database unavailable")
        self.persisted.append((chat_id, sender_id, content, encrypted_key))
        return StoredMessage(
            message_id=str(uuid.uuid4()),
            created_at=datetime.now(timezone.utc),
            sender_name=f"user-{sender_id}",
        )


async def eventually(predicate, timeout: float = 1.0) -> None:
    """Poll ``predicate`` (sync or async) until it is truthy."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        result = predicate()
        if asyncio.iscoroutine(result):
            result = await result
        if result:
            return
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


def wait_connected(client: TestClient, user_id: str, timeout: float = 2.0) -> None:
    """Block until the hub running inside ``client`` has ``user_id`` registered."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if client.portal.call(hub.is_connected, user_id):
            return
        time.sleep(0.01)
    raise AssertionError(f"user {user_id} never connected")
