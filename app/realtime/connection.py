"""A single live client session and its outbound queue."""

import asyncio
import logging
from enum import Enum
from typing import Optional, Protocol

from fastapi import WebSocket, WebSocketDisconnect


logger = logging.getLogger("app.realtime.connection")

_QUEUE_CLOSED = object()


class Stream(Protocol):
    async def receive_text(self) -> str: ...

    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


class WebSocketStream:
    """Adapts a Starlette WebSocket to the text stream the pumps expect."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket

    async def receive_text(self) -> str:
        message = await self.websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
        if message.get("text") is not None:
            return message["text"]
        try:
            return (message.get("bytes") or b"").decode("utf-8")
        except UnicodeDecodeError:
            return ""

    async def send_text(self, data: str) -> None:
        await self.websocket.send_text(data)

    async def close(self, code: int = 1000) -> None:
        await self.websocket.close(code=code)


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


class Connection:
    """
    One user's live session.

    The outbound queue is bounded by ``max_queue``; ``offer`` never blocks
    and refuses frames once the queue is full or closed. Closing the queue
    wakes the outbound pump, which drains what is already queued and exits.
    """

    def __init__(self, identity: str, stream: Stream, max_queue: int = 256):
        self.identity = identity
        self.stream = stream
        self.max_queue = max_queue
        self.state = ConnectionState.CONNECTING
        self._outbound: asyncio.Queue = asyncio.Queue()
        self._outbound_closed = False
        self._stream_closed = False

    def __repr__(self) -> str:
        return f"<Connection identity={self.identity!r} state={self.state.value}>"

    @property
    def outbound_closed(self) -> bool:
        return self._outbound_closed

    def pending(self) -> int:
        """Number of frames waiting to be written."""
        size = self._outbound.qsize()
        if self._outbound_closed:
            # The close marker is gone once the outbound pump has read it
            size = max(0, size - 1)
        return size

    def offer(self, frame: str) -> bool:
        """Queue a frame without blocking. False if it was dropped."""
        if self._outbound_closed or self._outbound.qsize() >= self.max_queue:
            return False
        self._outbound.put_nowait(frame)
        return True

    def close_outbound(self) -> bool:
        """Close the outbound queue. Only the first call has an effect."""
        if self._outbound_closed:
            return False
        self._outbound_closed = True
        self._outbound.put_nowait(_QUEUE_CLOSED)
        return True

    async def next_frame(self) -> Optional[str]:
        """Wait for the next outbound frame; None once the queue is closed and drained."""
        item = await self._outbound.get()
        if item is _QUEUE_CLOSED:
            return None
        return item

    async def close_stream(self, code: int = 1000) -> None:
        if self._stream_closed:
            return
        self._stream_closed = True
        try:
            await self.stream.close(code=code)
        except Exception as e:
            # Peer already gone; nothing left to close
            logger.debug("Stream close failed for user_id=%s: %s", self.identity, e)
