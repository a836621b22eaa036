"""Per-connection read and write tasks."""

import asyncio
import logging
import uuid
from typing import Optional

from fastapi import WebSocketDisconnect

from .collaborators import ChatDirectory, MessageStore
from .connection import Connection, ConnectionState, Stream
from .hub import Hub, HubNotRunningError
from .protocol import FrameKind, decode_frame
from .router import RoutingInstruction, audience


logger = logging.getLogger("app.realtime.pumps")


def _same_sender(sender_id: str, identity: str) -> bool:
    """True when both name the same user. Any spelling of a UUID matches its canonical form."""
    if sender_id == identity:
        return True
    try:
        return uuid.UUID(sender_id) == uuid.UUID(identity)
    except ValueError:
        return False


class FrameHandler:
    """Classifies one inbound frame and decides who receives it."""

    def __init__(self, chats: ChatDirectory, messages: MessageStore):
        self.chats = chats
        self.messages = messages

    def handle(self, identity: str, raw: str) -> Optional[RoutingInstruction]:
        """
        Returns the routing instruction for ``raw``, or None to drop it.

        Messages are persisted before they are routed, and a message that
        could not be stored is not routed at all. Typing and offline signals
        are never stored.
        """
        frame = decode_frame(raw)
        if frame is None:
            return None

        kind = frame.kind
        if kind is None:
            logger.debug("Discarding frame of unknown type %r from user_id=%s", frame.type, identity)
            return None

        if not _same_sender(frame.sender_id, identity):
            logger.warning(
                "Discarding frame with sender_id=%s on connection of user_id=%s",
                frame.sender_id,
                identity,
            )
            return None

        if kind is FrameKind.MESSAGE:
            if not frame.content:
                # Empty messages are malformed and never stored
                logger.debug("Discarding empty message from user_id=%s", identity)
                return None
            try:
                stored = self.messages.persist(
                    frame.chat_id,
                    identity,
                    frame.content,
                    frame.encrypted_key,
                )
            except Exception as e:
                logger.warning(
                    "Failed to persist message: chat_id=%s, sender_id=%s: %s",
                    frame.chat_id,
                    frame.sender_id,
                    e,
                )
                return None
            logger.debug("Message persisted: message_id=%s", stored.message_id)

        try:
            chat = self.chats.get_chat(frame.chat_id)
        except Exception as e:
            logger.warning("Chat lookup failed: chat_id=%s: %s", frame.chat_id, e)
            return None
        if chat is None:
            logger.debug("Discarding frame for unknown chat_id=%s", frame.chat_id)
            return None

        recipients = audience(chat, identity, kind)
        if not recipients:
            return None
        return RoutingInstruction(recipients=recipients, payload=raw)


async def inbound_pump(connection: Connection, hub: Hub, handler: FrameHandler) -> None:
    """Read frames until the stream fails, then unregister and close the stream."""
    try:
        while True:
            raw = await connection.stream.receive_text()
            instruction = handler.handle(connection.identity, raw)
            if instruction is not None:
                await hub.route(instruction)
    except WebSocketDisconnect as e:
        logger.info("WebSocket disconnected: user_id=%s, code=%s", connection.identity, e.code)
    except HubNotRunningError:
        logger.info("Hub stopped, closing connection: user_id=%s", connection.identity)
    except Exception as e:
        logger.warning("WebSocket read failed: user_id=%s: %s", connection.identity, e)
    finally:
        connection.state = ConnectionState.CLOSING
        try:
            await hub.unregister(connection)
        except HubNotRunningError:
            connection.close_outbound()
        await connection.close_stream()


async def outbound_pump(connection: Connection) -> None:
    """Write queued frames in order until the queue is closed or a write fails."""
    try:
        while True:
            frame = await connection.next_frame()
            if frame is None:
                break
            await connection.stream.send_text(frame)
    except Exception as e:
        logger.warning("WebSocket write failed: user_id=%s: %s", connection.identity, e)
    # A displaced or unregistered session is disconnected from here
    await connection.close_stream()


async def serve_connection(
    stream: Stream,
    identity: str,
    hub: Hub,
    handler: FrameHandler,
    max_queue: int = 256,
) -> Connection:
    """Register a connection and run both pumps until it is closed."""
    connection = Connection(identity, stream, max_queue=max_queue)
    await hub.register(connection)
    connection.state = ConnectionState.ACTIVE

    writer = asyncio.create_task(outbound_pump(connection), name=f"outbound:{identity}")
    try:
        await inbound_pump(connection, hub, handler)
    finally:
        # The inbound pump closed the queue on its way out
        await writer
        connection.state = ConnectionState.CLOSED
    return connection
