"""WebSocket upgrade endpoint for live chat delivery."""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, status
from jose import JWTError

from app.api.dependencies import get_frame_handler, get_hub
from app.core.config import settings
from app.core.messages import (
    WS_TOKEN_INVALID,
    WS_TOKEN_REQUIRED,
    WS_TOKEN_USER_MISMATCH,
    WS_USER_ID_REQUIRED,
)
from app.core.security import decode_token
from app.realtime import FrameHandler, Hub, HubNotRunningError, WebSocketStream, serve_connection


logger = logging.getLogger("app.realtime.ws")

router = APIRouter(tags=["websocket"])


def resolve_identity(user_id: str, token: Optional[str]) -> tuple[Optional[str], str]:
    """
    Work out the verified identity for an upgrade request.

    Returns:
        (identity, reason) where identity is None and reason explains the
        rejection when the request must be refused
    """
    try:
        identity = str(uuid.UUID(user_id))
    except ValueError:
        return None, WS_USER_ID_REQUIRED

    if token is None:
        if settings.WS_REQUIRE_TOKEN:
            return None, WS_TOKEN_REQUIRED
        return identity, ""

    try:
        payload = decode_token(token, expected_type="access")
    except JWTError:
        return None, WS_TOKEN_INVALID
    if payload.get("sub") != identity:
        return None, WS_TOKEN_USER_MISMATCH
    return identity, ""


@router.websocket("/ws")
async def chat_websocket(
    websocket: WebSocket,
    user_id: str = Query(""),
    token: Optional[str] = Query(None),
    hub: Hub = Depends(get_hub),
    handler: FrameHandler = Depends(get_frame_handler),
):
    """
    WebSocket endpoint for live chat delivery.

    Connection URL: ws://localhost:8000/api/v1/ws?user_id={user_id}[&token={access_token}]

    Frame format (both directions):
    {
        "type": "message" | "typing" | "offline",
        "chat_id": "...",
        "sender_id": "...",
        "content": "...",          # message only
        "encrypted_key": "..."     # optional
    }
    """
    identity, reason = resolve_identity(user_id, token)
    if identity is None:
        logger.warning("WebSocket rejected: user_id=%r, reason=%s", user_id, reason)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=reason)
        return

    await websocket.accept()
    logger.info("WebSocket connected: user_id=%s", identity)

    try:
        await serve_connection(
            WebSocketStream(websocket),
            identity,
            hub,
            handler,
            max_queue=settings.WS_OUTBOUND_QUEUE_SIZE,
        )
    except HubNotRunningError:
        logger.error("WebSocket refused: hub is not running (user_id=%s)", identity)
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return

    logger.info("WebSocket closed: user_id=%s", identity)
