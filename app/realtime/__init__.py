"""Live delivery of chat frames to connected users."""

from .collaborators import ChatDirectory, MessageStore, SqlChatDirectory, SqlMessageStore, StoredMessage
from .connection import Connection, ConnectionState, WebSocketStream
from .hub import Hub, HubNotRunningError, hub
from .protocol import FrameKind, InboundFrame, decode_frame, encode_frame
from .pumps import FrameHandler, inbound_pump, outbound_pump, serve_connection
from .router import ChatRecord, RoutingInstruction, audience

__all__ = [
    "ChatDirectory",
    "ChatRecord",
    "Connection",
    "ConnectionState",
    "FrameHandler",
    "FrameKind",
    "Hub",
    "HubNotRunningError",
    "InboundFrame",
    "MessageStore",
    "RoutingInstruction",
    "SqlChatDirectory",
    "SqlMessageStore",
    "StoredMessage",
    "WebSocketStream",
    "audience",
    "decode_frame",
    "encode_frame",
    "hub",
    "inbound_pump",
    "outbound_pump",
    "serve_connection",
]
