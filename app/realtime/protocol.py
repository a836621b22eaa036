"""Wire frames exchanged over the chat WebSocket."""

import json
import logging
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator


logger = logging.getLogger("app.realtime.protocol")


class FrameKind(str, Enum):
    MESSAGE = "message"
    TYPING = "typing"
    OFFLINE = "offline"


class InboundFrame(BaseModel):
    """Routing view of a client frame. Unknown fields are carried through untouched."""

    model_config = ConfigDict(extra="allow")

    type: str
    chat_id: str
    sender_id: str
    content: Optional[str] = None
    encrypted_key: Optional[str] = None

    @field_validator("chat_id", "sender_id", mode="before")
    @classmethod
    def ids_as_strings(cls, v: Any) -> Any:
        # Older clients send numeric ids
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @property
    def kind(self) -> Optional[FrameKind]:
        try:
            return FrameKind(self.type)
        except ValueError:
            return None


def decode_frame(raw: str) -> Optional[InboundFrame]:
    """Parse a text frame; None when it is not valid JSON or lacks routing fields."""
    try:
        return InboundFrame.model_validate_json(raw)
    except ValidationError as e:
        logger.debug("Discarding malformed frame: %s", e.errors(include_url=False))
        return None


def encode_frame(kind: FrameKind, chat_id: str, sender_id: str, **fields: Any) -> str:
    frame: dict[str, Any] = {
        "type": kind.value,
        "chat_id": chat_id,
        "sender_id": sender_id,
    }
    frame.update({key: value for key, value in fields.items() if value is not None})
    return json.dumps(frame, ensure_ascii=False)
