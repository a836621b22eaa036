"""Storage-facing interfaces consumed by the hub, with SQLAlchemy implementations."""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Protocol

from sqlalchemy.orm import Session

from app.chat.messages import MessageHandler
from app.chat.sessions import ChatManager
from .router import ChatRecord


@dataclass(frozen=True)
class StoredMessage:
    message_id: str
    created_at: datetime
    sender_name: str


class ChatDirectory(Protocol):
    def get_chat(self, chat_id: str) -> Optional[ChatRecord]: ...


class MessageStore(Protocol):
    def persist(
        self,
        chat_id: str,
        sender_id: str,
        content: str,
        encrypted_key: Optional[str] = None,
    ) -> StoredMessage: ...


class SqlChatDirectory:
    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get_chat(self, chat_id: str) -> Optional[ChatRecord]:
        try:
            chat_uuid = uuid.UUID(chat_id)
        except ValueError:
            return None

        with self.session_factory() as db:
            chat = ChatManager.get_chat(db, chat_uuid)
            if not chat:
                return None
            return ChatRecord(
                chat_id=str(chat.id),
                user1_id=str(chat.user1_id),
                user2_id=str(chat.user2_id),
            )


class SqlMessageStore:
    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def persist(
        self,
        chat_id: str,
        sender_id: str,
        content: str,
        encrypted_key: Optional[str] = None,
    ) -> StoredMessage:
        with self.session_factory() as db:
            message = MessageHandler.create_message(
                db,
                chat_id=uuid.UUID(chat_id),
                sender_id=uuid.UUID(sender_id),
                content=content,
                encrypted_key=encrypted_key,
            )
            return StoredMessage(
                message_id=str(message.id),
                created_at=message.created_at,
                sender_name=message.sender_name,
            )
