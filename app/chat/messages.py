"""Message handling for chat system."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.user import User
from .errors import (
    ChatNotFoundError,
    MessageDeleteForbiddenError,
    MessageNotFoundError,
    NotChatMemberError,
    UserNotFoundError,
)
from .models import Chat, Message


logger = logging.getLogger("app.chat.messages")


class MessageHandler:
    """Handles message creation, retrieval and deletion."""

    @staticmethod
    def create_message(
        db: Session,
        chat_id: uuid.UUID,
        sender_id: uuid.UUID,
        content: str,
        encrypted_key: Optional[str] = None,
    ) -> Message:
        """Persist a new message, resolving the sender's display name."""
        chat = (
            db.query(Chat)
            .filter(Chat.id == chat_id, Chat.is_deleted.is_(False))
            .first()
        )
        if not chat:
            raise ChatNotFoundError(str(chat_id))
        if not chat.has_member(sender_id):
            raise NotChatMemberError(str(chat_id))

        sender = (
            db.query(User)
            .filter(User.id == sender_id, User.is_deleted.is_(False))
            .first()
        )
        if not sender:
            raise UserNotFoundError(str(sender_id))

        last_sequence = (
            db.query(func.max(Message.sequence_number))
            .filter(Message.chat_id == chat_id)
            .scalar()
        )

        message = Message(
            chat_id=chat_id,
            sender_id=sender_id,
            sender_name=sender.username,
            content=content,
            encrypted_key=encrypted_key,
            sequence_number=(last_sequence or 0) + 1,
            created_at=datetime.now(timezone.utc),
            created_by=str(sender_id),
        )

        db.add(message)
        db.commit()
        db.refresh(message)

        logger.info(
            "Message created: message_id=%s, chat_id=%s, sender_id=%s",
            message.id,
            chat_id,
            sender_id,
        )

        return message

    @staticmethod
    def get_message(db: Session, message_id: uuid.UUID) -> Optional[Message]:
        return (
            db.query(Message)
            .filter(Message.id == message_id, Message.is_deleted.is_(False))
            .first()
        )

    @staticmethod
    def delete_message(db: Session, message_id: uuid.UUID, requester_id: uuid.UUID) -> None:
        """Soft-delete a message. Only its sender may do this."""
        message = MessageHandler.get_message(db, message_id)
        if not message:
            raise MessageNotFoundError(str(message_id))
        if message.sender_id != requester_id:
            raise MessageDeleteForbiddenError(str(message_id))

        message.is_deleted = True
        message.deleted_at = datetime.now(timezone.utc)
        message.deleted_by = str(requester_id)
        db.add(message)
        db.commit()

        logger.info("Message deleted: message_id=%s, deleted_by=%s", message_id, requester_id)
