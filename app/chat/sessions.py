"""Chat lifecycle management."""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from app.models.user import User
from .errors import ChatNotFoundError, NotChatMemberError, SelfChatError, UserNotFoundError
from .models import Chat, Message


logger = logging.getLogger("app.chat.sessions")


@dataclass
class ChatSummary:
    """A chat as seen by one of its members."""

    chat_id: uuid.UUID
    user_id: uuid.UUID
    username: str
    public_key: str


def _get_active_user(db: Session, user_id: uuid.UUID) -> Optional[User]:
    return (
        db.query(User)
        .filter(User.id == user_id, User.is_deleted.is_(False))
        .first()
    )


class ChatManager:
    """Manages pairwise chats."""

    @staticmethod
    def get_chat(db: Session, chat_id: uuid.UUID) -> Optional[Chat]:
        """Get a live chat by ID."""
        return (
            db.query(Chat)
            .filter(Chat.id == chat_id, Chat.is_deleted.is_(False))
            .first()
        )

    @staticmethod
    def get_chat_for_member(db: Session, chat_id: uuid.UUID, user_id: uuid.UUID) -> Chat:
        chat = ChatManager.get_chat(db, chat_id)
        if not chat:
            raise ChatNotFoundError(str(chat_id))
        if not chat.has_member(user_id):
            raise NotChatMemberError(str(chat_id))
        return chat

    @staticmethod
    def get_chat_between(db: Session, user1_id: uuid.UUID, user2_id: uuid.UUID) -> Optional[Chat]:
        """Find the live chat for an unordered pair of users."""
        return (
            db.query(Chat)
            .filter(
                Chat.is_deleted.is_(False),
                or_(
                    and_(Chat.user1_id == user1_id, Chat.user2_id == user2_id),
                    and_(Chat.user1_id == user2_id, Chat.user2_id == user1_id),
                ),
            )
            .first()
        )

    @staticmethod
    def create_chat(
        db: Session,
        user1_id: uuid.UUID,
        user2_id: uuid.UUID,
        created_by: Optional[uuid.UUID] = None,
    ) -> tuple[Chat, bool]:
        """
        Return the chat for the pair, creating it when missing.

        Returns:
            (chat, created) where created is False for an existing chat
        """
        if user1_id == user2_id:
            raise SelfChatError(str(user1_id))

        for user_id in (user1_id, user2_id):
            if not _get_active_user(db, user_id):
                raise UserNotFoundError(str(user_id))

        existing = ChatManager.get_chat_between(db, user1_id, user2_id)
        if existing:
            return existing, False

        chat = Chat(
            user1_id=user1_id,
            user2_id=user2_id,
            created_by=str(created_by) if created_by else str(user1_id),
        )
        db.add(chat)
        db.commit()
        db.refresh(chat)

        logger.info(
            "Chat created: chat_id=%s, user1_id=%s, user2_id=%s",
            chat.id,
            user1_id,
            user2_id,
        )
        return chat, True

    @staticmethod
    def list_user_chats(db: Session, user_id: uuid.UUID) -> List[ChatSummary]:
        """List a user's chats together with the other member's details."""
        if not _get_active_user(db, user_id):
            raise UserNotFoundError(str(user_id))

        chats = (
            db.query(Chat)
            .filter(
                Chat.is_deleted.is_(False),
                or_(Chat.user1_id == user_id, Chat.user2_id == user_id),
            )
            .order_by(Chat.created_at)
            .all()
        )

        summaries: List[ChatSummary] = []
        for chat in chats:
            other = _get_active_user(db, chat.counterpart_of(user_id))
            if not other:
                continue
            summaries.append(
                ChatSummary(
                    chat_id=chat.id,
                    user_id=other.id,
                    username=other.username,
                    public_key=other.public_key,
                )
            )
        return summaries

    @staticmethod
    def get_chat_messages(db: Session, chat_id: uuid.UUID, user_id: uuid.UUID) -> tuple[Chat, str, List[Message]]:
        """
        Get a chat's history for one of its members.

        Returns:
            (chat, counterpart username, messages in sequence order)
        """
        chat = ChatManager.get_chat_for_member(db, chat_id, user_id)
        other = _get_active_user(db, chat.counterpart_of(user_id))

        messages = (
            db.query(Message)
            .filter(Message.chat_id == chat.id, Message.is_deleted.is_(False))
            .order_by(Message.sequence_number)
            .all()
        )
        return chat, other.username if other else "", messages

    @staticmethod
    def delete_chat(db: Session, chat_id: uuid.UUID, deleted_by: uuid.UUID) -> None:
        """Soft-delete a chat."""
        chat = ChatManager.get_chat_for_member(db, chat_id, deleted_by)

        chat.is_deleted = True
        chat.deleted_at = datetime.now(timezone.utc)
        chat.deleted_by = str(deleted_by)
        db.add(chat)
        db.commit()

        logger.info("Chat deleted: chat_id=%s, deleted_by=%s", chat_id, deleted_by)
