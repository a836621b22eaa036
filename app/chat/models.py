"""Chat models for pairwise conversations."""

import uuid

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import TimestampedUUIDModel


class Chat(TimestampedUUIDModel):
    """Conversation between exactly two users."""

    __tablename__ = "chats"

    user1_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user2_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    def has_member(self, user_id: uuid.UUID) -> bool:
        return user_id in (self.user1_id, self.user2_id)

    def counterpart_of(self, user_id: uuid.UUID) -> uuid.UUID:
        return self.user2_id if self.user1_id == user_id else self.user1_id


class Message(TimestampedUUIDModel):
    """Individual message in a chat."""

    __tablename__ = "messages"
    __table_args__ = (
        Index("idx_messages_chat_sequence", "chat_id", "sequence_number", unique=True),
    )

    chat_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sender_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    sender_name: Mapped[str] = mapped_column(String(50), nullable=False)

    content: Mapped[str] = mapped_column(Text, nullable=False)
    encrypted_key: Mapped[str | None] = mapped_column(Text, nullable=True)  # Per-message key material

    sequence_number: Mapped[int] = mapped_column(Integer, nullable=False)  # Order within chat
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
