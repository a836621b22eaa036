"""Pydantic schemas for chats and messages."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CreateChatRequest(BaseModel):
    user1_id: UUID
    user2_id: UUID


class ChatResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user1_id: UUID
    user2_id: UUID
    created_at: datetime


class ChatSummaryResponse(BaseModel):
    """A chat from the caller's point of view."""
    chat_id: UUID
    user_id: UUID
    username: str
    public_key: str


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    chat_id: UUID
    sender_id: UUID
    sender_name: str
    content: str
    encrypted_key: Optional[str] = None
    sequence_number: int
    is_read: bool
    created_at: datetime


class ChatHistoryResponse(BaseModel):
    chat_id: UUID
    username: str
    messages: List[MessageResponse]


class SendMessageRequest(BaseModel):
    chat_id: UUID
    content: str = Field(..., min_length=1)
    encrypted_key: Optional[str] = None
