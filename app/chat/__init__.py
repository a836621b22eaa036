"""Pairwise chats and their persisted messages."""

from .errors import (
    ChatError,
    ChatNotFoundError,
    MessageDeleteForbiddenError,
    MessageNotFoundError,
    NotChatMemberError,
    SelfChatError,
    UserNotFoundError,
)
from .messages import MessageHandler
from .models import Chat, Message
from .sessions import ChatManager, ChatSummary

__all__ = [
    "Chat",
    "ChatError",
    "ChatManager",
    "ChatNotFoundError",
    "ChatSummary",
    "Message",
    "MessageDeleteForbiddenError",
    "MessageHandler",
    "MessageNotFoundError",
    "NotChatMemberError",
    "SelfChatError",
    "UserNotFoundError",
]
