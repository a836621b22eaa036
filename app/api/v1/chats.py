"""Pairwise chat endpoints."""

import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from app.api.dependencies import get_current_user
from app.chat import ChatManager, ChatNotFoundError, NotChatMemberError, SelfChatError, UserNotFoundError
from app.chat.schemas import (
    ChatHistoryResponse,
    ChatResponse,
    ChatSummaryResponse,
    CreateChatRequest,
    MessageResponse,
)
from app.core.database import get_db
from app.core.messages import (
    CHAT_ACCESS_DENIED,
    CHAT_CREATOR_NOT_MEMBER,
    CHAT_DELETED,
    CHAT_NOT_FOUND,
    CHAT_SELF_NOT_ALLOWED,
    USER_NOT_FOUND,
)
from app.models.user import User


router = APIRouter(prefix="/chats", tags=["chats"])


def _member_error(exc: Exception) -> HTTPException:
    if isinstance(exc, NotChatMemberError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=CHAT_ACCESS_DENIED)
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=CHAT_NOT_FOUND)


@router.post("", response_model=ChatResponse, status_code=status.HTTP_201_CREATED)
def create_chat(
    payload: CreateChatRequest,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Get or create the chat between two users. The caller must be one of them."""
    if current_user.id not in (payload.user1_id, payload.user2_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=CHAT_CREATOR_NOT_MEMBER,
        )

    try:
        chat, created = ChatManager.create_chat(
            db,
            user1_id=payload.user1_id,
            user2_id=payload.user2_id,
            created_by=current_user.id,
        )
    except SelfChatError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=CHAT_SELF_NOT_ALLOWED)
    except UserNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=USER_NOT_FOUND)

    if not created:
        response.status_code = status.HTTP_200_OK
    return chat


@router.get("", response_model=List[ChatSummaryResponse])
def list_chats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """List the caller's chats with the other member's username and public key."""
    return ChatManager.list_user_chats(db, current_user.id)


@router.get("/{chat_id}/messages", response_model=ChatHistoryResponse)
def get_chat_messages(
    chat_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        chat, username, messages = ChatManager.get_chat_messages(db, chat_id, current_user.id)
    except (ChatNotFoundError, NotChatMemberError) as e:
        raise _member_error(e)

    return ChatHistoryResponse(
        chat_id=chat.id,
        username=username,
        messages=[MessageResponse.model_validate(m) for m in messages],
    )


@router.delete("/{chat_id}")
def delete_chat(
    chat_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        ChatManager.delete_chat(db, chat_id, current_user.id)
    except (ChatNotFoundError, NotChatMemberError) as e:
        raise _member_error(e)
    return {"detail": CHAT_DELETED}
