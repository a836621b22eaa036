"""Message endpoints. Sent messages are also pushed to connected members."""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.dependencies import get_current_user, get_hub
from app.chat import (
    ChatManager,
    ChatNotFoundError,
    MessageDeleteForbiddenError,
    MessageHandler,
    MessageNotFoundError,
    NotChatMemberError,
)
from app.chat.schemas import MessageResponse, SendMessageRequest
from app.core.database import get_db
from app.core.messages import (
    CHAT_ACCESS_DENIED,
    CHAT_NOT_FOUND,
    MESSAGE_DELETE_FORBIDDEN,
    MESSAGE_DELETED,
    MESSAGE_NOT_FOUND,
)
from app.models.user import User
from app.realtime import (
    ChatRecord,
    FrameKind,
    Hub,
    HubNotRunningError,
    RoutingInstruction,
    audience,
    encode_frame,
)


logger = logging.getLogger("app.api.messages")

router = APIRouter(prefix="/messages", tags=["messages"])


@router.post("", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    payload: SendMessageRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    hub: Hub = Depends(get_hub),
):
    try:
        message = MessageHandler.create_message(
            db,
            chat_id=payload.chat_id,
            sender_id=current_user.id,
            content=payload.content,
            encrypted_key=payload.encrypted_key,
        )
    except ChatNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=CHAT_NOT_FOUND)
    except NotChatMemberError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=CHAT_ACCESS_DENIED)

    frame = encode_frame(
        FrameKind.MESSAGE,
        chat_id=str(message.chat_id),
        sender_id=str(current_user.id),
        content=message.content,
        encrypted_key=message.encrypted_key,
        message_id=str(message.id),
        sender_name=message.sender_name,
        created_at=message.created_at.isoformat() if message.created_at else None,
    )
    chat = ChatManager.get_chat(db, message.chat_id)
    record = ChatRecord(str(chat.id), str(chat.user1_id), str(chat.user2_id))
    recipients = audience(record, str(current_user.id), FrameKind.MESSAGE)
    try:
        await hub.route(RoutingInstruction(recipients=recipients, payload=frame))
    except HubNotRunningError:
        logger.warning("Hub not running; message %s stored without live delivery", message.id)

    return message


@router.delete("/{message_id}")
def delete_message(
    message_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        MessageHandler.delete_message(db, message_id, current_user.id)
    except MessageNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=MESSAGE_NOT_FOUND)
    except MessageDeleteForbiddenError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=MESSAGE_DELETE_FORBIDDEN)
    return {"detail": MESSAGE_DELETED}
