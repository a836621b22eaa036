import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.messages import USER_NOT_FOUND
from app.models.user import User


router = APIRouter(prefix="/users", tags=["users"])


@router.get("/{user_id}/public_key")
def get_public_key(user_id: uuid.UUID, db: Session = Depends(get_db)):
    """Public key a peer needs to encrypt message keys for this user."""
    user = db.query(User).filter(User.id == user_id, User.is_deleted.is_(False)).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=USER_NOT_FOUND)
    return {"user_id": str(user.id), "public_key": user.public_key}
