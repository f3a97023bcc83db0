import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException
from fastapi.security import APIKeyHeader
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .database import get_db
from .models import User

logger = logging.getLogger(__name__)

# The upstream auth layer verifies credentials and forwards the resolved user id
user_id_header = APIKeyHeader(name="X-User-Id", auto_error=False)


def get_or_create_user(
    db: Session, user_id: str, name: Optional[str] = None, email: Optional[str] = None
) -> User:
    """Find a user by identity-provider id, provisioning the row on first sight"""
    user = db.query(User).filter(User.id == user_id).first()
    if user:
        if name and not user.name:
            user.name = name
            db.commit()
        return user

    logger.info(f"🆕 Provisioning user: {user_id}")
    user = User(id=user_id, name=name, email=email)
    db.add(user)
    try:
        db.commit()
        db.refresh(user)
    except IntegrityError:
        # Another request provisioned the same identity first
        db.rollback()
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise
    return user


async def get_current_user(
    user_id: Optional[str] = Depends(user_id_header),
    x_user_name: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the caller from the identity forwarded by the auth layer"""
    if not user_id or not user_id.strip():
        logger.warning("❌ Request without a resolved user identity")
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a resolved user id in the X-User-Id header.",
        )

    user = get_or_create_user(db, user_id.strip(), name=x_user_name, email=x_user_email)
    logger.debug(f"✅ User authenticated: {user.id}")
    return user
