# backend/stockroom/security.py

"""
Caller identity for the HTTP surface.

Login and session handling live outside this service. An upstream gateway
authenticates the caller and forwards the owner id in the `X-User-Id`
header; this module only resolves that id to an active User.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from .database import get_db
from .models import User

USER_ID_HEADER = "X-User-Id"


def get_user_by_id(db: Session, user_id: str) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate caller",
    )


def get_current_user(
    user_id: Optional[str] = Header(None, alias=USER_ID_HEADER),
    db: Session = Depends(get_db),
) -> User:
    if not user_id:
        raise _credentials_exception()
    user = get_user_by_id(db, user_id.strip())
    if user is None:
        raise _credentials_exception()
    return user


def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user",
        )
    return current_user
