# backend/slotswap/identity.py
"""
Caller identity.

Authentication happens upstream; the authenticated user id arrives in
the X-User-ID header and is trusted as-is.
"""

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from .database import get_db
from .models import Users as DBUser


def get_current_user_id(
    x_user_id: int | None = Header(None, alias="X-User-ID"),
    db: Session = Depends(get_db),
) -> int:
    if x_user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing caller identity")
    if not db.get(DBUser, x_user_id):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user")
    return x_user_id
