"""Login and current-session endpoints"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import User
from ..rate_limiter import create_rate_limiter
from ..schemas import LoginRequest
from ..security_utils import create_session_token, verify_password
from ..serializers import serialize_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/user-sessions", tags=["Sessions"])

rate_limit_login = create_rate_limiter(limit=10, window_seconds=300, key_prefix="login")


@router.post("/login")
async def login(
    data: LoginRequest,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_login),
):
    """Exchange username/password for a session token. Frozen cleaners may still log in."""
    user = db.query(User).filter(func.lower(User.username) == data.username.strip().lower()).first()
    if not user or not verify_password(data.password, user.password):
        logger.warning(f"🚫 Failed login for username '{data.username}'")
        raise HTTPException(status_code=401, detail="Invalid username or password")

    user.last_login = datetime.utcnow()
    db.commit()
    db.refresh(user)
    logger.info(f"✅ User {user.id} logged in")

    return {"user": serialize_user(user), "token": create_session_token(user.id)}


@router.get("/current")
async def get_current_session(current_user: User = Depends(get_current_user)):
    return {"user": serialize_user(current_user)}
