import logging
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .database import get_db
from .models import User
from .security_utils import decode_session_token

logger = logging.getLogger(__name__)

# auto_error=False so a missing header produces our own 401 body
security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the bearer session token to a User"""
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Authorization token required")

    payload = decode_session_token(credentials.credentials)
    if not payload or "userId" not in payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    try:
        user = db.query(User).filter(User.id == int(payload["userId"])).first()
    except (TypeError, ValueError) as e:
        logger.warning(f"⚠️ Malformed userId in token: {payload.get('userId')}")
        raise HTTPException(status_code=401, detail="Invalid or expired token") from e

    if not user:
        logger.warning(f"⚠️ Token for unknown user id {payload['userId']}")
        raise HTTPException(status_code=401, detail="User not found")

    return user


def get_current_owner(current_user: User = Depends(get_current_user)) -> User:
    """Only platform owners may manage cleaners, payouts and platform config"""
    if current_user.type != "owner":
        logger.warning(f"🚫 User {current_user.id} ({current_user.type}) attempted owner access")
        raise HTTPException(status_code=403, detail="Owner access required")
    return current_user


def get_current_manager(current_user: User = Depends(get_current_user)) -> User:
    """Owners and HR staff manage terms & conditions"""
    if current_user.type not in ("owner", "humanResources"):
        raise HTTPException(status_code=403, detail="Manager access required")
    return current_user


def get_current_cleaner(current_user: User = Depends(get_current_user)) -> User:
    if current_user.type != "cleaner":
        raise HTTPException(status_code=403, detail="Cleaner access required")
    return current_user


def get_current_homeowner(current_user: User = Depends(get_current_user)) -> User:
    if current_user.type != "homeowner":
        raise HTTPException(status_code=403, detail="Homeowner access required")
    return current_user
