"""
Security Utilities
Password hashing, session tokens and input sanitization shared by the routers
"""

import logging
import os
import re
import secrets
import time
from datetime import datetime, timedelta
from typing import Any, Optional

# Input sanitization
import bleach

from fastapi import Request

# Session tokens
from jose import JWTError
from jose import jwt as jose_jwt

# Password hashing
from passlib.context import CryptContext

from .config import JWT_ALGORITHM, JWT_EXPIRE_HOURS, SESSION_SECRET

logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


# ============================================================================
# PASSWORD SECURITY
# ============================================================================


def hash_password(password: str) -> str:
    """Hash password using bcrypt"""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against bcrypt hash"""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except Exception as e:
        logger.error(f"Password verification error: {e}")
        return False


# ============================================================================
# SESSION TOKENS
# ============================================================================


def create_session_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create the bearer token handed out at login.
    The payload carries the user id as `userId`.
    """
    expire = datetime.utcnow() + (expires_delta or timedelta(hours=JWT_EXPIRE_HOURS))
    to_encode = {"userId": user_id, "exp": expire}
    return jose_jwt.encode(to_encode, SESSION_SECRET, algorithm=JWT_ALGORITHM)


def decode_session_token(token: str) -> Optional[dict[str, Any]]:
    """
    Verify and decode a session token

    Returns:
        Decoded payload if valid, None if invalid or expired
    """
    try:
        return jose_jwt.decode(token, SESSION_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        return None


def generate_transaction_id(prefix: str = "WD") -> str:
    """Human-readable unique id for money movements, e.g. WD-1718000000000-9f3a1c2b"""
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


# ============================================================================
# INPUT SANITIZATION
# ============================================================================


def sanitize_html(html_content: str, allowed_tags: Optional[list] = None) -> str:
    """
    Sanitize HTML content to prevent XSS attacks

    Args:
        html_content: Raw HTML content
        allowed_tags: List of allowed HTML tags (default: safe subset)

    Returns:
        Sanitized HTML
    """
    if allowed_tags is None:
        allowed_tags = ["p", "br", "strong", "em", "u", "ul", "ol", "li", "h1", "h2", "h3", "h4"]

    return bleach.clean(html_content, tags=allowed_tags, attributes={}, strip=True)


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename to prevent directory traversal and other attacks

    Args:
        filename: Original filename

    Returns:
        Safe filename
    """
    # Remove path components
    filename = os.path.basename(filename)

    # Remove or replace dangerous characters
    filename = re.sub(r"[^\w\s\-\.]", "", filename)

    # Remove leading/trailing dots and spaces
    filename = filename.strip(". ")

    # Limit length
    if len(filename) > 255:
        name, ext = os.path.splitext(filename)
        filename = name[: 255 - len(ext)] + ext

    if not filename:
        filename = f"file_{secrets.token_urlsafe(8)}"

    return filename


def is_pdf_content(content: bytes) -> bool:
    """Check the PDF magic header rather than trusting the extension"""
    return content[:5] == b"%PDF-"


def get_client_ip(request: Request) -> Optional[str]:
    """First hop of X-Forwarded-For when behind a proxy, else the socket peer"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None
