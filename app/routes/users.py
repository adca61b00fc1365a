import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import TermsAndConditions, User, UserBill, UserTermsAcceptance
from ..rate_limiter import create_rate_limiter
from ..schemas import EmailUpdate, NotificationPreferences, PasswordUpdate, PhoneUpdate, SignupRequest
from ..security_utils import create_session_token, get_client_ip, hash_password, verify_password
from ..serializers import serialize_user
from ..shared.validators import validate_email, validate_us_phone

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])

rate_limit_signup = create_rate_limiter(limit=5, window_seconds=3600, key_prefix="signup")

# Owner and HR accounts are seeded, never self-registered
SIGNUP_TYPES = ("homeowner", "cleaner")
NOTIFICATION_CHANNELS = ("email", "phone")


@router.post("", status_code=201)
def create_user(
    data: SignupRequest,
    request: Request,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_signup),
):
    """Register a homeowner or cleaner and log them in"""
    logger.info(f"📥 Signup request: username={data.username}, type={data.type}")

    user_type = data.type or "homeowner"
    if user_type not in SIGNUP_TYPES:
        raise HTTPException(status_code=400, detail="Type must be 'homeowner' or 'cleaner'")

    username = data.username.strip()
    if "owner" in username.lower():
        raise HTTPException(status_code=400, detail="Username cannot contain the word 'owner'")

    try:
        email = validate_email(data.email)
        phone = validate_us_phone(data.phone)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    if not email:
        raise HTTPException(status_code=400, detail="Email is required")

    if db.query(User).filter(func.lower(User.username) == username.lower()).first():
        raise HTTPException(status_code=400, detail="Username already exists")
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=400, detail="Email already exists")

    try:
        user = User(
            username=username,
            email=email,
            password=hash_password(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            phone=phone,
            type=user_type,
            notifications=list(NOTIFICATION_CHANNELS),
            last_login=datetime.utcnow(),
        )
        db.add(user)
        db.flush()
        db.add(UserBill(user_id=user.id, cancellation_fee=0, appointment_due=0, total_due=0))

        # Terms accepted on the signup screen are recorded like any later acceptance
        if data.terms_id:
            terms = db.query(TermsAndConditions).filter(TermsAndConditions.id == data.terms_id).first()
            if terms:
                db.add(
                    UserTermsAcceptance(
                        user_id=user.id,
                        terms_id=terms.id,
                        accepted_at=datetime.utcnow(),
                        ip_address=get_client_ip(request),
                        terms_content_snapshot=terms.content if terms.content_type == "text" else None,
                    )
                )
                user.terms_accepted_version = terms.version

        db.commit()
        db.refresh(user)
    except Exception as e:
        logger.error(f"❌ Error creating user {username}: {e}")
        db.rollback()
        raise HTTPException(status_code=500, detail="Failed to create user") from e

    logger.info(f"🆕 Created {user_type} account {user.id} ({username})")
    return {"user": serialize_user(user), "token": create_session_token(user.id)}


# ============================================================================
# PROFILE
# ============================================================================


@router.patch("/update-password")
def update_password(
    data: PasswordUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not verify_password(data.current_password, current_user.password):
        raise HTTPException(status_code=401, detail="Current password is incorrect")

    current_user.password = hash_password(data.new_password)
    db.commit()
    logger.info(f"✅ Password updated for user {current_user.id}")
    return {"message": "Password updated successfully"}


@router.patch("/update-email")
def update_email(
    data: EmailUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        email = validate_email(data.email)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    if not email:
        raise HTTPException(status_code=400, detail="Email is required")

    existing = db.query(User).filter(User.email == email).first()
    if existing and existing.id != current_user.id:
        raise HTTPException(status_code=400, detail="Email already exists")

    current_user.email = email
    db.commit()
    logger.info(f"✅ Email updated for user {current_user.id}")
    return {"message": "Email updated successfully", "email": email}


@router.patch("/update-phone")
def update_phone(
    data: PhoneUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """An empty phone clears the stored number"""
    try:
        phone = validate_us_phone(data.phone.strip()) if data.phone else None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    current_user.phone = phone
    db.commit()
    return {"message": "Phone number updated successfully", "phone": phone}


@router.patch("/notifications")
def update_notification_preferences(
    data: NotificationPreferences,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    invalid = [c for c in data.notifications if c not in NOTIFICATION_CHANNELS]
    if invalid:
        raise HTTPException(status_code=400, detail=f"Unknown notification channel: {invalid[0]}")

    current_user.notifications = list(dict.fromkeys(data.notifications))
    db.commit()
    return {"notifications": current_user.notifications}
