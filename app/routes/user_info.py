"""Homeowner dashboard: profile, homes, appointments, bill and notifications"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import User, UserAppointment, UserHome
from ..schemas import HomeCreate, HomeDelete, HomeUpdate
from ..serializers import serialize_appointment, serialize_bill, serialize_home, serialize_notification, serialize_user
from ..services.homes import HomeService
from ..services.notifications import NotificationService
from ..services.user_info import UserInfoService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/user-info", tags=["User Info"])


@router.get("")
async def get_user_info(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    homes = db.query(UserHome).filter(UserHome.user_id == current_user.id).order_by(UserHome.id).all()
    appointments = (
        db.query(UserAppointment)
        .filter(UserAppointment.user_id == current_user.id)
        .order_by(UserAppointment.date.asc(), UserAppointment.id.asc())
        .all()
    )
    bill = UserInfoService(db).get_or_create_bill(current_user.id)
    db.commit()

    return {
        "user": serialize_user(current_user),
        "homes": [serialize_home(h) for h in homes],
        "appointments": [serialize_appointment(a) for a in appointments],
        "bill": serialize_bill(bill),
    }


# ============================================================================
# HOMES
# ============================================================================


@router.post("/home", status_code=201)
async def add_home(
    data: HomeCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        home, area = HomeService(db).add_home(current_user, data)
        return {"home": serialize_home(home), **area}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error adding home for user {current_user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to add home")


@router.patch("/home")
async def update_home(
    data: HomeUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        home, area = HomeService(db).update_home(current_user, data)
        return {"home": serialize_home(home), **area}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error updating home {data.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update home")


@router.delete("/home")
async def delete_home(
    data: HomeDelete,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        removed = HomeService(db).delete_home(current_user, data.id)
        return {"message": "Home deleted", "appointmentsRemoved": removed}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error deleting home {data.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete home")


# ============================================================================
# NOTIFICATIONS
# ============================================================================


@router.get("/notifications")
async def get_notifications(
    unread_only: bool = Query(False, alias="unreadOnly"),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    notifications = NotificationService(db).list_for_user(current_user.id, unread_only, limit)
    return {"notifications": [serialize_notification(n) for n in notifications]}


@router.patch("/notifications/read")
async def mark_notifications_read(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    updated = NotificationService(db).mark_all_read(current_user.id)
    return {"success": True, "updated": updated}
