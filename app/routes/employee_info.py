"""Cleaner-facing info: assigned jobs, home lookups and shift days"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth import get_current_cleaner, get_current_user
from ..database import get_db
from ..models import User, UserAppointment, UserCleanerAppointment, UserHome, UserReview
from ..schemas import ShiftsUpdate
from ..serializers import serialize_appointment, serialize_home, serialize_review, serialize_user
from ..services.service_area_validator import get_zipcode_location

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/employee-info", tags=["Employee Info"])

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


@router.get("")
async def get_employee_info(current_user: User = Depends(get_current_cleaner), db: Session = Depends(get_db)):
    """The cleaner with every appointment they are assigned to"""
    appointments = (
        db.query(UserAppointment)
        .join(UserCleanerAppointment, UserCleanerAppointment.appointment_id == UserAppointment.id)
        .filter(UserCleanerAppointment.employee_id == current_user.id)
        .order_by(UserAppointment.date.asc(), UserAppointment.id.asc())
        .all()
    )
    return {
        "employee": serialize_user(current_user),
        "appointments": [serialize_appointment(a) for a in appointments],
    }


@router.get("/home/{home_id}")
async def get_home(
    home_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    home = db.query(UserHome).filter(UserHome.id == home_id).first()
    return {"home": serialize_home(home)}


@router.get("/home/LL/{home_id}")
async def get_home_coordinates(
    home_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Stored coordinates, falling back to the ZIP code centroid"""
    home = db.query(UserHome).filter(UserHome.id == home_id).first()
    if not home:
        raise HTTPException(status_code=404, detail="Home not found")

    # 0.0 is a valid coordinate
    if home.latitude is not None and home.longitude is not None:
        return {"latitude": float(home.latitude), "longitude": float(home.longitude)}

    location = get_zipcode_location(home.zipcode)
    if not location or location.get("latitude") is None or location.get("longitude") is None:
        logger.error(f"❌ No coordinates for home {home.id} (zipcode {home.zipcode})")
        raise HTTPException(status_code=500, detail="Error fetching coordinates")

    return {"latitude": float(location["latitude"]), "longitude": float(location["longitude"])}


@router.get("/employeeSchedule")
async def get_employee_schedule(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    cleaners = db.query(User).filter(User.type == "cleaner").order_by(User.id).all()
    return {"employees": [serialize_user(c) for c in cleaners]}


@router.get("/cleaner/{cleaner_id}")
async def get_cleaner_profile(
    cleaner_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    cleaner = db.query(User).filter(User.id == cleaner_id, User.type == "cleaner").first()
    if not cleaner:
        raise HTTPException(status_code=404, detail="Cleaner not found")

    reviews = (
        db.query(UserReview)
        .filter(UserReview.user_id == cleaner.id)
        .order_by(UserReview.created_at.desc())
        .all()
    )
    return {"cleaner": serialize_user(cleaner), "reviews": [serialize_review(r) for r in reviews]}


@router.post("/shifts")
async def update_shifts(
    data: ShiftsUpdate,
    current_user: User = Depends(get_current_cleaner),
    db: Session = Depends(get_db),
):
    unknown = [d for d in data.days if d not in WEEKDAYS]
    if unknown:
        raise HTTPException(status_code=400, detail=f"Invalid day: {unknown[0]}")

    current_user.days_working = [d for d in WEEKDAYS if d in data.days]
    db.commit()
    logger.info(f"✅ Shifts updated for cleaner {current_user.id}: {current_user.days_working}")
    return {"user": serialize_user(current_user)}
