"""
Homeowner homes: add, edit and remove a home, keeping its
outside_service_area flag in step with the active service-area config.
"""

import logging
from typing import Any, Dict, Tuple

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..models import User, UserAppointment, UserCleanerAppointment, UserHome, UserPendingRequest
from ..schemas import HomeCreate, HomeUpdate
from ..shared.validators import validate_zipcode
from .service_area_validator import ServiceAreaValidator, normalize_state
from .user_info import TIME_WINDOW_FEES, YES_NO, UserInfoService

logger = logging.getLogger(__name__)

LOCATION_FIELDS = ("address", "city", "state", "zipcode", "latitude", "longitude")


def _check_home_values(values: Dict[str, Any]) -> Dict[str, Any]:
    if values.get("zipcode") is not None:
        try:
            values["zipcode"] = validate_zipcode(values["zipcode"])
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
    if values.get("state") is not None:
        values["state"] = normalize_state(values["state"]) or values["state"].strip()
    for field in ("sheets_provided", "towels_provided"):
        if values.get(field) is not None and values[field] not in YES_NO:
            raise HTTPException(status_code=400, detail=f"{field} must be 'yes' or 'no'")
    window = values.get("time_to_be_completed")
    if window is not None and window not in TIME_WINDOW_FEES:
        raise HTTPException(status_code=400, detail="Invalid time window")
    return values


class HomeService:
    def __init__(self, db: Session):
        self.db = db
        self.validator = ServiceAreaValidator(db)

    def _get_owned_home(self, home_id: int, user: User) -> UserHome:
        home = self.db.query(UserHome).filter(UserHome.id == home_id).first()
        if not home:
            raise HTTPException(status_code=404, detail="Home not found")
        if home.user_id != user.id:
            raise HTTPException(status_code=403, detail="Not authorized to modify this home")
        return home

    def _area_status(self, home: UserHome) -> Tuple[bool, Dict[str, Any]]:
        config = self.validator.get_config_dict()
        outside = not self.validator.is_home_in_area(home, config)
        home.outside_service_area = outside
        return outside, {
            "outsideServiceArea": outside,
            "outsideAreaMessage": config["outsideAreaMessage"] if outside else None,
        }

    def add_home(self, user: User, data: HomeCreate) -> Tuple[UserHome, Dict[str, Any]]:
        values = _check_home_values(data.model_dump(exclude_none=True))
        home = UserHome(user_id=user.id, **values)
        self.db.add(home)
        outside, area = self._area_status(home)
        self.db.commit()
        self.db.refresh(home)

        if outside:
            logger.warning(f"⚠️ Home {home.id} for user {user.id} is outside the service area ({home.zipcode})")
        else:
            logger.info(f"✅ Home {home.id} added for user {user.id}")
        return home, area

    def update_home(self, user: User, data: HomeUpdate) -> Tuple[UserHome, Dict[str, Any]]:
        home = self._get_owned_home(data.id, user)
        values = _check_home_values(data.model_dump(exclude_none=True, exclude={"id"}))
        for field, value in values.items():
            setattr(home, field, value)

        if any(field in values for field in LOCATION_FIELDS):
            _, area = self._area_status(home)
        else:
            area = {"outsideServiceArea": home.outside_service_area, "outsideAreaMessage": None}

        self.db.commit()
        self.db.refresh(home)
        logger.info(f"✅ Home {home.id} updated by user {user.id}")
        return home, area

    def delete_home(self, user: User, home_id: int) -> int:
        """
        Delete a home with its unpaid, not completed appointments (taken off
        the bill). Homes with paid or completed cleanings are kept for history.
        """
        home = self._get_owned_home(home_id, user)
        appointments = self.db.query(UserAppointment).filter(UserAppointment.home_id == home.id).all()
        if any(a.paid or a.completed for a in appointments):
            raise HTTPException(
                status_code=400,
                detail="This home has paid or completed appointments and cannot be deleted",
            )

        pricing = UserInfoService(self.db)
        appointment_ids = [a.id for a in appointments]
        if appointment_ids:
            self.db.query(UserPendingRequest).filter(
                UserPendingRequest.appointment_id.in_(appointment_ids)
            ).delete(synchronize_session=False)
            self.db.query(UserCleanerAppointment).filter(
                UserCleanerAppointment.appointment_id.in_(appointment_ids)
            ).delete(synchronize_session=False)
        for appointment in appointments:
            pricing.remove_appointment_from_bill(appointment)
            self.db.delete(appointment)

        self.db.delete(home)
        self.db.commit()
        logger.info(f"🗑️ Home {home_id} deleted by user {user.id} with {len(appointments)} appointment(s)")
        return len(appointments)
