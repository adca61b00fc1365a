"""
Appointment booking: homeowners book and cancel cleanings, cleaners request
open jobs and homeowners approve or deny those requests.
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..models import User, UserAppointment, UserCleanerAppointment, UserHome, UserPendingRequest
from ..schemas import AppointmentCreate, AppointmentUpdate, LinensUpdate
from ..serializers import serialize_appointment, serialize_pending_request, serialize_user_summary
from .notifications import NotificationService
from .perks_config import PerksConfigService
from .service_area_validator import ServiceAreaValidator
from .user_info import TIME_WINDOW_FEES, YES_NO, UserInfoService

logger = logging.getLogger(__name__)

LARGE_HOME_BEDS = 3
LARGE_HOME_BATHS = 3


def _as_number(value: Union[str, int, float, None]) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0


def _display_count(value: Union[str, int, float, None]) -> str:
    number = _as_number(value)
    return f"{number:g}"


def large_home_info(home: UserHome) -> Dict[str, Any]:
    """
    Homes with 3+ beds and 3+ baths are usually more than one cleaner can
    finish quickly; cleaners must acknowledge that before requesting them.
    """
    is_large = _as_number(home.num_beds) >= LARGE_HOME_BEDS and _as_number(home.num_baths) >= LARGE_HOME_BATHS
    window = home.time_to_be_completed or "anytime"
    has_time_constraint = is_large and window != "anytime"

    message = None
    if is_large:
        message = (
            f"This is a larger home ({_display_count(home.num_beds)} beds, "
            f"{_display_count(home.num_baths)} baths). Kleanr will not provide extra cleaners "
            "for this job, so plan for a longer clean or bring your own help."
        )
        if has_time_constraint:
            message += (
                f" The client needs it completed within the {window} time window, "
                "which may be difficult without assistance."
            )

    return {
        "isLargeHome": is_large,
        "hasTimeConstraint": has_time_constraint,
        "requiresAcknowledgment": is_large,
        "acknowledgmentMessage": message,
    }


class AppointmentService:
    def __init__(self, db: Session, notifications: Optional[NotificationService] = None):
        self.db = db
        self.notifications = notifications or NotificationService(db)
        self.pricing = UserInfoService(db)

    # ========================================================================
    # LOOKUPS
    # ========================================================================

    def get_appointment(self, appointment_id: int) -> UserAppointment:
        appointment = self.db.query(UserAppointment).filter(UserAppointment.id == appointment_id).first()
        if not appointment:
            raise HTTPException(status_code=404, detail="Appointment not found")
        return appointment

    def get_home(self, home_id: int) -> UserHome:
        home = self.db.query(UserHome).filter(UserHome.id == home_id).first()
        if not home:
            raise HTTPException(status_code=404, detail="Home not found")
        return home

    def get_owned_appointment(self, appointment_id: int, user: User) -> UserAppointment:
        appointment = self.get_appointment(appointment_id)
        if appointment.user_id != user.id:
            raise HTTPException(status_code=403, detail="Not authorized to update this appointment")
        return appointment

    # ========================================================================
    # MARKETPLACE
    # ========================================================================

    def list_unassigned(self, viewer: User) -> List[UserAppointment]:
        """
        Open jobs: unassigned, upcoming, not completed. Homes with a preferred
        cleaner only reach the market once the client opens them. Jobs still
        inside their early-access window are hidden from non-platinum cleaners.
        """
        appointments = (
            self.db.query(UserAppointment)
            .join(UserHome, UserAppointment.home_id == UserHome.id)
            .filter(
                UserAppointment.has_been_assigned.is_(False),
                UserAppointment.completed.is_(False),
                UserAppointment.date >= date.today(),
                UserAppointment.client_response_pending.is_(False),
                UserHome.outside_service_area.is_(False),
            )
            .order_by(UserAppointment.date.asc(), UserAppointment.id.asc())
            .all()
        )
        appointments = [a for a in appointments if a.open_to_market or not a.home.preferred_cleaner_id]

        if viewer.type != "cleaner":
            return appointments

        perks = PerksConfigService(self.db)
        early_access = perks.has_early_access(viewer)
        now = datetime.utcnow()
        return [a for a in appointments if perks.visible_during_early_access(a, early_access, now)]

    def get_assigned_employees(self, appointment: UserAppointment) -> List[Dict[str, Any]]:
        ids = [int(e) for e in (appointment.employees_assigned or []) if str(e).isdigit()]
        if not ids:
            return []
        cleaners = self.db.query(User).filter(User.id.in_(ids)).all()
        return [serialize_user_summary(c) for c in cleaners]

    def list_for_home(self, home_id: int) -> List[UserAppointment]:
        return (
            self.db.query(UserAppointment)
            .filter(UserAppointment.home_id == home_id)
            .order_by(UserAppointment.date.asc())
            .all()
        )

    # ========================================================================
    # HOMEOWNER BOOKING
    # ========================================================================

    def create(self, user: User, data: AppointmentCreate) -> List[UserAppointment]:
        home = self.get_home(data.home_id)
        if home.user_id != user.id:
            raise HTTPException(status_code=403, detail="Not authorized to book this home")

        validator = ServiceAreaValidator(self.db)
        served, message = validator.check_location(
            zipcode=home.zipcode,
            city=home.city,
            state=home.state,
            latitude=home.latitude,
            longitude=home.longitude,
        )
        if not served:
            home.outside_service_area = True
            self.db.commit()
            raise HTTPException(
                status_code=400,
                detail={
                    "error": "This home is outside our service area",
                    "outsideServiceArea": True,
                    "outsideAreaMessage": message,
                },
            )

        time_window = data.time_to_be_completed or home.time_to_be_completed or "anytime"
        if time_window not in TIME_WINDOW_FEES:
            raise HTTPException(status_code=400, detail="Invalid time window")

        # Preferred-cleaner homes go to that cleaner first, not the market
        early_access_until = None
        if not home.preferred_cleaner_id:
            early_access_until = PerksConfigService(self.db).early_access_until()

        created = []
        for entry in data.date_array:
            if entry.bring_sheets not in YES_NO or entry.bring_towels not in YES_NO:
                raise HTTPException(status_code=400, detail="bringSheets and bringTowels must be 'yes' or 'no'")
            appointment = UserAppointment(
                user_id=user.id,
                home_id=home.id,
                date=entry.date,
                price=entry.price,
                paid=False,
                bring_sheets=entry.bring_sheets,
                bring_towels=entry.bring_towels,
                time_to_be_completed=time_window,
                completed=False,
                has_been_assigned=False,
                employees_assigned=[],
                early_access_until=early_access_until,
            )
            self.db.add(appointment)
            self.pricing.add_appointment_to_bill(user.id, entry.price)
            created.append(appointment)

        self.db.commit()
        for appointment in created:
            self.db.refresh(appointment)
        logger.info(f"✅ {len(created)} appointment(s) booked for home {home.id} by user {user.id}")
        return created

    def update(self, appointment_id: int, user: User, data: AppointmentUpdate) -> UserAppointment:
        appointment = self.get_owned_appointment(appointment_id, user)
        self.pricing.apply_edits(
            appointment,
            bring_sheets=data.bring_sheets,
            bring_towels=data.bring_towels,
            time_window=data.time_to_be_completed,
        )
        return appointment

    def update_linens(self, appointment_id: int, user: User, data: LinensUpdate) -> UserAppointment:
        appointment = self.get_owned_appointment(appointment_id, user)
        if data.sheet_configurations is not None:
            appointment.sheet_configurations = data.sheet_configurations
        if data.towel_configurations is not None:
            appointment.towel_configurations = data.towel_configurations
        self.db.commit()
        self.db.refresh(appointment)
        return appointment

    def cancel(self, appointment_id: int, user: User, fee: float = 0) -> None:
        appointment = self.get_appointment(appointment_id)
        if appointment.user_id != user.id:
            raise HTTPException(status_code=403, detail="Not authorized to delete this appointment")

        self.pricing.remove_appointment_from_bill(appointment, cancellation_fee=fee)
        self.db.query(UserPendingRequest).filter(UserPendingRequest.appointment_id == appointment.id).delete()
        self.db.query(UserCleanerAppointment).filter(
            UserCleanerAppointment.appointment_id == appointment.id
        ).delete()
        self.db.delete(appointment)
        self.db.commit()
        logger.info(f"🗑️ Appointment {appointment_id} deleted by user {user.id} (fee={fee})")

    # ========================================================================
    # CLEANER REQUESTS
    # ========================================================================

    def booking_info(self, appointment_id: int) -> Dict[str, Any]:
        appointment = self.get_appointment(appointment_id)
        home = self.get_home(appointment.home_id)
        return {
            "appointmentId": appointment.id,
            **large_home_info(home),
            "homeInfo": {
                "numBeds": home.num_beds,
                "numBaths": home.num_baths,
                "timeToBeCompleted": home.time_to_be_completed,
                "cleanersNeeded": home.cleaners_needed,
            },
        }

    def request_employee(
        self, cleaner: User, cleaner_id: int, appointment_id: int, acknowledged: bool = False
    ) -> UserPendingRequest:
        if cleaner.type != "cleaner" or cleaner.id != cleaner_id:
            raise HTTPException(status_code=403, detail="Cleaner access required")
        if cleaner.account_frozen:
            raise HTTPException(status_code=403, detail="Your account is frozen")

        appointment = self.get_appointment(appointment_id)
        home = self.get_home(appointment.home_id)
        if appointment.has_been_assigned:
            raise HTTPException(status_code=400, detail="This appointment is already assigned")

        perks = PerksConfigService(self.db)
        if not perks.visible_during_early_access(appointment, perks.has_early_access(cleaner)):
            raise HTTPException(status_code=403, detail="This job is in early access for platinum cleaners")

        info = large_home_info(home)
        if info["requiresAcknowledgment"] and not acknowledged:
            raise HTTPException(
                status_code=400,
                detail={
                    "error": "Acknowledgment required",
                    "message": info["acknowledgmentMessage"],
                    "requiresAcknowledgment": True,
                    "isLargeHome": info["isLargeHome"],
                    "hasTimeConstraint": info["hasTimeConstraint"],
                },
            )

        existing = (
            self.db.query(UserPendingRequest)
            .filter(
                UserPendingRequest.employee_id == cleaner.id,
                UserPendingRequest.appointment_id == appointment.id,
            )
            .first()
        )
        if existing:
            raise HTTPException(status_code=400, detail="Request already sent to the client")

        request = UserPendingRequest(
            employee_id=cleaner.id,
            appointment_id=appointment.id,
            home_id=home.id,
            status="pending",
        )
        self.db.add(request)
        client = self.db.query(User).filter(User.id == appointment.user_id).first()
        if client:
            self.notifications.notify(
                client,
                "cleaner_request",
                "New Cleaner Request",
                f"{cleaner.display_name} wants to clean your home on {appointment.date.isoformat()}.",
                data={"appointmentId": appointment.id, "cleanerId": cleaner.id},
            )
        self.db.commit()
        self.db.refresh(request)
        logger.info(f"📥 Cleaner {cleaner.id} requested appointment {appointment.id}")
        return request

    def approve_request(self, homeowner: User, request_id: int, approve: bool) -> str:
        request = self.db.query(UserPendingRequest).filter(UserPendingRequest.id == request_id).first()
        if not request:
            raise HTTPException(status_code=404, detail="Request not found")

        appointment = self.get_appointment(request.appointment_id)
        if appointment.user_id != homeowner.id:
            raise HTTPException(status_code=403, detail="Not authorized to manage this request")

        cleaner = self.db.query(User).filter(User.id == request.employee_id).first()

        if not approve:
            self.db.delete(request)
            if cleaner:
                self.notifications.notify(
                    cleaner,
                    "request_denied",
                    "Request Denied",
                    f"Your request for the {appointment.date.isoformat()} cleaning was not approved.",
                    data={"appointmentId": appointment.id},
                )
            self.db.commit()
            logger.info(f"🚫 Request {request_id} denied by homeowner {homeowner.id}")
            return "Request denied"

        if appointment.has_been_assigned and appointment.employees_assigned:
            raise HTTPException(
                status_code=400,
                detail="A cleaner is already assigned to this appointment. Remove them first to approve another.",
            )

        appointment.employees_assigned = [str(request.employee_id)]
        appointment.has_been_assigned = True
        self.db.add(UserCleanerAppointment(appointment_id=appointment.id, employee_id=request.employee_id))
        self.db.delete(request)
        if cleaner:
            self.notifications.notify(
                cleaner,
                "request_approved",
                "Request Approved",
                f"You're booked for the {appointment.date.isoformat()} cleaning.",
                data={"appointmentId": appointment.id},
            )
        self.db.commit()
        logger.info(f"✅ Cleaner {request.employee_id} assigned to appointment {appointment.id}")
        return "Cleaner assigned successfully"

    def deny_request(self, user: User, cleaner_id: int, appointment_id: int) -> None:
        request = (
            self.db.query(UserPendingRequest)
            .filter(
                UserPendingRequest.employee_id == cleaner_id,
                UserPendingRequest.appointment_id == appointment_id,
            )
            .first()
        )
        if not request:
            raise HTTPException(status_code=404, detail="Request not found")

        appointment = self.db.query(UserAppointment).filter(UserAppointment.id == appointment_id).first()
        if not appointment:
            raise HTTPException(status_code=404, detail="Appointment not found")

        client = self.db.query(User).filter(User.id == appointment.user_id).first()
        if not client:
            raise HTTPException(status_code=404, detail="Client not found")

        cleaner = self.db.query(User).filter(User.id == cleaner_id).first()
        if not cleaner:
            raise HTTPException(status_code=404, detail="Cleaner not found")

        # The client removes a request, or the cleaner withdraws their own
        if user.id not in (client.id, cleaner.id):
            raise HTTPException(status_code=403, detail="Not authorized to manage this request")

        self.db.delete(request)
        self.db.commit()
        logger.info(f"🗑️ Request from cleaner {cleaner_id} on appointment {appointment_id} removed by {user.id}")

    def pending_requests_for(self, homeowner: User) -> List[Dict[str, Any]]:
        requests = (
            self.db.query(UserPendingRequest)
            .join(UserAppointment, UserPendingRequest.appointment_id == UserAppointment.id)
            .filter(UserAppointment.user_id == homeowner.id, UserPendingRequest.status == "pending")
            .order_by(UserPendingRequest.created_at.asc(), UserPendingRequest.id.asc())
            .all()
        )
        return [serialize_pending_request(r) for r in requests]


def serialize_appointments(appointments: List[UserAppointment]) -> List[Dict[str, Any]]:
    return [serialize_appointment(a) for a in appointments]
