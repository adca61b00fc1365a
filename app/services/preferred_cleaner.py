"""
Preferred cleaner flow.

A homeowner can name a preferred cleaner for a home. New appointments for
that home go to the preferred cleaner first; they accept or decline, and on
a decline the homeowner either cancels or opens the job to the marketplace
at the platform price.
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session, joinedload

from ..email_service import send_preferred_cleaner_declined_email
from ..models import User, UserAppointment, UserCleanerAppointment, UserHome
from .notifications import NotificationService
from .perks_config import PerksConfigService
from .user_info import UserInfoService, format_price, parse_price, quote_price

logger = logging.getLogger(__name__)

CLIENT_ACTIONS = ("cancel", "open_to_market")


def _appointment_summary(appointment: UserAppointment) -> Dict[str, Any]:
    home = appointment.home
    client = appointment.user
    return {
        "id": appointment.id,
        "date": appointment.date.isoformat(),
        "price": appointment.price,
        "timeWindow": appointment.time_to_be_completed,
        "client": {"id": client.id, "name": client.display_name} if client else None,
        "home": {
            "id": home.id,
            "nickName": home.nickname,
            "address": f"{home.address}, {home.city}",
            "beds": home.num_beds,
            "baths": home.num_baths,
        }
        if home
        else None,
    }


class PreferredCleanerService:
    def __init__(self, db: Session, notifications: Optional[NotificationService] = None):
        self.db = db
        self.notifications = notifications or NotificationService(db)

    def _get_appointment(self, appointment_id: int) -> UserAppointment:
        appointment = (
            self.db.query(UserAppointment)
            .options(joinedload(UserAppointment.home), joinedload(UserAppointment.user))
            .filter(UserAppointment.id == appointment_id)
            .first()
        )
        if not appointment:
            raise HTTPException(status_code=404, detail="Appointment not found")
        return appointment

    @staticmethod
    def _require_preferred(appointment: UserAppointment, cleaner: User) -> None:
        if not appointment.home or appointment.home.preferred_cleaner_id != cleaner.id:
            raise HTTPException(status_code=403, detail="You are not the preferred cleaner for this home")

    # ========================================================================
    # CLEANER SIDE
    # ========================================================================

    def get_client_appointments(self, cleaner: User) -> Dict[str, List[Dict[str, Any]]]:
        """Future, non-market appointments of homes that prefer this cleaner"""
        grouped = {"pending": [], "declined": [], "upcoming": []}
        appointments = (
            self.db.query(UserAppointment)
            .join(UserHome, UserAppointment.home_id == UserHome.id)
            .filter(
                UserHome.preferred_cleaner_id == cleaner.id,
                UserAppointment.date >= date.today(),
                UserAppointment.open_to_market.is_(False),
            )
            .order_by(UserAppointment.date.asc(), UserAppointment.id.asc())
            .all()
        )

        cleaner_key = str(cleaner.id)
        for appointment in appointments:
            summary = _appointment_summary(appointment)
            if appointment.preferred_cleaner_declined:
                if appointment.client_response_pending:
                    grouped["declined"].append({**summary, "awaitingClientResponse": True})
            elif appointment.has_been_assigned and cleaner_key in (appointment.employees_assigned or []):
                grouped["upcoming"].append(summary)
            else:
                grouped["pending"].append(summary)
        return grouped

    def accept(self, appointment_id: int, cleaner: User) -> Dict[str, Any]:
        appointment = self._get_appointment(appointment_id)
        self._require_preferred(appointment, cleaner)
        if appointment.preferred_cleaner_declined:
            raise HTTPException(status_code=400, detail="This appointment has been declined")
        if appointment.has_been_assigned:
            raise HTTPException(status_code=400, detail="This appointment is already assigned")

        appointment.has_been_assigned = True
        appointment.employees_assigned = [str(cleaner.id)]
        self.db.add(UserCleanerAppointment(appointment_id=appointment.id, employee_id=cleaner.id))
        self.notifications.notify(
            appointment.user,
            "preferred_cleaner_accepted",
            "Cleaning Confirmed",
            f"{cleaner.display_name} confirmed your cleaning on {appointment.date.isoformat()}.",
            data={"appointmentId": appointment.id},
        )
        self.db.commit()
        logger.info(f"✅ Preferred cleaner {cleaner.id} accepted appointment {appointment.id}")

        return {
            "success": True,
            "appointment": {"id": appointment.id, "date": appointment.date.isoformat(), "assigned": True},
        }

    def decline(self, appointment_id: int, cleaner: User) -> Dict[str, Any]:
        appointment = self._get_appointment(appointment_id)
        self._require_preferred(appointment, cleaner)
        if appointment.preferred_cleaner_declined:
            raise HTTPException(status_code=400, detail="This appointment has already been declined")
        if appointment.has_been_assigned and appointment.employees_assigned:
            raise HTTPException(status_code=400, detail="This appointment is already assigned to cleaners")

        appointment.preferred_cleaner_declined = True
        appointment.declined_at = datetime.utcnow()
        appointment.client_response_pending = True

        client = appointment.user
        self.notifications.notify(
            client,
            "preferred_cleaner_declined",
            "Cleaner Unavailable",
            f"{cleaner.display_name} is unavailable for {appointment.date.isoformat()}. "
            "You can cancel or open the appointment to other cleaners.",
            data={"appointmentId": appointment.id},
            email_func=send_preferred_cleaner_declined_email,
            email_kwargs={
                "client_name": client.display_name,
                "cleaner_name": cleaner.display_name,
                "appointment_date": appointment.date.isoformat(),
            },
        )
        self.db.commit()
        logger.info(f"⚠️ Preferred cleaner {cleaner.id} declined appointment {appointment.id}")

        return {
            "success": True,
            "appointment": {
                "id": appointment.id,
                "date": appointment.date.isoformat(),
                "clientResponsePending": True,
            },
        }

    # ========================================================================
    # CLIENT SIDE
    # ========================================================================

    def pending_responses(self, homeowner: User) -> List[Dict[str, Any]]:
        appointments = (
            self.db.query(UserAppointment)
            .filter(
                UserAppointment.user_id == homeowner.id,
                UserAppointment.client_response_pending.is_(True),
            )
            .order_by(UserAppointment.date.asc())
            .all()
        )
        return [_appointment_summary(a) for a in appointments]

    def respond(self, appointment_id: int, homeowner: User, action: str) -> Dict[str, Any]:
        if action not in CLIENT_ACTIONS:
            raise HTTPException(status_code=400, detail="Invalid action. Must be 'cancel' or 'open_to_market'")

        appointment = self._get_appointment(appointment_id)
        if appointment.user_id != homeowner.id:
            raise HTTPException(status_code=403, detail="This is not your appointment")
        if not appointment.client_response_pending:
            raise HTTPException(status_code=400, detail="No response is pending for this appointment")

        pricing = UserInfoService(self.db)

        if action == "cancel":
            pricing.remove_appointment_from_bill(appointment)
            self.db.delete(appointment)
            self.db.commit()
            logger.info(f"🗑️ Appointment {appointment_id} cancelled after preferred cleaner declined")
            return {"success": True, "action": "cancelled", "message": "Appointment has been cancelled"}

        home = appointment.home
        original_price = parse_price(appointment.price)
        platform_price = quote_price(
            home.num_beds,
            home.num_baths,
            appointment.bring_sheets,
            appointment.bring_towels,
            appointment.time_to_be_completed,
        )

        now = datetime.utcnow()
        appointment.client_response_pending = False
        appointment.open_to_market = True
        appointment.opened_to_market_at = now
        appointment.business_owner_price = format_price(original_price)
        appointment.has_been_assigned = False
        appointment.employees_assigned = []
        appointment.early_access_until = PerksConfigService(self.db).early_access_until(now)
        pricing.reprice(appointment, platform_price)
        logger.info(
            f"📣 Appointment {appointment.id} opened to market: {original_price:g} -> {platform_price:g}"
        )

        return {
            "success": True,
            "action": "opened_to_market",
            "message": "Appointment is now open to other cleaners",
            "originalPrice": original_price,
            "newPrice": platform_price,
        }
