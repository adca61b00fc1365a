"""
Appointment pricing adjustments.

Keeps an appointment's stored price and its owner's running bill in sync
when the homeowner toggles sheets/towels or picks a different time window.
Every change is applied as a fixed delta rather than a full re-quote.
"""

import logging
from typing import Optional, Union

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..models import UserAppointment, UserBill

logger = logging.getLogger(__name__)

SHEET_FEE = 30
TOWEL_FEE = 12

# Narrower arrival windows cost more; "anytime" is the base price
TIME_WINDOW_FEES = {
    "anytime": 0,
    "10-3": 25,
    "11-4": 25,
    "12-2": 30,
}

# Window label -> (start hour, end hour) on a 24h clock
TIME_WINDOW_HOURS = {
    "anytime": None,
    "10-3": (10, 15),
    "11-4": (11, 16),
    "12-2": (12, 14),
}

YES_NO = ("yes", "no")

BASE_PRICE = 150
EXTRA_BED_BATH_FEE = 50


def parse_price(price: Union[str, float, int, None]) -> float:
    if price in (None, ""):
        return 0.0
    try:
        return float(price)
    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid price: {price}") from e


def format_price(amount: float) -> str:
    """Prices are stored as dollar strings: "150" or "150.50" """
    amount = round(amount, 2)
    if amount == int(amount):
        return str(int(amount))
    return f"{amount:.2f}"


def _count(value: Union[str, float, int, None]) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0


def quote_price(
    num_beds: Union[str, int, None],
    num_baths: Union[str, int, None],
    bring_sheets: str = "no",
    bring_towels: str = "no",
    time_window: str = "anytime",
) -> float:
    """
    Platform list price for a home: base for 1 bed / 1 bath, plus a fee for
    every extra bed or bath, linens and the time-window surcharge.
    """
    extra = max(_count(num_beds) - 1, 0) + max(_count(num_baths) - 1, 0)
    price = BASE_PRICE + extra * EXTRA_BED_BATH_FEE
    if bring_sheets == "yes":
        price += SHEET_FEE
    if bring_towels == "yes":
        price += TOWEL_FEE
    return price + TIME_WINDOW_FEES.get(time_window or "anytime", 0)


class UserInfoService:
    """Price/bill bookkeeping for a homeowner's appointments"""

    def __init__(self, db: Session):
        self.db = db

    # ========================================================================
    # BILL
    # ========================================================================

    def get_or_create_bill(self, user_id: int) -> UserBill:
        bill = self.db.query(UserBill).filter(UserBill.user_id == user_id).first()
        if not bill:
            bill = UserBill(user_id=user_id, cancellation_fee=0, appointment_due=0, total_due=0)
            self.db.add(bill)
            self.db.flush()
        return bill

    def add_appointment_to_bill(self, user_id: int, price: Union[str, float]) -> UserBill:
        """A newly booked appointment is owed in full"""
        bill = self.get_or_create_bill(user_id)
        amount = parse_price(price)
        bill.appointment_due = (bill.appointment_due or 0) + amount
        bill.total_due = (bill.total_due or 0) + amount
        return bill

    def remove_appointment_from_bill(
        self, appointment: UserAppointment, cancellation_fee: float = 0
    ) -> UserBill:
        """
        Cancel an appointment against the owner's bill.

        Unpaid appointments come off appointment_due; paid ones were already
        settled so nothing is subtracted. The cancellation fee is always added.
        No balance ever goes below zero.
        """
        if cancellation_fee < 0:
            raise HTTPException(status_code=400, detail="Cancellation fee cannot be negative")

        bill = self.get_or_create_bill(appointment.user_id)
        appointment_due = bill.appointment_due or 0
        if not appointment.paid:
            appointment_due = max(appointment_due - parse_price(appointment.price), 0)

        bill.appointment_due = appointment_due
        bill.cancellation_fee = (bill.cancellation_fee or 0) + cancellation_fee
        bill.total_due = max(bill.cancellation_fee + bill.appointment_due, 0)

        logger.info(
            f"🧾 Bill for user {appointment.user_id} after cancelling appointment {appointment.id}: "
            f"due={bill.appointment_due}, fee={bill.cancellation_fee}, total={bill.total_due}"
        )
        return bill

    # ========================================================================
    # PRICE DELTAS
    # ========================================================================

    def _adjust(self, appointment: UserAppointment, delta: float) -> None:
        if delta:
            new_price = max(parse_price(appointment.price) + delta, 0)
            appointment.price = format_price(new_price)

            # Paid appointments only pick up surcharges; credits are not refunded through the bill
            if not appointment.paid or delta > 0:
                bill = self.get_or_create_bill(appointment.user_id)
                bill.appointment_due = max((bill.appointment_due or 0) + delta, 0)
                bill.total_due = max((bill.total_due or 0) + delta, 0)
            logger.info(f"💲 Appointment {appointment.id} price adjusted by {delta:+g} -> {appointment.price}")

    def _apply_delta(self, appointment: UserAppointment, delta: float) -> str:
        self._adjust(appointment, delta)
        self.db.commit()
        self.db.refresh(appointment)
        return appointment.price

    def reprice(self, appointment: UserAppointment, new_price: float) -> str:
        """Move an appointment to a new quote, carrying the difference onto the bill"""
        return self._apply_delta(appointment, new_price - parse_price(appointment.price))

    @staticmethod
    def validate_edits(
        bring_sheets: Optional[str] = None,
        bring_towels: Optional[str] = None,
        time_window: Optional[str] = None,
    ) -> None:
        if bring_towels is not None and bring_towels not in YES_NO:
            raise HTTPException(status_code=400, detail="bringTowels must be 'yes' or 'no'")
        if bring_sheets is not None and bring_sheets not in YES_NO:
            raise HTTPException(status_code=400, detail="bringSheets must be 'yes' or 'no'")
        if time_window is not None and time_window not in TIME_WINDOW_FEES:
            raise HTTPException(status_code=400, detail="Invalid time window")

    @staticmethod
    def _toggle_delta(old_value: Optional[str], new_value: str, fee: int) -> int:
        old_value = old_value or "no"
        if old_value == new_value:
            return 0
        return fee if new_value == "yes" else -fee

    def edit_sheets(self, appointment: UserAppointment, bring_sheets: str) -> str:
        """Toggle company-provided sheets (+/- $30)"""
        self.validate_edits(bring_sheets=bring_sheets)
        delta = self._toggle_delta(appointment.bring_sheets, bring_sheets, SHEET_FEE)
        appointment.bring_sheets = bring_sheets
        return self._apply_delta(appointment, delta)

    def edit_towels(self, appointment: UserAppointment, bring_towels: str) -> str:
        """Toggle company-provided towels (+/- $12)"""
        self.validate_edits(bring_towels=bring_towels)
        delta = self._toggle_delta(appointment.bring_towels, bring_towels, TOWEL_FEE)
        appointment.bring_towels = bring_towels
        return self._apply_delta(appointment, delta)

    def edit_time(self, appointment: UserAppointment, time_window: str) -> str:
        """Switch arrival window; the price moves by the fee difference"""
        self.validate_edits(time_window=time_window)
        old_fee = TIME_WINDOW_FEES.get(appointment.time_to_be_completed or "anytime", 0)
        delta = TIME_WINDOW_FEES[time_window] - old_fee
        appointment.time_to_be_completed = time_window
        return self._apply_delta(appointment, delta)

    def apply_edits(
        self,
        appointment: UserAppointment,
        bring_sheets: Optional[str] = None,
        bring_towels: Optional[str] = None,
        time_window: Optional[str] = None,
    ) -> str:
        """
        Apply several edits at once. Everything is validated before the first
        change, and the price and bill are committed together.
        """
        self.validate_edits(bring_sheets, bring_towels, time_window)

        if bring_towels is not None:
            self._adjust(appointment, self._toggle_delta(appointment.bring_towels, bring_towels, TOWEL_FEE))
            appointment.bring_towels = bring_towels
        if bring_sheets is not None:
            self._adjust(appointment, self._toggle_delta(appointment.bring_sheets, bring_sheets, SHEET_FEE))
            appointment.bring_sheets = bring_sheets
        if time_window is not None:
            old_fee = TIME_WINDOW_FEES.get(appointment.time_to_be_completed or "anytime", 0)
            self._adjust(appointment, TIME_WINDOW_FEES[time_window] - old_fee)
            appointment.time_to_be_completed = time_window

        self.db.commit()
        self.db.refresh(appointment)
        return appointment.price
