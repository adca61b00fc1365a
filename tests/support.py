"""
Shared helpers for API tests: model factories, bearer headers and a fake
Stripe client that records the calls made to it.
"""

from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from app.models import User, UserAppointment, UserHome
from app.security_utils import create_session_token, hash_password
from app.services.stripe_client import StripeError

PASSWORD = "secret123"


def make_user(db, username: str, user_type: str = "homeowner", **fields) -> User:
    values = {
        "email": f"{username}@example.com",
        "notifications": ["email", "phone"],
        "days_working": [],
    }
    values.update(fields)
    user = User(username=username, password=hash_password(PASSWORD), type=user_type, **values)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_session_token(user.id)}"}


def make_home(db, owner: User, **fields) -> UserHome:
    values = {
        "nickname": "Beach House",
        "address": "12 Ocean Ave",
        "city": "Miami",
        "state": "FL",
        "zipcode": "33139",
        "num_beds": "2",
        "num_baths": "1",
        "time_to_be_completed": "anytime",
    }
    values.update(fields)
    home = UserHome(user_id=owner.id, **values)
    db.add(home)
    db.commit()
    db.refresh(home)
    return home


def make_appointment(db, home: UserHome, days_ahead: int = 7, **fields) -> UserAppointment:
    values = {
        "date": date.today() + timedelta(days=days_ahead),
        "price": "150",
        "bring_sheets": "no",
        "bring_towels": "no",
        "time_to_be_completed": "anytime",
        "employees_assigned": [],
    }
    values.update(fields)
    appointment = UserAppointment(user_id=home.user_id, home_id=home.id, **values)
    db.add(appointment)
    db.commit()
    db.refresh(appointment)
    return appointment


def minimal_pdf() -> bytes:
    return b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\ntrailer\n<< /Root 1 0 R >>\n%%EOF\n"


class FakeStripeClient:
    """Stand-in for StripeClient: fixed balance, recorded payouts"""

    def __init__(self, available: int = 50_000, pending: int = 2_500):
        self.available = available
        self.pending = pending
        self.payouts: List[Dict[str, Any]] = []
        self.fail_payouts: Optional[str] = None

    def retrieve_balance(self) -> Dict[str, Any]:
        return {
            "available": [{"amount": self.available, "currency": "usd"}],
            "pending": [{"amount": self.pending, "currency": "usd"}],
        }

    def create_payout(
        self,
        amount: int,
        currency: str = "usd",
        description: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        if self.fail_payouts:
            raise StripeError(self.fail_payouts, 400)
        payout = {
            "id": f"po_test_{len(self.payouts) + 1}",
            "amount": amount,
            "currency": currency,
            "description": description,
            "metadata": metadata or {},
            "arrival_date": 1_900_000_000,
            "destination": "ba_1234567890",
            "status": "pending",
        }
        self.payouts.append(payout)
        return payout
