"""
Platform withdrawals: moving the platform's Stripe balance to the owner's bank.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models import OwnerWithdrawal, User
from ..security_utils import generate_transaction_id
from .stripe_client import StripeClient, StripeError

logger = logging.getLogger(__name__)

MIN_WITHDRAWAL_CENTS = 100
IN_FLIGHT_STATUSES = ("pending", "processing")


def _is_row_id(value) -> bool:
    """Integer or digit string that fits a database id"""
    if isinstance(value, bool):
        return False
    text = str(value) if isinstance(value, (int, str)) else ""
    return text.isdecimal() and len(text) <= 18


def money(cents: int) -> Dict[str, Any]:
    return {"cents": cents, "dollars": f"{cents / 100:.2f}"}


def _from_timestamp(value: Optional[int]) -> Optional[datetime]:
    return datetime.utcfromtimestamp(value) if value else None


def serialize_withdrawal(w: OwnerWithdrawal) -> Dict[str, Any]:
    return {
        "id": w.id,
        "transactionId": w.transaction_id,
        "amount": money(w.amount),
        "status": w.status,
        "stripePayoutId": w.stripe_payout_id,
        "bankAccountLast4": w.bank_account_last4,
        "bankName": w.bank_name,
        "requestedAt": w.requested_at,
        "processedAt": w.processed_at,
        "completedAt": w.completed_at,
        "estimatedArrival": w.estimated_arrival,
        "failureReason": w.failure_reason,
        "description": w.description,
    }


class WithdrawalService:
    def __init__(self, db: Session, stripe: StripeClient):
        self.db = db
        self.stripe = stripe

    def _in_flight_total(self) -> tuple[int, int]:
        total, count = (
            self.db.query(func.coalesce(func.sum(OwnerWithdrawal.amount), 0), func.count(OwnerWithdrawal.id))
            .filter(OwnerWithdrawal.status.in_(IN_FLIGHT_STATUSES))
            .one()
        )
        return int(total or 0), int(count or 0)

    def _withdrawn_in_year(self, year: int) -> Dict[str, Any]:
        start, end = datetime(year, 1, 1), datetime(year + 1, 1, 1)
        total, count = (
            self.db.query(func.coalesce(func.sum(OwnerWithdrawal.amount), 0), func.count(OwnerWithdrawal.id))
            .filter(
                OwnerWithdrawal.status == "completed",
                OwnerWithdrawal.requested_at >= start,
                OwnerWithdrawal.requested_at < end,
            )
            .one()
        )
        return {**money(int(total or 0)), "count": int(count or 0), "year": year}

    def _stripe_available(self) -> tuple[int, int]:
        try:
            balance = self.stripe.retrieve_balance()
        except StripeError as e:
            raise HTTPException(status_code=500, detail="Failed to retrieve balance") from e
        available = sum(b.get("amount", 0) for b in balance.get("available", []))
        pending = sum(b.get("amount", 0) for b in balance.get("pending", []))
        return available, pending

    def get_balance(self) -> Dict[str, Any]:
        available, pending = self._stripe_available()
        in_flight, in_flight_count = self._in_flight_total()
        withdrawable = max(available - in_flight, 0)
        return {
            "available": money(available),
            "pending": money(pending),
            "pendingWithdrawals": {**money(in_flight), "count": in_flight_count},
            "withdrawableBalance": money(withdrawable),
            "withdrawnThisYear": self._withdrawn_in_year(datetime.utcnow().year),
            "currency": "usd",
        }

    def list_withdrawals(
        self, limit: int = 20, offset: int = 0, status: Optional[str] = None
    ) -> Dict[str, Any]:
        query = self.db.query(OwnerWithdrawal)
        if status:
            query = query.filter(OwnerWithdrawal.status == status)
        total = query.count()
        rows = query.order_by(OwnerWithdrawal.requested_at.desc(), OwnerWithdrawal.id.desc())
        rows = rows.offset(offset).limit(limit).all()
        return {
            "withdrawals": [serialize_withdrawal(w) for w in rows],
            "total": total,
            "limit": limit,
            "offset": offset,
        }

    def create_withdrawal(self, amount: int, description: Optional[str], owner: User) -> Dict[str, Any]:
        if amount is None or amount < MIN_WITHDRAWAL_CENTS:
            raise HTTPException(status_code=400, detail="Minimum withdrawal amount is $1.00")

        available, _ = self._stripe_available()
        in_flight, _ = self._in_flight_total()
        withdrawable = available - in_flight
        if amount > withdrawable:
            raise HTTPException(
                status_code=400,
                detail={
                    "error": "Insufficient balance",
                    "available": money(max(withdrawable, 0)),
                    "requested": money(amount),
                },
            )

        withdrawal = OwnerWithdrawal(
            transaction_id=generate_transaction_id(),
            amount=amount,
            status="pending",
            description=description or f"Withdrawal of ${amount / 100:.2f}",
            requested_at=datetime.utcnow(),
        )
        self.db.add(withdrawal)
        self.db.commit()
        self.db.refresh(withdrawal)
        logger.info(f"📥 Withdrawal {withdrawal.transaction_id} requested by owner {owner.id}: {amount} cents")

        try:
            payout = self.stripe.create_payout(
                amount=amount,
                currency="usd",
                description=f"Platform withdrawal - {withdrawal.transaction_id}",
                metadata={"withdrawalId": withdrawal.id, "transactionId": withdrawal.transaction_id},
            )
        except StripeError as e:
            withdrawal.status = "failed"
            withdrawal.failure_reason = e.message
            self.db.commit()
            logger.error(f"❌ Stripe payout failed for {withdrawal.transaction_id}: {e.message}")
            raise HTTPException(
                status_code=400, detail={"error": "Failed to create payout", "details": e.message}
            ) from e

        withdrawal.stripe_payout_id = payout.get("id")
        withdrawal.status = "processing"
        withdrawal.processed_at = datetime.utcnow()
        withdrawal.estimated_arrival = _from_timestamp(payout.get("arrival_date"))
        destination = payout.get("destination")
        withdrawal.bank_account_last4 = str(destination)[-4:] if destination else None
        self.db.commit()
        self.db.refresh(withdrawal)
        logger.info(f"✅ Payout {withdrawal.stripe_payout_id} created for {withdrawal.transaction_id}")

        return {
            "success": True,
            "withdrawal": serialize_withdrawal(withdrawal),
            "message": f"Withdrawal of ${amount / 100:.2f} initiated successfully",
        }

    def handle_payout_event(self, event: Dict[str, Any]) -> Optional[OwnerWithdrawal]:
        """
        Apply a Stripe payout.* event to the matching withdrawal.
        Payouts without our withdrawalId metadata are ignored.
        """
        data = event.get("data")
        payout = data.get("object") if isinstance(data, dict) else None
        if not isinstance(payout, dict):
            return None
        metadata = payout.get("metadata")
        withdrawal_id = metadata.get("withdrawalId") if isinstance(metadata, dict) else None
        if not _is_row_id(withdrawal_id):
            if withdrawal_id is not None:
                logger.warning(f"⚠️ Payout webhook with malformed withdrawalId {withdrawal_id!r}")
            return None

        withdrawal = self.db.query(OwnerWithdrawal).filter(OwnerWithdrawal.id == int(withdrawal_id)).first()
        if not withdrawal:
            logger.warning(f"⚠️ Payout webhook for unknown withdrawal {withdrawal_id}")
            return None

        event_type = event.get("type")
        if event_type == "payout.paid":
            withdrawal.status = "completed"
            withdrawal.completed_at = datetime.utcnow()
        elif event_type == "payout.failed":
            withdrawal.status = "failed"
            withdrawal.failure_reason = str(payout.get("failure_message") or "Payout failed")
        elif event_type == "payout.canceled":
            withdrawal.status = "canceled"
        else:
            return withdrawal

        self.db.commit()
        logger.info(f"📥 Withdrawal {withdrawal.transaction_id} -> {withdrawal.status} ({event_type})")
        return withdrawal
