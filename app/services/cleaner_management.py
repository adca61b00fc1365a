"""
Owner-side cleaner management: roster metrics, job history and moderation
(freeze / unfreeze / warnings).
"""

import logging
import math
from collections import defaultdict
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..email_service import send_account_frozen_email, send_account_unfrozen_email, send_warning_email
from ..models import User, UserAppointment, UserReview
from ..shared.validators import validate_email
from .notifications import NotificationService
from .user_info import parse_price

logger = logging.getLogger(__name__)

MIN_FREEZE_REASON = 5
MIN_WARNING_REASON = 10
SEVERITIES = ("minor", "major")
CLEANER_STATUSES = ("all", "active", "frozen")


def _assigned_ids(appointment: UserAppointment) -> List[str]:
    return [str(e) for e in (appointment.employees_assigned or [])]


def _share(appointment: UserAppointment) -> float:
    """A job's price split evenly among the cleaners assigned to it"""
    assigned = _assigned_ids(appointment)
    return parse_price(appointment.price) / max(len(assigned), 1)


def reliability_score(completed: int, assigned: int) -> Optional[int]:
    if assigned <= 0:
        return None
    return round(completed / assigned * 100)


class CleanerManagementService:
    def __init__(self, db: Session, notifications: Optional[NotificationService] = None):
        self.db = db
        self.notifications = notifications or NotificationService(db)

    # ========================================================================
    # LOOKUPS
    # ========================================================================

    def get_cleaner(self, cleaner_id: int) -> User:
        cleaner = self.db.query(User).filter(User.id == cleaner_id).first()
        if not cleaner:
            raise HTTPException(status_code=404, detail="Cleaner not found")
        if cleaner.type != "cleaner":
            raise HTTPException(status_code=400, detail="User is not a cleaner")
        return cleaner

    def _assigned_appointments(self) -> List[UserAppointment]:
        return self.db.query(UserAppointment).filter(UserAppointment.has_been_assigned.is_(True)).all()

    def _appointments_for(self, cleaner: User) -> List[UserAppointment]:
        cleaner_key = str(cleaner.id)
        return [a for a in self._assigned_appointments() if cleaner_key in _assigned_ids(a)]

    def _review_stats(self, cleaner_ids: List[int]) -> Dict[int, Dict[str, Any]]:
        if not cleaner_ids:
            return {}
        rows = (
            self.db.query(UserReview.user_id, func.avg(UserReview.review), func.count(UserReview.id))
            .filter(UserReview.user_id.in_(cleaner_ids))
            .group_by(UserReview.user_id)
            .all()
        )
        return {user_id: {"avgRating": float(avg or 0), "reviewCount": int(count)} for user_id, avg, count in rows}

    @staticmethod
    def _month_start(today: Optional[date] = None) -> date:
        today = today or date.today()
        return today.replace(day=1)

    # ========================================================================
    # ROSTER
    # ========================================================================

    def list_cleaners(self, status: str = "all") -> List[Dict[str, Any]]:
        query = self.db.query(User).filter(User.type == "cleaner", User.is_demo_account.is_(False))
        if status == "frozen":
            query = query.filter(User.account_frozen.is_(True))
        elif status == "active":
            query = query.filter(User.account_frozen.is_(False))
        cleaners = query.order_by(User.created_at.desc(), User.id.desc()).all()

        month_start = self._month_start()
        jobs: Dict[str, Dict[str, float]] = defaultdict(
            lambda: {"assigned": 0, "completed": 0, "total": 0.0, "monthly": 0.0}
        )
        for appointment in self._assigned_appointments():
            share = _share(appointment)
            for cleaner_key in _assigned_ids(appointment):
                stats = jobs[cleaner_key]
                stats["assigned"] += 1
                if appointment.completed:
                    stats["completed"] += 1
                    stats["total"] += share
                    if appointment.date and appointment.date >= month_start:
                        stats["monthly"] += share

        reviews = self._review_stats([c.id for c in cleaners])
        result = []
        for cleaner in cleaners:
            stats = jobs.get(str(cleaner.id), {"assigned": 0, "completed": 0, "total": 0.0, "monthly": 0.0})
            review = reviews.get(cleaner.id, {"avgRating": 0, "reviewCount": 0})
            result.append(
                {
                    "id": cleaner.id,
                    "username": cleaner.username,
                    "firstName": cleaner.first_name,
                    "lastName": cleaner.last_name,
                    "email": cleaner.email,
                    "phone": cleaner.phone,
                    "accountFrozen": cleaner.account_frozen,
                    "accountFrozenAt": cleaner.account_frozen_at,
                    "accountFrozenReason": cleaner.account_frozen_reason,
                    "createdAt": cleaner.created_at,
                    "lastLogin": cleaner.last_login,
                    "hasAvailability": bool(cleaner.days_working),
                    "warningCount": cleaner.warning_count or 0,
                    "jobsCompleted": int(stats["completed"]),
                    "avgRating": review["avgRating"],
                    "reviewCount": review["reviewCount"],
                    "reliabilityScore": reliability_score(int(stats["completed"]), int(stats["assigned"])),
                    "totalEarnings": round(stats["total"], 2),
                    "monthlyEarnings": round(stats["monthly"], 2),
                }
            )
        return result

    def get_details(self, cleaner_id: int) -> Dict[str, Any]:
        cleaner = self.get_cleaner(cleaner_id)
        appointments = self._appointments_for(cleaner)
        completed = [a for a in appointments if a.completed]

        month_start = self._month_start()
        total_earnings = sum(_share(a) for a in completed)
        monthly_earnings = sum(_share(a) for a in completed if a.date and a.date >= month_start)

        ratings = [r.review for r in self.db.query(UserReview).filter(UserReview.user_id == cleaner.id).all()]
        average_rating = sum(ratings) / len(ratings) if ratings else 0

        return {
            "cleaner": {
                "id": cleaner.id,
                "username": cleaner.username,
                "firstName": cleaner.first_name,
                "lastName": cleaner.last_name,
                "email": cleaner.email,
                "phone": cleaner.phone,
                "accountFrozen": cleaner.account_frozen,
                "accountFrozenAt": cleaner.account_frozen_at,
                "accountFrozenReason": cleaner.account_frozen_reason,
                "warningCount": cleaner.warning_count or 0,
                "createdAt": cleaner.created_at,
                "lastLogin": cleaner.last_login,
                "daysWorking": cleaner.days_working or [],
            },
            "metrics": {
                "totalJobsCompleted": len(completed),
                "totalJobsAssigned": len(appointments),
                "averageRating": round(average_rating, 1),
                "reliabilityScore": reliability_score(len(completed), len(appointments)),
                "totalReviews": len(ratings),
            },
            "earnings": {
                "totalEarnings": round(total_earnings, 2),
                "earningsThisMonth": round(monthly_earnings, 2),
                "averagePerJob": round(total_earnings / len(completed), 2) if completed else 0,
            },
        }

    def get_job_history(
        self, cleaner_id: int, page: int = 1, limit: int = 20, status: Optional[str] = None
    ) -> Dict[str, Any]:
        cleaner = self.get_cleaner(cleaner_id)
        page = max(page, 1)
        limit = max(limit, 1)

        appointments = self._appointments_for(cleaner)
        if status == "completed":
            appointments = [a for a in appointments if a.completed]
        elif status == "upcoming":
            today = date.today()
            appointments = [a for a in appointments if not a.completed and a.date >= today]
        appointments.sort(key=lambda a: (a.date, a.id), reverse=True)

        total = len(appointments)
        page_items = appointments[(page - 1) * limit : page * limit]

        ratings = {}
        if page_items:
            rows = (
                self.db.query(UserReview)
                .filter(
                    UserReview.user_id == cleaner.id,
                    UserReview.appointment_id.in_([a.id for a in page_items]),
                )
                .all()
            )
            ratings = {r.appointment_id: r.review for r in rows}

        jobs = [
            {
                "id": a.id,
                "date": a.date.isoformat(),
                "homeAddress": a.home.address if a.home else None,
                "homeCity": a.home.city if a.home else None,
                "homeState": a.home.state if a.home else None,
                "status": "completed" if a.completed else "upcoming",
                "price": round(_share(a), 2),
                "rating": ratings.get(a.id),
            }
            for a in page_items
        ]
        return {
            "jobs": jobs,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "totalPages": math.ceil(total / limit),
            },
        }

    # ========================================================================
    # MODERATION
    # ========================================================================

    def freeze(self, cleaner_id: int, reason: Optional[str], owner: User) -> Dict[str, Any]:
        reason = (reason or "").strip()
        if len(reason) < MIN_FREEZE_REASON:
            raise HTTPException(status_code=400, detail="A reason is required (at least 5 characters)")

        cleaner = self.get_cleaner(cleaner_id)
        if cleaner.account_frozen:
            raise HTTPException(status_code=400, detail="Account is already frozen")

        frozen_at = datetime.utcnow()
        cleaner.account_frozen = True
        cleaner.account_frozen_at = frozen_at
        cleaner.account_frozen_reason = reason
        cleaner.account_status_updated_by_id = owner.id

        self.notifications.notify(
            cleaner,
            "account_frozen",
            "Account Frozen",
            "Your account has been frozen. Please contact support for assistance.",
            data={"frozenAt": frozen_at.isoformat(), "reason": reason},
            email_func=send_account_frozen_email,
            email_kwargs={"cleaner_name": cleaner.display_name, "reason": reason},
        )
        self.db.commit()
        logger.info(f"🚫 Cleaner {cleaner.id} frozen by owner {owner.id}. Reason: {reason}")

        return {
            "success": True,
            "message": "Cleaner account frozen successfully",
            "cleaner": {
                "id": cleaner.id,
                "accountFrozen": True,
                "accountFrozenAt": cleaner.account_frozen_at,
                "accountFrozenReason": cleaner.account_frozen_reason,
            },
        }

    def unfreeze(self, cleaner_id: int, owner: User) -> Dict[str, Any]:
        cleaner = self.get_cleaner(cleaner_id)
        if not cleaner.account_frozen:
            raise HTTPException(status_code=400, detail="Account is not frozen")

        cleaner.account_frozen = False
        cleaner.account_frozen_at = None
        cleaner.account_frozen_reason = None
        cleaner.account_status_updated_by_id = owner.id

        self.notifications.notify(
            cleaner,
            "account_unfrozen",
            "Account Restored",
            "Your account has been restored. You now have full access to the platform.",
            data={"unfrozenAt": datetime.utcnow().isoformat()},
            email_func=send_account_unfrozen_email,
            email_kwargs={"cleaner_name": cleaner.display_name},
        )
        self.db.commit()
        logger.info(f"✅ Cleaner {cleaner.id} unfrozen by owner {owner.id}")

        return {
            "success": True,
            "message": "Cleaner account unfrozen successfully",
            "cleaner": {"id": cleaner.id, "accountFrozen": False},
        }

    def issue_warning(
        self, cleaner_id: int, reason: Optional[str], severity: str, owner: User
    ) -> Dict[str, Any]:
        reason = (reason or "").strip()
        if len(reason) < MIN_WARNING_REASON:
            raise HTTPException(status_code=400, detail="A reason is required (at least 10 characters)")
        if severity not in SEVERITIES:
            raise HTTPException(status_code=400, detail="Severity must be 'minor' or 'major'")

        cleaner = self.get_cleaner(cleaner_id)
        cleaner.warning_count = (cleaner.warning_count or 0) + 1

        self.notifications.notify(
            cleaner,
            "warning_issued",
            f"{severity.capitalize()} Warning Issued",
            f"You have received a {severity} warning: {reason}",
            data={
                "warningCount": cleaner.warning_count,
                "severity": severity,
                "reason": reason,
                "issuedAt": datetime.utcnow().isoformat(),
            },
            email_func=send_warning_email,
            email_kwargs={
                "cleaner_name": cleaner.display_name,
                "reason": reason,
                "severity": severity,
                "warning_count": cleaner.warning_count,
            },
        )
        self.db.commit()
        logger.info(f"⚠️ {severity} warning issued to cleaner {cleaner.id} by owner {owner.id}")

        return {
            "success": True,
            "message": "Warning issued successfully",
            "warningCount": cleaner.warning_count,
        }

    # ========================================================================
    # OWNER SETTINGS
    # ========================================================================

    @staticmethod
    def effective_notification_email(owner: User) -> str:
        return owner.owner_notification_email or owner.email

    def get_settings(self, owner: User) -> Dict[str, Any]:
        return {
            "email": owner.email,
            "notificationEmail": owner.owner_notification_email,
            "effectiveNotificationEmail": self.effective_notification_email(owner),
            "notifications": owner.notifications or [],
        }

    def update_notification_email(self, owner: User, email: Optional[str]) -> Dict[str, Any]:
        try:
            cleaned = validate_email((email or "").strip())
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        owner.owner_notification_email = cleaned or None
        self.db.commit()
        self.db.refresh(owner)

        return {
            "success": True,
            "message": (
                "Notification email updated successfully"
                if cleaned
                else "Notification email cleared - using main email"
            ),
            "notificationEmail": owner.owner_notification_email,
            "effectiveNotificationEmail": self.effective_notification_email(owner),
        }
