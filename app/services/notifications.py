"""
In-app notifications with an optional email copy.

Every event is stored as a Notification row; users who opted into the
"email" channel also get the matching email, sent after the response via
FastAPI background tasks.
"""

import logging
from typing import Any, Awaitable, Callable, Optional

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from ..models import Notification, User

logger = logging.getLogger(__name__)


def wants_email(user: User) -> bool:
    return bool(user.email) and "email" in (user.notifications or [])


async def _deliver_email(email_func: Callable[..., Awaitable[Any]], notification_type: str, **kwargs) -> None:
    try:
        await email_func(**kwargs)
        logger.info(f"✅ {notification_type} email sent to {kwargs.get('to')}")
    except Exception as e:
        # The in-app notification is already stored; email is best effort
        logger.error(f"❌ Failed to send {notification_type} email to {kwargs.get('to')}: {e}")


class NotificationService:
    def __init__(self, db: Session, background_tasks: Optional[BackgroundTasks] = None):
        self.db = db
        self.background_tasks = background_tasks

    def notify(
        self,
        user: User,
        notification_type: str,
        title: str,
        body: Optional[str] = None,
        data: Optional[dict] = None,
        email_func: Optional[Callable[..., Awaitable[Any]]] = None,
        email_kwargs: Optional[dict] = None,
    ) -> Notification:
        """Store a notification (caller commits) and queue the email copy"""
        notification = Notification(
            user_id=user.id,
            type=notification_type,
            title=title,
            body=body,
            data=data or {},
        )
        self.db.add(notification)
        logger.info(f"🔔 {notification_type} notification for user {user.id}")

        if email_func and wants_email(user):
            self.send_email(email_func, notification_type, to=user.email, **(email_kwargs or {}))
        return notification

    def send_email(self, email_func: Callable[..., Awaitable[Any]], notification_type: str, **kwargs) -> None:
        if self.background_tasks is None:
            logger.debug(f"No background task queue - {notification_type} email not sent")
            return
        self.background_tasks.add_task(_deliver_email, email_func, notification_type, **kwargs)

    def list_for_user(self, user_id: int, unread_only: bool = False, limit: int = 50) -> list[Notification]:
        query = self.db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()

    def mark_all_read(self, user_id: int) -> int:
        updated = (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .update({Notification.is_read: True}, synchronize_session=False)
        )
        self.db.commit()
        return updated
