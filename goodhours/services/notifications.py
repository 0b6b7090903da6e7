"""In-app notifications.

``notify`` only stages a row in the caller's transaction, so a notification
exists exactly when the state change that caused it was committed.
"""
from __future__ import annotations
import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from goodhours.exceptions import NotFoundException, ForbiddenException
from goodhours.models.notification import Notification
from goodhours.models.user import User, UserRole, SCHOOL_STAFF_ROLES

logger = logging.getLogger("goodhours.notifications")


class NotificationKind(str, Enum):
    SIGNUP_CONFIRMED = "SIGNUP_CONFIRMED"
    SIGNUP_WAITLISTED = "SIGNUP_WAITLISTED"
    WAITLIST_PROMOTED = "WAITLIST_PROMOTED"
    VERIFICATION_SUBMITTED = "VERIFICATION_SUBMITTED"
    VERIFICATION_APPROVED = "VERIFICATION_APPROVED"
    VERIFICATION_REJECTED = "VERIFICATION_REJECTED"
    HOURS_REMOVED = "HOURS_REMOVED"
    TRUST_REQUESTED = "TRUST_REQUESTED"
    TRUST_APPROVED = "TRUST_APPROVED"
    TRUST_REJECTED = "TRUST_REJECTED"
    TRUST_BLOCKED = "TRUST_BLOCKED"
    OPPORTUNITY_CANCELLED = "OPPORTUNITY_CANCELLED"


def notify(db: Session, user_id: str, kind: NotificationKind, title: str, body: str,
           data: Optional[Dict[str, Any]] = None) -> Notification:
    notification = Notification(user_id=user_id, kind=kind.value, title=title, body=body, data=data or {})
    db.add(notification)
    logger.debug(f"[notify] user={user_id} kind={kind.value}")
    return notification


def notify_many(db: Session, user_ids: List[str], kind: NotificationKind, title: str, body: str,
                data: Optional[Dict[str, Any]] = None) -> int:
    for user_id in dict.fromkeys(user_ids):
        notify(db, user_id, kind, title, body, data)
    return len(set(user_ids))


def organization_admin_ids(db: Session, organization_id: str) -> List[str]:
    rows = db.query(User.id).filter(
        User.organization_id == organization_id,
        User.role == UserRole.org_admin,
    ).all()
    return [r[0] for r in rows]


def school_staff_ids(db: Session, school_id: str) -> List[str]:
    rows = db.query(User.id).filter(
        User.school_id == school_id,
        User.role.in_(list(SCHOOL_STAFF_ROLES)),
    ).all()
    return [r[0] for r in rows]


def list_for_user(db: Session, user: User, unread_only: bool = False, limit: int = 50) -> List[Notification]:
    q = db.query(Notification).filter(Notification.user_id == user.id)
    if unread_only:
        q = q.filter(Notification.is_read.is_(False))
    return q.order_by(Notification.created_at.desc()).limit(limit).all()


def mark_read(db: Session, user: User, notification_id: str) -> Notification:
    notification = db.query(Notification).filter(Notification.id == notification_id).first()
    if not notification:
        raise NotFoundException("Notification not found")
    if notification.user_id != user.id:
        raise ForbiddenException("Not your notification")
    notification.is_read = True
    db.commit()
    db.refresh(notification)
    return notification


def mark_all_read(db: Session, user: User) -> int:
    updated = db.query(Notification).filter(
        Notification.user_id == user.id,
        Notification.is_read.is_(False),
    ).update({Notification.is_read: True}, synchronize_session=False)
    db.commit()
    return updated
