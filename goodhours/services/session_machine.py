"""ServiceSession state machine.

Student-side transitions (submit, check-in/out, cancel) require the caller to
own the session. Reviewer-side transitions (approve, reject, remove_hours)
assume the caller was authorized by the review queue; they lock the session
row so the approved-hours counter moves exactly once per transition.
"""
from __future__ import annotations
import logging
import os
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from goodhours.core.settings import settings
from goodhours.exceptions import (
    NotFoundException,
    ForbiddenException,
    InvalidStateException,
    PrematureSubmissionException,
    ValidationException,
)
from goodhours.models.service_session import (
    ServiceSession,
    SessionStatus,
    SignatureType,
    VerificationStatus,
)
from goodhours.models.opportunity import OpportunityStatus
from goodhours.models.user import User
from goodhours.services import audit
from goodhours.services import capacity
from goodhours.services.lifecycle_emails import LifecycleEmailEvent, send_lifecycle_email
from goodhours.services.notifications import (
    notify,
    notify_many,
    NotificationKind,
    organization_admin_ids,
    school_staff_ids,
)
from goodhours.services.transitions import CREDITED, allowed_operations, next_status
from goodhours.utils.datetime import ensure_aware_utc, hours_between, utc_now

logger = logging.getLogger("goodhours.sessions")

DATA_URI_PREFIX = "data:image/"


def get_session(db: Session, session_id: str, lock: bool = False) -> ServiceSession:
    q = db.query(ServiceSession).filter(ServiceSession.id == session_id)
    if lock:
        q = q.with_for_update().populate_existing()
    session = q.first()
    if not session:
        raise NotFoundException("Session not found")
    return session


def _require_owner(session: ServiceSession, student: User):
    if session.student_id != student.id:
        raise ForbiddenException("You can only act on your own sessions")


def _advance(session: ServiceSession, operation: str) -> SessionStatus:
    """Return the status ``operation`` leads to, or raise InvalidState."""
    if session.abandoned_at is not None:
        raise InvalidStateException(
            "Session was abandoned when its signup was cancelled",
            current=session.status.value,
        )
    target = next_status(session.status, operation)
    if target is None:
        raise InvalidStateException(
            f"Cannot {operation.replace('_', ' ')} a session that is {session.status.value}",
            current=session.status.value,
            allowed=allowed_operations(session),
        )
    return target


def _validate_artifact(method: SignatureType, signature_data: Optional[str],
                       file_url: Optional[str], file_name: Optional[str]):
    if method == SignatureType.DRAWN:
        if not signature_data or not signature_data.startswith(DATA_URI_PREFIX):
            raise ValidationException("A drawn signature must be an image data URI")
        return
    if not file_url or not file_name:
        raise ValidationException("A signature file reference and file name are required")
    ext = os.path.splitext(file_name)[1].lower()
    if ext not in settings.signature_file_extensions:
        allowed = ", ".join(settings.signature_file_extensions)
        raise ValidationException(f"Unsupported signature file type '{ext}'. Allowed: {allowed}")


def submit_verification(
    db: Session,
    session_id: str,
    student: User,
    method: SignatureType,
    signature_data: Optional[str] = None,
    file_url: Optional[str] = None,
    file_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ServiceSession:
    session = get_session(db, session_id, lock=True)
    _require_owner(session, student)
    target = _advance(session, "submit_verification")
    now = now or utc_now()
    opportunity = session.opportunity
    if opportunity.status == OpportunityStatus.CANCELLED:
        raise InvalidStateException(
            "Cannot submit hours for a cancelled opportunity",
            current=session.status.value,
            allowed=allowed_operations(session) - {"submit_verification"},
        )
    event_date = ensure_aware_utc(opportunity.date)
    if now < event_date:
        raise PrematureSubmissionException(
            f"Verification opens once the opportunity has taken place ({event_date.isoformat()})",
            current=session.status.value,
            allowed=allowed_operations(session) - {"submit_verification"},
        )
    _validate_artifact(method, signature_data, file_url, file_name)

    session.status = target
    session.verification_status = VerificationStatus.PENDING
    session.signature_type = method
    if method == SignatureType.DRAWN:
        session.signature_data = signature_data
    else:
        session.signature_file_url = file_url
        session.signature_file_name = file_name
    session.submitted_at = now
    session.school_id = student.school_id

    audit.record(db, "session.submit_verification", student.id, session.id,
                 signature_type=method.value, total_hours=session.total_hours)

    recipients = organization_admin_ids(db, opportunity.organization_id)
    if student.school_id:
        recipients += school_staff_ids(db, student.school_id)
    notify_many(
        db, recipients, NotificationKind.VERIFICATION_SUBMITTED, "Verification Submitted",
        f"{student.name} submitted hours for \"{opportunity.title}\"",
        {"session_id": session.id, "student_id": student.id},
    )
    db.commit()
    db.refresh(session)
    logger.info(f"[sessions] submitted session={session.id} method={method.value}")
    return session


def check_in(db: Session, session_id: str, student: User, now: Optional[datetime] = None) -> ServiceSession:
    session = get_session(db, session_id, lock=True)
    _require_owner(session, student)
    session.status = _advance(session, "check_in")
    session.check_in_time = now or utc_now()
    audit.record(db, "session.check_in", student.id, session.id)
    db.commit()
    db.refresh(session)
    return session


def check_out(db: Session, session_id: str, student: User, now: Optional[datetime] = None) -> ServiceSession:
    session = get_session(db, session_id, lock=True)
    _require_owner(session, student)
    target = _advance(session, "check_out")
    now = now or utc_now()
    # Legacy sessions are credited with measured time, not the declared duration
    session.total_hours = hours_between(session.check_in_time, now)
    session.check_out_time = now
    session.status = target
    session.school_id = student.school_id
    session.verification_status = VerificationStatus.PENDING
    audit.record(db, "session.check_out", student.id, session.id, total_hours=session.total_hours)
    db.commit()
    db.refresh(session)
    return session


def cancel_session(db: Session, session_id: str, student: User) -> ServiceSession:
    """Abandon a not-yet-started session by cancelling its signup."""
    session = get_session(db, session_id)
    _require_owner(session, student)
    _ensure_cancellable(session)
    capacity.cancel_signup(db, session.signup_id, student)
    return get_session(db, session_id)


def _ensure_cancellable(session: ServiceSession):
    if "cancel" not in allowed_operations(session):
        raise InvalidStateException(
            f"Cannot cancel a session that is {session.status.value}",
            current=session.status.value,
            allowed=allowed_operations(session),
        )


def _adjust_approved_hours(db: Session, student_id: str, delta: float):
    db.query(User).filter(User.id == student_id).update(
        {User.approved_hours: User.approved_hours + delta},
        synchronize_session=False,
    )


def approve(db: Session, session_id: str, reviewer: User, approved_hours: Optional[float] = None) -> ServiceSession:
    session = get_session(db, session_id, lock=True)
    target = _advance(session, "approve")
    if approved_hours is not None:
        if approved_hours <= 0:
            raise ValidationException("approved_hours must be > 0")
        session.total_hours = round(approved_hours, 2)
    hours = session.total_hours or 0.0

    session.status = target
    session.verification_status = VerificationStatus.APPROVED
    if session.school_id is None:
        session.school_id = session.student.school_id
    session.verified_by = reviewer.id
    session.verified_at = utc_now()
    _adjust_approved_hours(db, session.student_id, hours)

    audit.record(db, "session.approve", reviewer.id, session.id, total_hours=hours, status=target.value)
    title = session.opportunity.title
    notify(
        db, session.student_id, NotificationKind.VERIFICATION_APPROVED, "Hours Approved",
        f"Your {hours} hours for \"{title}\" have been approved.",
        {"session_id": session.id, "hours": hours},
    )
    db.commit()
    db.refresh(session)
    logger.info(f"[sessions] approved session={session.id} hours={hours} by={reviewer.id}")

    student = session.student
    send_lifecycle_email(
        LifecycleEmailEvent.HOUR_APPROVED, student.email,
        {"recipient_name": student.name, "hours": hours, "opportunity_title": title},
        user_id=reviewer.id,
    )
    return session


def reject(db: Session, session_id: str, reviewer: User, reason: Optional[str] = None) -> ServiceSession:
    session = get_session(db, session_id, lock=True)
    session.status = _advance(session, "reject")
    session.verification_status = VerificationStatus.REJECTED
    session.rejection_reason = reason
    session.verified_by = reviewer.id
    session.verified_at = utc_now()

    audit.record(db, "session.reject", reviewer.id, session.id, reason=reason)
    body = f"Your hours for \"{session.opportunity.title}\" were rejected"
    notify(
        db, session.student_id, NotificationKind.VERIFICATION_REJECTED, "Hours Rejected",
        f"{body}: {reason}" if reason else f"{body}.",
        {"session_id": session.id},
    )
    db.commit()
    db.refresh(session)
    logger.info(f"[sessions] rejected session={session.id} by={reviewer.id}")
    return session


def remove_hours(db: Session, session_id: str, reviewer: User, reason: Optional[str] = None) -> ServiceSession:
    """Irreversibly take back the hours credited by an approval."""
    session = get_session(db, session_id, lock=True)
    target = _advance(session, "remove_hours")
    hours = session.total_hours or 0.0

    session.status = target
    session.verification_status = VerificationStatus.REMOVED
    session.removed_by = reviewer.id
    session.removed_at = utc_now()
    session.removal_reason = reason
    _adjust_approved_hours(db, session.student_id, -hours)

    audit.record(db, "session.remove_hours", reviewer.id, session.id, total_hours=hours, reason=reason)
    title = session.opportunity.title
    notify(
        db, session.student_id, NotificationKind.HOURS_REMOVED, "Hours Removed",
        f"{hours} hours for \"{title}\" were removed from your record.",
        {"session_id": session.id, "hours": hours, "reason": reason},
    )
    db.commit()
    db.refresh(session)
    logger.info(f"[sessions] removed hours session={session.id} hours={hours} by={reviewer.id}")

    student = session.student
    send_lifecycle_email(
        LifecycleEmailEvent.HOUR_REMOVED, student.email,
        {"recipient_name": student.name, "hours": hours, "opportunity_title": title, "reason": reason},
        user_id=reviewer.id,
    )
    return session


def recompute_approved_hours(db: Session, student_id: str) -> float:
    """Rebuild a student's approved-hours counter from their credited sessions."""
    student = db.query(User).filter(User.id == student_id).with_for_update().first()
    if not student:
        raise NotFoundException("Student not found")
    total = db.query(func.coalesce(func.sum(ServiceSession.total_hours), 0.0)).filter(
        ServiceSession.student_id == student_id,
        ServiceSession.status.in_(list(CREDITED)),
    ).scalar()
    total = round(float(total or 0.0), 2)
    if abs((student.approved_hours or 0.0) - total) > 1e-9:
        logger.warning(f"[sessions] approved_hours drift student={student_id} stored={student.approved_hours} actual={total}")
    student.approved_hours = total
    db.commit()
    return total


def list_student_sessions(db: Session, student: User, include_abandoned: bool = False):
    q = db.query(ServiceSession).filter(ServiceSession.student_id == student.id)
    if not include_abandoned:
        q = q.filter(ServiceSession.abandoned_at.is_(None))
    return q.order_by(ServiceSession.created_at.desc()).all()


def get_session_for(db: Session, session_id: str, user: User) -> ServiceSession:
    session = get_session(db, session_id)
    _require_owner(session, user)
    return session
