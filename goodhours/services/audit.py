"""Audit trail for session transitions and other privileged actions.

Each event is persisted as an AuditLog row and also emitted as a
single-line ``AUDIT k=v`` log record so it is easy to index.
"""
from __future__ import annotations
import logging
from typing import Any, List, Optional

from sqlalchemy.orm import Session

from goodhours.exceptions import NotFoundException, ForbiddenException
from goodhours.models.audit_log import AuditLog
from goodhours.models.service_session import ServiceSession
from goodhours.models.user import User, UserRole
from goodhours.utils.datetime import utc_now

_logger = logging.getLogger("goodhours.audit")


def _emit(event: str, user_id: Optional[str] = None, **data: Any):
    payload = {"ts": utc_now().isoformat(), "event": event}
    if user_id:
        payload["user_id"] = user_id
    payload.update(data)
    parts = [f"{k}={repr(v)}" for k, v in payload.items()]
    _logger.info("AUDIT " + " ".join(parts))


def record(db: Session, action: str, actor_id: str, session_id: Optional[str] = None, **details: Any) -> AuditLog:
    """Add an AuditLog row to the current transaction and log it.

    The caller commits; an audit row never outlives a rolled-back transition.
    """
    entry = AuditLog(action=action, actor_id=actor_id, session_id=session_id, details=details or None)
    db.add(entry)
    _emit(action, user_id=actor_id, session_id=session_id, **details)
    return entry


def log_email_send(user_id: Optional[str], to_email: str, purpose: str, sent: bool):
    _emit("email.send", user_id=user_id, to=to_email, purpose=purpose, sent=sent)


def _may_read(actor: User, session: ServiceSession) -> bool:
    if actor.id == session.student_id:
        return True
    if actor.role == UserRole.org_admin:
        return actor.organization_id is not None and actor.organization_id == session.opportunity.organization_id
    if actor.is_school_staff and actor.school_id:
        return actor.school_id == (session.school_id or session.student.school_id)
    return False


def list_session_audit(db: Session, actor: User, session_id: str) -> List[AuditLog]:
    """Audit rows for one session, oldest first.

    Readable by the session's student, the hosting organization's admins and
    staff of the school certifying the hours.
    """
    session = db.query(ServiceSession).filter(ServiceSession.id == session_id).first()
    if not session:
        raise NotFoundException("Session not found")
    if not _may_read(actor, session):
        raise ForbiddenException("Not allowed to view this session's history")
    return (
        db.query(AuditLog)
        .filter(AuditLog.session_id == session_id)
        .order_by(AuditLog.created_at.asc(), AuditLog.id.asc())
        .all()
    )
