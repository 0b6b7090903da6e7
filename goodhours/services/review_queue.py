"""Verification review queue.

Organization reviewers see and decide sessions for their own opportunities.
School reviewers see the sessions their school certifies: the school recorded
on the session when the student claimed the hours, or the student's current
school before that. They may remove credited hours, and approve or reject only
when the school certifies hours itself (``VerificationStandard.SCHOOL``).
No reviewer may approve hours from an organization the certifying school has
blocked.
"""
from __future__ import annotations
import logging
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from goodhours.exceptions import ForbiddenException
from goodhours.models.opportunity import Opportunity
from goodhours.models.school import School, VerificationStandard
from goodhours.models.service_session import ServiceSession
from goodhours.models.user import User, UserRole
from goodhours.services import session_machine, trust_graph
from goodhours.services.transitions import CREDITED, REVIEWABLE

logger = logging.getLogger("goodhours.review_queue")

SCOPE_ORGANIZATION = "organization"
SCOPE_SCHOOL = "school"


def reviewer_scope(reviewer: User) -> str:
    if reviewer.role == UserRole.org_admin and reviewer.organization_id:
        return SCOPE_ORGANIZATION
    if reviewer.is_school_staff and reviewer.school_id:
        return SCOPE_SCHOOL
    raise ForbiddenException("Reviewer has no organization or school scope")


def certifying_school_id(session: ServiceSession) -> Optional[str]:
    return session.school_id or session.student.school_id


def _scoped_query(db: Session, reviewer: User):
    q = db.query(ServiceSession).filter(ServiceSession.abandoned_at.is_(None))
    if reviewer_scope(reviewer) == SCOPE_ORGANIZATION:
        return q.join(Opportunity, ServiceSession.opportunity_id == Opportunity.id).filter(
            Opportunity.organization_id == reviewer.organization_id
        )
    return q.join(User, ServiceSession.student_id == User.id).filter(
        func.coalesce(ServiceSession.school_id, User.school_id) == reviewer.school_id
    )


def list_pending(db: Session, reviewer: User) -> List[ServiceSession]:
    return (
        _scoped_query(db, reviewer)
        .filter(ServiceSession.status.in_(list(REVIEWABLE)))
        .order_by(
            func.coalesce(ServiceSession.submitted_at, ServiceSession.check_out_time, ServiceSession.created_at).asc(),
            ServiceSession.id.asc(),
        )
        .all()
    )


def list_removable(db: Session, reviewer: User) -> List[ServiceSession]:
    if reviewer_scope(reviewer) != SCOPE_SCHOOL:
        raise ForbiddenException("Only school staff can remove hours")
    return (
        _scoped_query(db, reviewer)
        .filter(ServiceSession.status.in_(list(CREDITED)))
        .order_by(ServiceSession.verified_at.desc())
        .all()
    )


def authorize(db: Session, reviewer: User, session: ServiceSession, operation: str):
    """Raise Forbidden unless ``reviewer`` may perform ``operation`` on ``session``."""
    scope = reviewer_scope(reviewer)
    if scope == SCOPE_ORGANIZATION:
        if operation == "remove_hours":
            raise ForbiddenException("Only the student's school can remove approved hours")
        if session.opportunity.organization_id != reviewer.organization_id:
            raise ForbiddenException("Session belongs to another organization")
    elif certifying_school_id(session) != reviewer.school_id:
        raise ForbiddenException("These hours are not certified by your school")

    if operation == "approve":
        trust_graph.ensure_not_blocked(db, session.opportunity.organization_id, certifying_school_id(session))
    if scope == SCOPE_ORGANIZATION:
        return
    if operation in ("approve", "reject"):
        school = db.query(School).filter(School.id == reviewer.school_id).first()
        if not school or school.verification_standard != VerificationStandard.SCHOOL:
            raise ForbiddenException("Hours for your school are verified by the hosting organization")


def approve(db: Session, reviewer: User, session_id: str, approved_hours: Optional[float] = None) -> ServiceSession:
    session = session_machine.get_session(db, session_id)
    authorize(db, reviewer, session, "approve")
    return session_machine.approve(db, session_id, reviewer, approved_hours)


def reject(db: Session, reviewer: User, session_id: str, reason: Optional[str] = None) -> ServiceSession:
    session = session_machine.get_session(db, session_id)
    authorize(db, reviewer, session, "reject")
    return session_machine.reject(db, session_id, reviewer, reason)


def remove_hours(db: Session, reviewer: User, session_id: str, reason: Optional[str] = None) -> ServiceSession:
    session = session_machine.get_session(db, session_id)
    authorize(db, reviewer, session, "remove_hours")
    return session_machine.remove_hours(db, session_id, reviewer, reason)
