"""Organization impact reporting: volunteer counts and credited hours."""
from __future__ import annotations
from typing import Any, Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from goodhours.exceptions import ForbiddenException, NotFoundException
from goodhours.models.opportunity import Opportunity
from goodhours.models.school import Organization
from goodhours.models.service_session import ServiceSession
from goodhours.models.signup import Signup, SignupStatus
from goodhours.models.user import User, UserRole
from goodhours.services.transitions import CREDITED


def _get_organization(db: Session, organization_id: str) -> Organization:
    organization = db.query(Organization).filter(Organization.id == organization_id).first()
    if not organization:
        raise NotFoundException("Organization not found")
    return organization


def _require_member(actor: User, organization_id: str):
    if actor.role != UserRole.org_admin or actor.organization_id != organization_id:
        raise ForbiddenException("Not your organization")


def _sessions(db: Session, organization_id: str):
    return (
        db.query(ServiceSession)
        .join(Opportunity, ServiceSession.opportunity_id == Opportunity.id)
        .filter(Opportunity.organization_id == organization_id, ServiceSession.abandoned_at.is_(None))
    )


def organization_stats(db: Session, actor: User, organization_id: str) -> Dict[str, Any]:
    """Aggregate figures for one organization.

    Organization admins see their own organization; school staff may see any
    organization's aggregates when weighing an approval request.
    """
    if not actor.is_school_staff:
        _require_member(actor, organization_id)
    _get_organization(db, organization_id)

    total_opportunities = db.query(func.count(Opportunity.id)).filter(
        Opportunity.organization_id == organization_id
    ).scalar() or 0
    confirmed_signups = (
        db.query(func.count(Signup.id))
        .join(Opportunity, Signup.opportunity_id == Opportunity.id)
        .filter(Opportunity.organization_id == organization_id, Signup.status == SignupStatus.CONFIRMED)
        .scalar()
    ) or 0
    total_sessions = _sessions(db, organization_id).count()
    credited = _sessions(db, organization_id).filter(ServiceSession.status.in_(list(CREDITED)))
    approved_sessions = credited.count()
    hours = credited.with_entities(func.coalesce(func.sum(ServiceSession.total_hours), 0.0)).scalar()
    volunteers = credited.with_entities(func.count(func.distinct(ServiceSession.student_id))).scalar()

    return {
        "organization_id": organization_id,
        "total_opportunities": total_opportunities,
        "confirmed_signups": confirmed_signups,
        "total_sessions": total_sessions,
        "approved_sessions": approved_sessions,
        "total_approved_hours": round(float(hours or 0.0), 2),
        "unique_volunteers": volunteers or 0,
    }


def volunteer_history(db: Session, actor: User, organization_id: str) -> List[Dict[str, Any]]:
    """Credited sessions at the organization's opportunities, newest first."""
    _require_member(actor, organization_id)
    sessions = (
        _sessions(db, organization_id)
        .filter(ServiceSession.status.in_(list(CREDITED)))
        .order_by(ServiceSession.verified_at.desc(), ServiceSession.id.asc())
        .all()
    )
    return [
        {
            "session_id": s.id,
            "student_id": s.student_id,
            "student_name": s.student.name,
            "student_email": s.student.email,
            "opportunity_id": s.opportunity_id,
            "opportunity_title": s.opportunity.title,
            "opportunity_date": s.opportunity.date,
            "total_hours": s.total_hours or 0.0,
            "status": s.status,
            "verified_at": s.verified_at,
        }
        for s in sessions
    ]


def organization_report(db: Session, actor: User) -> Dict[str, Any]:
    """The acting admin's own organization: stats plus volunteer history."""
    if actor.role != UserRole.org_admin or not actor.organization_id:
        raise ForbiddenException("Not associated with an organization")
    report = organization_stats(db, actor, actor.organization_id)
    report["volunteers"] = volunteer_history(db, actor, actor.organization_id)
    return report
