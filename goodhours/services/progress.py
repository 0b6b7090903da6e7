"""Read-side progress reporting over the approved-hours counter."""
from __future__ import annotations
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from goodhours.core.settings import settings
from goodhours.exceptions import ForbiddenException, NotFoundException
from goodhours.models.classroom import Classroom
from goodhours.models.school import School
from goodhours.models.service_session import ServiceSession, SessionStatus
from goodhours.models.user import User, UserRole
from goodhours.services.transitions import REVIEWABLE


class ProgressStatus(str, Enum):
    COMPLETED = "COMPLETED"
    ON_TRACK = "ON_TRACK"
    AT_RISK = "AT_RISK"


def required_hours_for(db: Session, student: User) -> float:
    """Classroom override, else the school's policy, else the configured default."""
    if student.classroom_id:
        classroom = db.query(Classroom).filter(Classroom.id == student.classroom_id).first()
        if classroom and classroom.required_hours:
            return classroom.required_hours
    if student.school_id:
        school = db.query(School).filter(School.id == student.school_id).first()
        if school and school.required_hours:
            return school.required_hours
    return settings.default_required_hours


def classify(approved_hours: float, required_hours: float) -> ProgressStatus:
    if required_hours <= 0 or approved_hours >= required_hours:
        return ProgressStatus.COMPLETED
    if approved_hours / required_hours >= settings.at_risk_ratio:
        return ProgressStatus.ON_TRACK
    return ProgressStatus.AT_RISK


def _hours_by_status(db: Session, student_id: str) -> Dict[SessionStatus, float]:
    rows = (
        db.query(ServiceSession.status, func.coalesce(func.sum(ServiceSession.total_hours), 0.0))
        .filter(ServiceSession.student_id == student_id, ServiceSession.abandoned_at.is_(None))
        .group_by(ServiceSession.status)
        .all()
    )
    return {status: float(total) for status, total in rows}


def student_progress(db: Session, student: User) -> Dict[str, Any]:
    approved = round(student.approved_hours or 0.0, 2)
    required = required_hours_for(db, student)
    by_status = _hours_by_status(db, student.id)
    percent = 100.0 if required <= 0 else round(min(approved / required, 1.0) * 100, 1)
    return {
        "student_id": student.id,
        "student_name": student.name,
        "approved_hours": approved,
        "required_hours": required,
        "percent_complete": percent,
        "status": classify(approved, required).value,
        "pending_hours": round(sum(by_status.get(s, 0.0) for s in REVIEWABLE), 2),
        "committed_hours": round(
            by_status.get(SessionStatus.COMMITTED, 0.0)
            + by_status.get(SessionStatus.PENDING_CHECKIN, 0.0)
            + by_status.get(SessionStatus.CHECKED_IN, 0.0),
            2,
        ),
        "rejected_hours": round(by_status.get(SessionStatus.REJECTED, 0.0), 2),
    }


def summarize(db: Session, students: Iterable[User]) -> Dict[str, Any]:
    reports = [student_progress(db, s) for s in students]
    counts = {status.value: 0 for status in ProgressStatus}
    for r in reports:
        counts[r["status"]] += 1
    return {
        "student_count": len(reports),
        "completed_count": counts[ProgressStatus.COMPLETED.value],
        "on_track_count": counts[ProgressStatus.ON_TRACK.value],
        "at_risk_count": counts[ProgressStatus.AT_RISK.value],
        "total_approved_hours": round(sum(r["approved_hours"] for r in reports), 2),
        "students": reports,
    }


def school_summary(db: Session, actor: User, classroom_id: Optional[str] = None,
                   status: Optional[ProgressStatus] = None) -> Dict[str, Any]:
    if not actor.is_school_staff or not actor.school_id:
        raise ForbiddenException("School staff access required")
    q = db.query(User).filter(User.role == UserRole.student, User.school_id == actor.school_id)
    if classroom_id:
        classroom = db.query(Classroom).filter(Classroom.id == classroom_id).first()
        if not classroom or classroom.school_id != actor.school_id:
            raise NotFoundException("Classroom not found")
        q = q.filter(User.classroom_id == classroom_id)
    elif actor.role == UserRole.teacher:
        own = [c.id for c in db.query(Classroom.id).filter(Classroom.teacher_id == actor.id).all()]
        q = q.filter(User.classroom_id.in_(own))
    summary = summarize(db, q.order_by(User.name.asc()).all())
    if status is not None:
        summary["students"] = [r for r in summary["students"] if r["status"] == status.value]
    return summary


def classroom_stats(db: Session, classroom: Classroom) -> Dict[str, Any]:
    students = db.query(User).filter(User.classroom_id == classroom.id, User.role == UserRole.student).all()
    summary = summarize(db, students)
    summary.pop("students")
    return summary
