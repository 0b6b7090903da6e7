from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional

from goodhours.db import get_db
from goodhours.exceptions import NotFoundException
from goodhours.models.user import User, UserRole
from goodhours.schemas.progress import StudentProgressOut, ProgressSummaryOut
from goodhours.schemas.report import AuditLogOut, OrganizationImpactOut, OrganizationReportOut
from goodhours.schemas.session import RecomputeOut
from goodhours.services import audit, impact, progress, session_machine
from goodhours.services.auth import get_current_user, require_org_admin, require_student, require_school_staff

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/progress/me", response_model=StudentProgressOut)
def my_progress(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
):
    return progress.student_progress(db, current_user)


@router.get("/school", response_model=ProgressSummaryOut)
def school_progress(
    classroom_id: Optional[str] = None,
    status: Optional[progress.ProgressStatus] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_school_staff),
):
    return progress.school_summary(db, current_user, classroom_id=classroom_id, status=status)


@router.post("/students/{student_id}/recompute", response_model=RecomputeOut)
def recompute_hours(
    student_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_school_staff),
):
    """Rebuild a student's approved-hours total from their credited sessions."""
    student = db.query(User).filter(User.id == student_id, User.role == UserRole.student).first()
    if not student or student.school_id != current_user.school_id:
        raise NotFoundException("Student not found")
    total = session_machine.recompute_approved_hours(db, student_id)
    return RecomputeOut(student_id=student_id, approved_hours=total)


@router.get("/organization", response_model=OrganizationReportOut)
def organization_report(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_org_admin),
):
    return impact.organization_report(db, current_user)


@router.get("/organizations/{organization_id}/stats", response_model=OrganizationImpactOut)
def organization_stats(
    organization_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return impact.organization_stats(db, current_user, organization_id)


@router.get("/audit/{session_id}", response_model=List[AuditLogOut])
def session_audit(
    session_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    entries = audit.list_session_audit(db, current_user, session_id)
    result = []
    for entry in entries:
        out = AuditLogOut.model_validate(entry)
        if entry.actor is not None:
            out.actor_name = entry.actor.name
            out.actor_role = entry.actor.role.value
        result.append(out)
    return result
