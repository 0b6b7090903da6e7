from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional

from goodhours.db import get_db
from goodhours.models.service_session import ServiceSession
from goodhours.models.user import User
from goodhours.schemas.session import (
    ApproveRequest, RejectRequest, RemoveHoursRequest, ReviewItemOut, SessionOut,
)
from goodhours.services import review_queue
from goodhours.services.auth import require_reviewer, require_school_staff

router = APIRouter(prefix="/verification", tags=["Verification"])


def review_item(session: ServiceSession) -> ReviewItemOut:
    out = ReviewItemOut.model_validate(session)
    out.student_name = session.student.name
    out.opportunity_title = session.opportunity.title
    out.opportunity_date = session.opportunity.date
    return out


@router.get("/pending", response_model=List[ReviewItemOut])
def list_pending(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_reviewer),
):
    return [review_item(s) for s in review_queue.list_pending(db, current_user)]


@router.get("/removable", response_model=List[ReviewItemOut])
def list_removable(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_school_staff),
):
    return [review_item(s) for s in review_queue.list_removable(db, current_user)]


@router.post("/{session_id}/approve", response_model=SessionOut)
def approve(
    session_id: str,
    payload: Optional[ApproveRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_reviewer),
):
    return review_queue.approve(db, current_user, session_id, payload.approved_hours if payload else None)


@router.post("/{session_id}/reject", response_model=SessionOut)
def reject(
    session_id: str,
    payload: Optional[RejectRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_reviewer),
):
    return review_queue.reject(db, current_user, session_id, payload.reason if payload else None)


@router.post("/{session_id}/remove", response_model=SessionOut)
def remove_hours(
    session_id: str,
    payload: Optional[RemoveHoursRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_school_staff),
):
    return review_queue.remove_hours(db, current_user, session_id, payload.reason if payload else None)
