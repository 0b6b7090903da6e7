from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from goodhours.db import get_db
from goodhours.models.user import User
from goodhours.schemas.session import SessionOut, VerificationSubmit
from goodhours.services import session_machine
from goodhours.services.auth import require_student

router = APIRouter(prefix="/sessions", tags=["Sessions"])


@router.get("/me", response_model=List[SessionOut])
def my_sessions(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
):
    return session_machine.list_student_sessions(db, current_user)


@router.get("/{session_id}", response_model=SessionOut)
def get_session(
    session_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
):
    return session_machine.get_session_for(db, session_id, current_user)


@router.post("/{session_id}/submit", response_model=SessionOut)
def submit_verification(
    session_id: str,
    payload: VerificationSubmit,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
):
    return session_machine.submit_verification(
        db, session_id, current_user,
        method=payload.method,
        signature_data=payload.signature_data,
        file_url=payload.file_url,
        file_name=payload.file_name,
    )


@router.post("/{session_id}/check-in", response_model=SessionOut)
def check_in(
    session_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
):
    return session_machine.check_in(db, session_id, current_user)


@router.post("/{session_id}/check-out", response_model=SessionOut)
def check_out(
    session_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
):
    return session_machine.check_out(db, session_id, current_user)


@router.post("/{session_id}/cancel", response_model=SessionOut)
def cancel_session(
    session_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
):
    return session_machine.cancel_session(db, session_id, current_user)
