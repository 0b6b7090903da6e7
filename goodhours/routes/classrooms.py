from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional

from goodhours.db import get_db
from goodhours.models.user import User
from goodhours.schemas.classroom import (
    ClassroomCreate, ClassroomUpdate, ClassroomOut, ClassroomStats,
    JoinClassroomRequest, StudentClassroomOut,
)
from goodhours.services import classrooms, progress
from goodhours.services.auth import require_school_staff, require_student

router = APIRouter(prefix="/classrooms", tags=["Classrooms"])


@router.post("", response_model=ClassroomOut, status_code=201)
def create_classroom(
    payload: ClassroomCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_school_staff),
):
    return classrooms.create_classroom(
        db, current_user, payload.name,
        required_hours=payload.required_hours,
        teacher_id=payload.teacher_id,
    )


@router.get("", response_model=List[ClassroomOut])
def list_classrooms(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_school_staff),
):
    result = []
    for classroom, stats in classrooms.list_classrooms(db, current_user):
        out = ClassroomOut.model_validate(classroom)
        out.stats = ClassroomStats(**stats)
        result.append(out)
    return result


@router.patch("/{classroom_id}", response_model=ClassroomOut)
def update_classroom(
    classroom_id: str,
    payload: ClassroomUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_school_staff),
):
    classroom = classrooms.update_classroom(db, current_user, classroom_id, payload.model_dump(exclude_unset=True))
    out = ClassroomOut.model_validate(classroom)
    out.stats = ClassroomStats(**progress.classroom_stats(db, classroom))
    return out


@router.post("/{classroom_id}/invite-code", response_model=ClassroomOut)
def regenerate_invite_code(
    classroom_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_school_staff),
):
    return classrooms.regenerate_invite_code(db, current_user, classroom_id)


@router.post("/join", response_model=StudentClassroomOut)
def join_classroom(
    payload: JoinClassroomRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
):
    return classrooms.join(db, current_user, payload.invite_code)


@router.post("/leave", response_model=StudentClassroomOut)
def leave_classroom(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
):
    return classrooms.leave(db, current_user)


@router.get("/mine", response_model=Optional[StudentClassroomOut])
def my_classroom(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
):
    return classrooms.current_classroom(db, current_user)
