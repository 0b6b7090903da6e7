"""Classroom management and invite-code membership."""
from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from goodhours.core.settings import settings
from goodhours.exceptions import (
    NotFoundException,
    ForbiddenException,
    InvalidCodeException,
    InvalidStateException,
    TransientException,
    ValidationException,
)
from goodhours.models.classroom import Classroom, generate_invite_code, normalize_invite_code
from goodhours.models.user import User, UserRole, SCHOOL_STAFF_ROLES
from goodhours.services import progress
from goodhours.services.lifecycle_emails import LifecycleEmailEvent, send_lifecycle_email

logger = logging.getLogger("goodhours.classrooms")

UPDATABLE_FIELDS = {"name", "is_active", "teacher_id", "required_hours"}


def _require_staff(actor: User):
    if not actor.is_school_staff or not actor.school_id:
        raise ForbiddenException("School staff access required")


def _code_taken(db: Session, code: str) -> bool:
    return db.query(Classroom.id).filter(Classroom.invite_code == code).first() is not None


def new_invite_code(db: Session) -> str:
    for _ in range(settings.invite_code_max_attempts):
        code = generate_invite_code()
        if not _code_taken(db, code):
            return code
    raise TransientException("Could not allocate a unique invite code; please retry")


def _validate_teacher(db: Session, teacher_id: str, school_id: str) -> User:
    teacher = db.query(User).filter(User.id == teacher_id).first()
    if not teacher or teacher.role not in SCHOOL_STAFF_ROLES or teacher.school_id != school_id:
        raise ValidationException("Teacher must be a staff member of the same school")
    return teacher


def _validate_required_hours(value: Optional[float]):
    if value is not None and value <= 0:
        raise ValidationException("required_hours must be > 0")


def create_classroom(db: Session, actor: User, name: str, required_hours: Optional[float] = None,
                     teacher_id: Optional[str] = None) -> Classroom:
    _require_staff(actor)
    if not name or not name.strip():
        raise ValidationException("Classroom name is required")
    _validate_required_hours(required_hours)
    if teacher_id and teacher_id != actor.id:
        if actor.role == UserRole.teacher:
            raise ForbiddenException("Teachers can only create their own classrooms")
        _validate_teacher(db, teacher_id, actor.school_id)

    for _ in range(settings.invite_code_max_attempts):
        classroom = Classroom(
            name=name.strip(),
            school_id=actor.school_id,
            teacher_id=teacher_id or actor.id,
            invite_code=new_invite_code(db),
            required_hours=required_hours,
        )
        db.add(classroom)
        try:
            db.commit()
        except IntegrityError:
            # Another classroom took the same code between check and insert
            db.rollback()
            logger.warning("[classrooms] invite code collision on insert, regenerating")
            continue
        db.refresh(classroom)
        logger.info(f"[classrooms] created classroom={classroom.id} school={classroom.school_id}")
        return classroom
    raise TransientException("Could not allocate a unique invite code; please retry")


def get_classroom_for_staff(db: Session, actor: User, classroom_id: str) -> Classroom:
    _require_staff(actor)
    classroom = db.query(Classroom).filter(Classroom.id == classroom_id).first()
    if not classroom or classroom.school_id != actor.school_id:
        raise NotFoundException("Classroom not found")
    if actor.role == UserRole.teacher and classroom.teacher_id != actor.id:
        raise ForbiddenException("You can only manage your own classrooms")
    return classroom


def update_classroom(db: Session, actor: User, classroom_id: str, changes: Dict[str, Any]) -> Classroom:
    classroom = get_classroom_for_staff(db, actor, classroom_id)
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationException(f"Unknown fields: {', '.join(sorted(unknown))}")
    if "name" in changes and not (changes["name"] or "").strip():
        raise ValidationException("Classroom name is required")
    if "required_hours" in changes:
        _validate_required_hours(changes["required_hours"])
    if changes.get("teacher_id"):
        if actor.role == UserRole.teacher and changes["teacher_id"] != actor.id:
            raise ForbiddenException("Teachers cannot reassign classrooms")
        _validate_teacher(db, changes["teacher_id"], classroom.school_id)
    elif "teacher_id" in changes:
        raise ValidationException("A classroom must have a teacher")

    for field, value in changes.items():
        setattr(classroom, field, value.strip() if field == "name" else value)
    db.commit()
    db.refresh(classroom)
    return classroom


def regenerate_invite_code(db: Session, actor: User, classroom_id: str) -> Classroom:
    classroom = get_classroom_for_staff(db, actor, classroom_id)
    classroom.invite_code = new_invite_code(db)
    db.commit()
    db.refresh(classroom)
    return classroom


def join(db: Session, student: User, invite_code: str) -> Classroom:
    if student.role != UserRole.student:
        raise ForbiddenException("Only students can join classrooms")
    code = normalize_invite_code(invite_code)
    classroom = db.query(Classroom).filter(
        Classroom.invite_code == code,
        Classroom.is_active.is_(True),
    ).first()
    if not classroom:
        raise InvalidCodeException("Invalid or inactive invite code")
    previous = student.classroom_id
    student.classroom_id = classroom.id
    student.school_id = classroom.school_id
    db.commit()
    db.refresh(classroom)
    logger.info(f"[classrooms] student={student.id} joined classroom={classroom.id} previous={previous}")
    return classroom


def leave(db: Session, student: User) -> Classroom:
    if not student.classroom_id:
        raise InvalidStateException("You are not in a classroom", current="NO_CLASSROOM", allowed={"join"})
    classroom = db.query(Classroom).filter(Classroom.id == student.classroom_id).first()
    student.classroom_id = None
    student.school_id = None
    db.commit()
    logger.info(f"[classrooms] student={student.id} left classroom={classroom.id if classroom else None}")

    teacher = classroom.teacher if classroom else None
    if teacher:
        send_lifecycle_email(
            LifecycleEmailEvent.STUDENT_LEFT_CLASSROOM, teacher.email,
            {"recipient_name": teacher.name, "student_name": student.name, "classroom_name": classroom.name},
            user_id=student.id,
        )
    return classroom


def list_classrooms(db: Session, actor: User) -> List[Tuple[Classroom, Dict[str, Any]]]:
    _require_staff(actor)
    q = db.query(Classroom).filter(Classroom.school_id == actor.school_id)
    if actor.role == UserRole.teacher:
        q = q.filter(Classroom.teacher_id == actor.id)
    return [(c, progress.classroom_stats(db, c)) for c in q.order_by(Classroom.created_at.asc()).all()]


def current_classroom(db: Session, student: User) -> Optional[Classroom]:
    if not student.classroom_id:
        return None
    return db.query(Classroom).filter(Classroom.id == student.classroom_id).first()
