"""Student bookmarks: saved, skipped and discarded opportunities.

One row per (student, opportunity); marking the same opportunity again
overwrites its status.
"""
from __future__ import annotations
import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from goodhours.exceptions import NotFoundException, ForbiddenException
from goodhours.models.saved_opportunity import SavedOpportunity, SavedStatus
from goodhours.models.user import User, UserRole
from goodhours.services import opportunities as catalogue

logger = logging.getLogger("goodhours.saved")


def _require_student(actor: User):
    if actor.role != UserRole.student:
        raise ForbiddenException("Only students can save opportunities")


def _find(db: Session, student_id: str, opportunity_id: str) -> Optional[SavedOpportunity]:
    return db.query(SavedOpportunity).filter(
        SavedOpportunity.student_id == student_id,
        SavedOpportunity.opportunity_id == opportunity_id,
    ).first()


def mark(db: Session, student: User, opportunity_id: str,
         status: SavedStatus = SavedStatus.SAVED) -> SavedOpportunity:
    _require_student(student)
    catalogue.get_opportunity_for(db, student, opportunity_id)

    entry = _find(db, student.id, opportunity_id)
    if entry is None:
        entry = SavedOpportunity(student_id=student.id, opportunity_id=opportunity_id, status=status)
        db.add(entry)
    else:
        entry.status = status
    try:
        db.commit()
    except IntegrityError:
        # A concurrent first mark for the same pair won; apply ours on top
        db.rollback()
        entry = _find(db, student.id, opportunity_id)
        entry.status = status
        db.commit()
    db.refresh(entry)
    logger.info(f"[saved] student={student.id} opportunity={opportunity_id} status={status.value}")
    return entry


def list_marked(db: Session, student: User, status: Optional[SavedStatus] = None) -> List[SavedOpportunity]:
    _require_student(student)
    q = db.query(SavedOpportunity).filter(SavedOpportunity.student_id == student.id)
    if status is not None:
        q = q.filter(SavedOpportunity.status == status)
    return q.order_by(SavedOpportunity.created_at.desc()).all()


def remove(db: Session, student: User, saved_id: str):
    entry = db.query(SavedOpportunity).filter(SavedOpportunity.id == saved_id).first()
    if not entry or entry.student_id != student.id:
        raise NotFoundException("Saved opportunity not found")
    db.delete(entry)
    db.commit()
