"""Classrooms group a school's students; students join with an invite code."""

from sqlalchemy import Column, String, DateTime, Boolean, Float, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime, UTC
from goodhours.db import Base
import uuid
import secrets

INVITE_CODE_LENGTH = 8
# Exclude ambiguous characters: 0, O, I, 1, L
INVITE_CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"


def generate_invite_code() -> str:
    """Generate an 8-character invite code, e.g. ``K7M2P4QX``."""
    return ''.join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))


def normalize_invite_code(code: str) -> str:
    return (code or "").strip().upper()


class Classroom(Base):
    __tablename__ = "classrooms"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    school_id = Column(String, ForeignKey("schools.id"), nullable=False, index=True)
    teacher_id = Column(String, ForeignKey("users.id"), nullable=False)
    # Stored upper-case; lookups normalize the input the same way
    invite_code = Column(String(INVITE_CODE_LENGTH), unique=True, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    # Overrides School.required_hours when set
    required_hours = Column(Float, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    school = relationship("School")
    teacher = relationship("User", foreign_keys=[teacher_id])
    students = relationship("User", foreign_keys="User.classroom_id", viewonly=True)
