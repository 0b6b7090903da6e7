"""ServiceSession: one student's hour record for one confirmed signup.

A single status column serves both verification generations. Which path a
session follows is decided by the first transition invoked on it (submit vs.
check-in), see ``goodhours.services.session_machine``.
"""
from sqlalchemy import Column, String, Float, DateTime, Enum, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime, UTC
from goodhours.db import Base
import enum
import uuid


class SessionStatus(enum.Enum):
    # submission path
    COMMITTED = "COMMITTED"
    PENDING_VERIFICATION = "PENDING_VERIFICATION"
    APPROVED = "APPROVED"
    # legacy check-in path
    PENDING_CHECKIN = "PENDING_CHECKIN"
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"
    VERIFIED = "VERIFIED"
    # shared terminals
    REJECTED = "REJECTED"
    HOURS_REMOVED = "HOURS_REMOVED"


class VerificationStatus(enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    REMOVED = "REMOVED"


class SignatureType(enum.Enum):
    DRAWN = "DRAWN"
    FILE = "FILE"


class ServiceSession(Base):
    __tablename__ = "service_sessions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    signup_id = Column(String, ForeignKey("signups.id"), nullable=False, unique=True)
    student_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    opportunity_id = Column(String, ForeignKey("opportunities.id"), nullable=False, index=True)
    # School that certifies the hours, fixed when the student claims them
    school_id = Column(String, ForeignKey("schools.id"), nullable=True, index=True)

    status = Column(Enum(SessionStatus), nullable=False, default=SessionStatus.COMMITTED, index=True)
    verification_status = Column(Enum(VerificationStatus), nullable=False, default=VerificationStatus.PENDING)

    check_in_time = Column(DateTime, nullable=True)
    check_out_time = Column(DateTime, nullable=True)
    total_hours = Column(Float, nullable=True)

    signature_type = Column(Enum(SignatureType), nullable=True)
    signature_data = Column(Text, nullable=True)  # data URI for drawn signatures
    signature_file_url = Column(String, nullable=True)
    signature_file_name = Column(String, nullable=True)
    submitted_at = Column(DateTime, nullable=True)

    verified_by = Column(String, ForeignKey("users.id"), nullable=True)
    verified_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    removed_by = Column(String, ForeignKey("users.id"), nullable=True)
    removed_at = Column(DateTime, nullable=True)
    removal_reason = Column(Text, nullable=True)

    # Set when the owning signup is cancelled; the row is kept as history.
    abandoned_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)
    updated_at = Column(DateTime, default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC))

    signup = relationship("Signup", back_populates="session")
    opportunity = relationship("Opportunity")
    student = relationship("User", foreign_keys=[student_id])
    school = relationship("School")

    @property
    def is_live(self) -> bool:
        return self.abandoned_at is None
