from sqlalchemy import Column, String, DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, UTC
from goodhours.db import Base
import enum
import uuid


class SavedStatus(enum.Enum):
    SAVED = "SAVED"
    SKIPPED = "SKIPPED"
    DISCARDED = "DISCARDED"


class SavedOpportunity(Base):
    """A student's bookmark (or dismissal) of one opportunity."""
    __tablename__ = "saved_opportunities"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    student_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    opportunity_id = Column(String, ForeignKey("opportunities.id"), nullable=False)
    status = Column(Enum(SavedStatus), nullable=False, default=SavedStatus.SAVED)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)
    updated_at = Column(DateTime, default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC))

    opportunity = relationship("Opportunity")
    student = relationship("User")

    __table_args__ = (
        UniqueConstraint("student_id", "opportunity_id", name="uq_saved_student_opportunity"),
    )
