from sqlalchemy import Column, String, Integer, DateTime, Enum, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from datetime import datetime, UTC
from goodhours.db import Base
import enum
import uuid


class SignupStatus(enum.Enum):
    CONFIRMED = "CONFIRMED"
    WAITLISTED = "WAITLISTED"
    CANCELLED = "CANCELLED"


class Signup(Base):
    __tablename__ = "signups"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    opportunity_id = Column(String, ForeignKey("opportunities.id"), nullable=False, index=True)
    student_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(Enum(SignupStatus), nullable=False)
    sequence = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)
    updated_at = Column(DateTime, default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC))

    opportunity = relationship("Opportunity", back_populates="signups")
    student = relationship("User")
    session = relationship("ServiceSession", back_populates="signup", uselist=False)

    __table_args__ = (
        # Cancelled rows are history; only one live claim per student per opportunity
        Index(
            "uq_signups_live_claim",
            "opportunity_id",
            "student_id",
            unique=True,
            postgresql_where=text("status != 'CANCELLED'"),
            sqlite_where=text("status != 'CANCELLED'"),
        ),
        Index("idx_signups_waitlist_order", "opportunity_id", "status", "sequence"),
    )
