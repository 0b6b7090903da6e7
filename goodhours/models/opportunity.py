from sqlalchemy import Column, String, Integer, Float, DateTime, Enum, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime, UTC
from goodhours.db import Base
import enum
import uuid


class OpportunityStatus(enum.Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Opportunity(Base):
    __tablename__ = "opportunities"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String, ForeignKey("organizations.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    location = Column(String, nullable=False, default="")
    date = Column(DateTime, nullable=False, index=True)
    duration_hours = Column(Float, nullable=False)
    capacity = Column(Integer, nullable=False)
    status = Column(Enum(OpportunityStatus), nullable=False, default=OpportunityStatus.ACTIVE, index=True)
    # Next admission sequence number; bumped under the row lock so waitlist
    # order is total even when created_at values collide.
    signup_seq = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)
    updated_at = Column(DateTime, default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC))

    organization = relationship("Organization")
    signups = relationship("Signup", back_populates="opportunity")
