from sqlalchemy import Column, String, DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, UTC
from goodhours.db import Base
import enum
import uuid


class TrustStatus(enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    BLOCKED = "BLOCKED"


class TrustRelation(Base):
    """Approval status between one organization and one school."""
    __tablename__ = "trust_relations"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String, ForeignKey("organizations.id"), nullable=False, index=True)
    school_id = Column(String, ForeignKey("schools.id"), nullable=False, index=True)
    status = Column(Enum(TrustStatus), nullable=False, default=TrustStatus.PENDING)
    requested_by = Column(String, ForeignKey("users.id"), nullable=True)
    requested_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)
    decided_by = Column(String, ForeignKey("users.id"), nullable=True)
    decided_at = Column(DateTime, nullable=True)

    organization = relationship("Organization")
    school = relationship("School")

    __table_args__ = (
        UniqueConstraint("organization_id", "school_id", name="uq_trust_org_school"),
    )
