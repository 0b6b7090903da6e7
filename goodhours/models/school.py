from sqlalchemy import Column, String, DateTime, Enum, Float, ForeignKey, Text
from datetime import datetime, UTC
from goodhours.db import Base
import enum
import uuid


class VerificationStandard(enum.Enum):
    """Who may certify hours for a school's students.

    ORGANIZATION: the hosting organization approves; school staff can only
    remove hours afterwards. SCHOOL: school staff may approve/reject too.
    """
    ORGANIZATION = "ORGANIZATION"
    SCHOOL = "SCHOOL"


class School(Base):
    __tablename__ = "schools"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    address = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    admin_user_id = Column(String, ForeignKey("users.id"), nullable=True)
    required_hours = Column(Float, nullable=False, default=40.0)
    verification_standard = Column(
        Enum(VerificationStandard), nullable=False, default=VerificationStandard.ORGANIZATION
    )
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    website = Column(String, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)
