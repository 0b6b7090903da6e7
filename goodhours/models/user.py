from sqlalchemy import Column, String, DateTime, Enum, Float, ForeignKey
from sqlalchemy.orm import relationship
import enum
from datetime import datetime, UTC
from goodhours.db import Base
import uuid

class UserRole(enum.Enum):
    student = "student"
    org_admin = "org_admin"
    school_admin = "school_admin"
    teacher = "teacher"
    district_admin = "district_admin"

SCHOOL_STAFF_ROLES = {UserRole.school_admin, UserRole.teacher, UserRole.district_admin}

class User(Base):
    __tablename__ = "users"
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    role = Column(Enum(UserRole), nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC))

    # Affiliations. A student's school follows from the classroom they joined;
    # staff carry school_id / organization_id directly.
    organization_id = Column(String, ForeignKey("organizations.id"), nullable=True, index=True)
    school_id = Column(String, ForeignKey("schools.id", use_alter=True, name="fk_users_school_id"), nullable=True, index=True)
    classroom_id = Column(String, ForeignKey("classrooms.id", use_alter=True, name="fk_users_classroom_id"), nullable=True, index=True)

    # Materialized sum of APPROVED/VERIFIED session hours; only the session
    # state machine writes it.
    approved_hours = Column(Float, nullable=False, default=0.0)

    classroom = relationship("Classroom", foreign_keys=[classroom_id])
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")

    @property
    def is_school_staff(self) -> bool:
        return self.role in SCHOOL_STAFF_ROLES
