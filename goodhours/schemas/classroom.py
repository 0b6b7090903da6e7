from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class ClassroomCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    required_hours: Optional[float] = Field(default=None, gt=0)
    teacher_id: Optional[str] = None


class ClassroomUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    is_active: Optional[bool] = None
    teacher_id: Optional[str] = None
    # explicit null clears the override
    required_hours: Optional[float] = Field(default=None, gt=0)


class JoinClassroomRequest(BaseModel):
    invite_code: str = Field(min_length=1, max_length=32)


class ClassroomStats(BaseModel):
    student_count: int = 0
    completed_count: int = 0
    on_track_count: int = 0
    at_risk_count: int = 0
    total_approved_hours: float = 0.0


class ClassroomOut(BaseModel):
    id: str
    name: str
    school_id: str
    teacher_id: str
    invite_code: str
    is_active: bool
    required_hours: Optional[float] = None
    created_at: datetime
    stats: Optional[ClassroomStats] = None

    model_config = {
        'from_attributes': True
    }


class StudentClassroomOut(BaseModel):
    """What a student sees about their classroom (no invite code)."""
    id: str
    name: str
    school_id: str
    required_hours: Optional[float] = None

    model_config = {
        'from_attributes': True
    }
