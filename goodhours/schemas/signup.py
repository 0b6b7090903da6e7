from pydantic import BaseModel, field_validator
from typing import Optional
from datetime import datetime


class SignupCreate(BaseModel):
    opportunity_id: str


class SignupOut(BaseModel):
    id: str
    opportunity_id: str
    student_id: str
    status: str
    sequence: int
    created_at: datetime
    session_id: Optional[str] = None

    model_config = {
        'from_attributes': True
    }

    @field_validator('status', mode='before')
    def enum_value(cls, v):
        return getattr(v, 'value', v)
