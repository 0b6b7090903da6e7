from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime


class OpportunityCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = ""
    location: str = ""
    date: datetime
    duration_hours: float = Field(gt=0)
    capacity: int = Field(gt=0)


class OpportunityUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    location: Optional[str] = None
    date: Optional[datetime] = None
    duration_hours: Optional[float] = None
    capacity: Optional[int] = None

    @field_validator('duration_hours')
    def duration_positive(cls, v):
        if v is not None and v <= 0:
            raise ValueError('duration_hours must be > 0')
        return v

    @field_validator('capacity')
    def capacity_positive(cls, v):
        if v is not None and v <= 0:
            raise ValueError('capacity must be > 0')
        return v


class OpportunityOut(BaseModel):
    id: str
    organization_id: str
    title: str
    description: str
    location: str
    date: datetime
    duration_hours: float
    capacity: int
    status: str
    confirmed_count: int = 0
    waitlisted_count: int = 0
    spots_left: int = 0
    created_at: datetime

    model_config = {
        'from_attributes': True
    }

    @field_validator('status', mode='before')
    def enum_value(cls, v):
        return getattr(v, 'value', v)
