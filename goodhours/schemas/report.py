from pydantic import BaseModel, field_validator
from typing import Any, Dict, List, Optional
from datetime import datetime


class AuditLogOut(BaseModel):
    id: str
    action: str
    actor_id: str
    actor_name: Optional[str] = None
    actor_role: Optional[str] = None
    session_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    created_at: datetime

    model_config = {
        'from_attributes': True
    }


class VolunteerSessionOut(BaseModel):
    session_id: str
    student_id: str
    student_name: str
    student_email: str
    opportunity_id: str
    opportunity_title: str
    opportunity_date: datetime
    total_hours: float
    status: str
    verified_at: Optional[datetime] = None

    @field_validator('status', mode='before')
    def enum_value(cls, v):
        return getattr(v, 'value', v)


class OrganizationImpactOut(BaseModel):
    organization_id: str
    total_opportunities: int
    confirmed_signups: int
    total_sessions: int
    approved_sessions: int
    total_approved_hours: float
    unique_volunteers: int


class OrganizationReportOut(OrganizationImpactOut):
    volunteers: List[VolunteerSessionOut]
