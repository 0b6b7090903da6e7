from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional
from datetime import datetime

from goodhours.models.service_session import SignatureType


class VerificationSubmit(BaseModel):
    """Supervisor signature: a drawn data URI or a reference to an uploaded file."""
    method: SignatureType
    signature_data: Optional[str] = None
    file_url: Optional[str] = None
    file_name: Optional[str] = None

    @model_validator(mode='after')
    def artifact_present(self):
        if self.method == SignatureType.DRAWN and not self.signature_data:
            raise ValueError('signature_data required for a drawn signature')
        if self.method == SignatureType.FILE and not (self.file_url and self.file_name):
            raise ValueError('file_url and file_name required for a file signature')
        return self


class ApproveRequest(BaseModel):
    approved_hours: Optional[float] = Field(default=None, gt=0)


class RejectRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=1000)


class RemoveHoursRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=1000)


class SessionOut(BaseModel):
    id: str
    signup_id: str
    student_id: str
    opportunity_id: str
    school_id: Optional[str] = None
    status: str
    verification_status: str
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    total_hours: Optional[float] = None
    signature_type: Optional[str] = None
    signature_file_name: Optional[str] = None
    submitted_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    removal_reason: Optional[str] = None
    abandoned_at: Optional[datetime] = None
    created_at: datetime

    model_config = {
        'from_attributes': True
    }

    @field_validator('status', 'verification_status', 'signature_type', mode='before')
    def enum_value(cls, v):
        return getattr(v, 'value', v)


class ReviewItemOut(SessionOut):
    student_name: Optional[str] = None
    opportunity_title: Optional[str] = None
    opportunity_date: Optional[datetime] = None


class RecomputeOut(BaseModel):
    student_id: str
    approved_hours: float


