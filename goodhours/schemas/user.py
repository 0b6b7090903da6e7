from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime

from goodhours.models.school import VerificationStandard


class UserOut(BaseModel):
    id: str
    name: str
    email: EmailStr
    role: str
    organization_id: Optional[str] = None
    school_id: Optional[str] = None
    classroom_id: Optional[str] = None
    approved_hours: float = 0.0
    created_at: Optional[datetime] = None

    model_config = {
        'from_attributes': True
    }

    @field_validator('role', mode='before')
    def enum_value(cls, v):
        return getattr(v, 'value', v)


class OrganizationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    description: Optional[str] = None
    website: Optional[str] = None


class OrganizationOut(BaseModel):
    id: str
    name: str
    email: str
    description: Optional[str] = None
    website: Optional[str] = None
    created_at: datetime

    model_config = {
        'from_attributes': True
    }


class SchoolCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    address: Optional[str] = None
    description: Optional[str] = None
    required_hours: float = Field(default=40.0, gt=0)
    verification_standard: VerificationStandard = VerificationStandard.ORGANIZATION


class SchoolSettingsUpdate(BaseModel):
    required_hours: Optional[float] = Field(default=None, gt=0)
    verification_standard: Optional[VerificationStandard] = None


class SchoolOut(BaseModel):
    id: str
    name: str
    address: Optional[str] = None
    admin_user_id: Optional[str] = None
    required_hours: float
    verification_standard: str
    created_at: datetime

    model_config = {
        'from_attributes': True
    }

    @field_validator('verification_standard', mode='before')
    def enum_value(cls, v):
        return getattr(v, 'value', v)
