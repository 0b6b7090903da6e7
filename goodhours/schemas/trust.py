from pydantic import BaseModel, field_validator
from typing import Optional
from datetime import datetime


class TrustRequestCreate(BaseModel):
    school_id: str


class TrustRelationOut(BaseModel):
    id: str
    organization_id: str
    school_id: str
    status: str
    requested_at: datetime
    decided_at: Optional[datetime] = None
    decided_by: Optional[str] = None

    model_config = {
        'from_attributes': True
    }

    @field_validator('status', mode='before')
    def enum_value(cls, v):
        return getattr(v, 'value', v)
