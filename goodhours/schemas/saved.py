from pydantic import BaseModel, field_validator
from typing import Optional
from datetime import datetime

from goodhours.models.saved_opportunity import SavedStatus
from goodhours.schemas.opportunity import OpportunityOut


class SavedCreate(BaseModel):
    opportunity_id: str
    status: SavedStatus = SavedStatus.SAVED


class SavedOpportunityOut(BaseModel):
    id: str
    opportunity_id: str
    status: str
    created_at: datetime
    opportunity: Optional[OpportunityOut] = None

    model_config = {
        'from_attributes': True
    }

    @field_validator('status', mode='before')
    def enum_value(cls, v):
        return getattr(v, 'value', v)
