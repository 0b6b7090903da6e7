from pydantic import BaseModel
from typing import Optional, Dict, Any
from datetime import datetime


class NotificationOut(BaseModel):
    id: str
    kind: str
    title: str
    body: str
    data: Optional[Dict[str, Any]] = None
    is_read: bool
    created_at: datetime

    model_config = {
        'from_attributes': True
    }
