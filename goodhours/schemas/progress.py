from pydantic import BaseModel
from typing import List


class StudentProgressOut(BaseModel):
    student_id: str
    student_name: str
    approved_hours: float
    required_hours: float
    percent_complete: float
    status: str
    pending_hours: float
    committed_hours: float
    rejected_hours: float


class ProgressSummaryOut(BaseModel):
    student_count: int
    completed_count: int
    on_track_count: int
    at_risk_count: int
    total_approved_hours: float
    students: List[StudentProgressOut]
