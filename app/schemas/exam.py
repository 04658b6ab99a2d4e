"""
Pydantic schemas for exam management and the student exam list
"""
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional
from datetime import datetime, timezone
from uuid import UUID

from app.services.eligibility import ExamStatus


def _to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored timestamps are naive UTC; aware inputs are converted"""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class ExamCreate(BaseModel):
    """Request schema for exam creation"""
    exam_name: str = Field(..., min_length=1, max_length=255)
    start_time: datetime
    end_time: datetime
    duration: int = Field(..., ge=1, description="Per-student time budget in minutes")
    
    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_times(cls, value):
        return _to_naive_utc(value)
    
    @model_validator(mode="after")
    def check_window(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class ExamUpdate(BaseModel):
    """Partial update; omitted fields keep their value"""
    exam_name: Optional[str] = Field(None, min_length=1, max_length=255)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: Optional[int] = Field(None, ge=1)
    
    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_times(cls, value):
        return _to_naive_utc(value)


class ExamResponse(BaseModel):
    """Exam as seen by managers and students"""
    id: UUID
    exam_name: str
    start_time: datetime
    end_time: datetime
    duration: int
    is_active: bool
    created_by: UUID
    created_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True


class AvailableExamResponse(ExamResponse):
    """Open exam annotated with the calling student's attempt state"""
    attempted: bool
    completed: bool
    attempt_id: Optional[UUID] = None


class ExamOverviewResponse(BaseModel):
    """Exam with question and attempt counts"""
    exam: ExamResponse
    status: ExamStatus
    question_count: int
    attempt_count: int
    completed_count: int
    in_progress_count: int


class OngoingAttemptResponse(BaseModel):
    """In-progress attempt with its countdown deadline"""
    attempt_id: UUID
    student_id: UUID
    start_time: datetime
    deadline: datetime
    overdue: bool
