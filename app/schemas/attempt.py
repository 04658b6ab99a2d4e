"""
Pydantic schemas for the attempt lifecycle and results
"""
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from uuid import UUID

from app.services.attempt_service import StartStatus


class AnswerSubmission(BaseModel):
    """One selected option; unknown question ids are dropped at grading"""
    question_id: str
    selected_option: int = Field(..., ge=1, le=4)


class SubmitRequest(BaseModel):
    """Answers collected by the client, possibly none on timeout"""
    answers: List[AnswerSubmission] = Field(default_factory=list)


class StartAttemptResponse(BaseModel):
    """Started or resumed attempt; deadline = start_time + duration"""
    status: StartStatus
    attempt_id: UUID
    exam_id: UUID
    start_time: datetime
    duration: int
    deadline: datetime


class SubmitResponse(BaseModel):
    """Score over the questions that were actually graded"""
    total_score: int
    total_questions: int


class ResultSummary(BaseModel):
    """One attempt in a result listing"""
    attempt_id: UUID
    exam_id: UUID
    exam_name: Optional[str] = None
    student_id: UUID
    start_time: datetime
    end_time: Optional[datetime] = None
    completed: bool
    total_score: int
    total_questions: int
    percentage: float


class AnswerDetail(BaseModel):
    """Graded answer with the answer key, shown after submission"""
    question_id: UUID
    question_text: str
    options: List[str]
    selected_option: int
    correct_option: int
    is_correct: bool


class AttemptDetailResponse(ResultSummary):
    """Completed attempt with every graded answer"""
    answers: List[AnswerDetail]


class SweepReportResponse(BaseModel):
    """What one integrity sweep repaired"""
    attempts_deleted: int
    answers_deleted: int
    scores_recomputed: int
