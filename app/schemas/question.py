"""
Pydantic schemas for questions

QuestionResponse carries the answer key and is for Question Managers
only. Students always get StudentQuestionResponse, which has no
correct_option field at all.
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from uuid import UUID


class QuestionCreate(BaseModel):
    """Request schema for question creation"""
    exam_id: UUID
    question_text: str = Field(..., min_length=1)
    option1: str = Field(..., min_length=1)
    option2: str = Field(..., min_length=1)
    option3: str = Field(..., min_length=1)
    option4: str = Field(..., min_length=1)
    correct_option: int = Field(..., ge=1, le=4, description="One-based index of the right option")


class QuestionUpdate(BaseModel):
    """Partial update; the owning exam cannot change"""
    question_text: Optional[str] = Field(None, min_length=1)
    option1: Optional[str] = Field(None, min_length=1)
    option2: Optional[str] = Field(None, min_length=1)
    option3: Optional[str] = Field(None, min_length=1)
    option4: Optional[str] = Field(None, min_length=1)
    correct_option: Optional[int] = Field(None, ge=1, le=4)


class StudentQuestionResponse(BaseModel):
    """Question without its answer key"""
    id: UUID
    exam_id: UUID
    question_text: str
    option1: str
    option2: str
    option3: str
    option4: str
    
    class Config:
        from_attributes = True


class QuestionResponse(StudentQuestionResponse):
    """Question with its answer key"""
    correct_option: int
    created_by: UUID
    created_at: Optional[datetime] = None
