"""
ExamAttempt model - one row per (exam, student), ever
"""
from sqlalchemy import (
    Column, Integer, Boolean, DateTime, Uuid, UniqueConstraint, func
)
from app.database import Base
import uuid


class ExamAttempt(Base):
    """
    Exam attempts table

    The unique constraint on (exam_id, student_id) is what makes a
    concurrent duplicate start collapse into a single attempt.
    total_score is a cached count of correct answers, written by submit
    and by the integrity sweeper only.
    """
    __tablename__ = "exam_attempts"
    __table_args__ = (
        UniqueConstraint("exam_id", "student_id", name="uq_exam_attempt_exam_student"),
    )
    
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    exam_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    student_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=True)
    total_score = Column(Integer, nullable=False, default=0)
    completed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())
    
    def __repr__(self):
        return (
            f"<ExamAttempt(exam_id={self.exam_id}, student_id={self.student_id}, "
            f"completed={self.completed}, score={self.total_score})>"
        )
