"""
StudentAnswer model - graded once at submission, immutable afterwards
"""
from sqlalchemy import Column, Integer, Boolean, DateTime, Uuid, func
from app.database import Base
import uuid


class StudentAnswer(Base):
    """
    Student answers table - is_correct is frozen against the answer key
    as it was at submission time
    """
    __tablename__ = "student_answers"
    
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    attempt_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    question_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    selected_option = Column(Integer, nullable=False)
    is_correct = Column(Boolean, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    
    def __repr__(self):
        return f"<StudentAnswer(attempt_id={self.attempt_id}, question_id={self.question_id}, correct={self.is_correct})>"
