"""
Question model - four-option multiple choice with a one-based answer key
"""
from sqlalchemy import Column, Text, Integer, DateTime, Uuid, CheckConstraint, func
from app.database import Base
from app.services.eligibility import utcnow
import uuid


class Question(Base):
    """
    Questions table - correct_option is never exposed to students
    """
    __tablename__ = "questions"
    __table_args__ = (
        CheckConstraint("correct_option BETWEEN 1 AND 4", name="ck_question_correct_option"),
    )
    
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    exam_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    question_text = Column(Text, nullable=False)
    option1 = Column(Text, nullable=False)
    option2 = Column(Text, nullable=False)
    option3 = Column(Text, nullable=False)
    option4 = Column(Text, nullable=False)
    correct_option = Column(Integer, nullable=False)
    created_by = Column(Uuid(as_uuid=True), nullable=False)
    # Set client-side: question order follows it at microsecond resolution
    created_at = Column(DateTime, default=utcnow, server_default=func.now())
    
    def __repr__(self):
        return f"<Question(id={self.id}, exam_id={self.exam_id})>"
