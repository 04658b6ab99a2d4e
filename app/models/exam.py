"""
Exam model - scheduled examination with a per-student time budget
"""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, Uuid, func
from app.database import Base
import uuid


class Exam(Base):
    """
    Exams table - the [start_time, end_time] window bounds new attempts,
    duration (minutes) bounds each student's own attempt
    """
    __tablename__ = "exams"
    
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    exam_name = Column(String(255), nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    duration = Column(Integer, nullable=False)  # minutes
    is_active = Column(Boolean, nullable=False, default=False)
    created_by = Column(Uuid(as_uuid=True), nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    
    def __repr__(self):
        return f"<Exam(id={self.id}, name={self.exam_name}, active={self.is_active})>"
