"""
Database models package
"""
from app.models.exam import Exam
from app.models.question import Question
from app.models.exam_attempt import ExamAttempt
from app.models.student_answer import StudentAnswer

__all__ = ["Exam", "Question", "ExamAttempt", "StudentAnswer"]
