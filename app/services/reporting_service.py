"""
Read-only projections over attempts for dashboards

Every multi-attempt read and every attempt detail read is preceded by a
best-effort integrity sweep, so results never show attempts of deleted
exams or answers to deleted questions.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.exceptions import NotFound, NotYetCompleted
from app.models import Exam, Question, ExamAttempt, StudentAnswer
from app.services.eligibility import attempt_deadline, exam_status, utcnow
from app.services.sweeper_service import sweeper_service

logger = logging.getLogger(__name__)


class ReportingService:
    """Result listings and attempt details"""
    
    def list_results(
        self,
        db: Session,
        exam_id: Optional[UUID] = None,
        student_id: Optional[UUID] = None,
    ) -> List[Dict[str, Any]]:
        """
        Attempts, newest first, optionally narrowed to one exam or student
        
        Args:
            db: Database session
            exam_id: Only attempts at this exam
            student_id: Only attempts by this student
            
        Returns:
            List of result summaries
        """
        sweeper_service.run_before_read(db)
        
        query = db.query(ExamAttempt)
        if exam_id is not None:
            query = query.filter(ExamAttempt.exam_id == exam_id)
        if student_id is not None:
            query = query.filter(ExamAttempt.student_id == student_id)
        attempts = query.order_by(ExamAttempt.start_time.desc()).all()
        
        return self._summaries(db, attempts)
    
    def get_attempt_detail(
        self,
        db: Session,
        attempt_id: UUID,
        student_id: Optional[UUID] = None,
    ) -> Dict[str, Any]:
        """
        A completed attempt with per-answer correctness and the answer key
        
        When student_id is given the attempt must belong to that student;
        someone else's attempt is reported as not found.
        
        Raises:
            NotFound: attempt absent or not owned by student_id
            NotYetCompleted: attempt still in progress
        """
        sweeper_service.run_before_read(db)
        
        attempt = db.get(ExamAttempt, attempt_id)
        if attempt is None or (student_id is not None and attempt.student_id != student_id):
            raise NotFound("Attempt", attempt_id)
        if not attempt.completed:
            raise NotYetCompleted(attempt_id)
        
        exam = db.get(Exam, attempt.exam_id)
        rows = (
            db.query(StudentAnswer, Question)
            .join(Question, Question.id == StudentAnswer.question_id)
            .filter(StudentAnswer.attempt_id == attempt.id)
            .order_by(Question.created_at, Question.id)
            .all()
        )
        
        answers = [
            {
                "question_id": question.id,
                "question_text": question.question_text,
                "options": [question.option1, question.option2, question.option3, question.option4],
                "selected_option": answer.selected_option,
                "correct_option": question.correct_option,
                "is_correct": answer.is_correct,
            }
            for answer, question in rows
        ]
        
        summary = self._summary(attempt, exam, len(answers))
        summary["answers"] = answers
        return summary
    
    def exam_overview(self, db: Session, exam_id: UUID, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Exam with its question count and attempt counts"""
        now = now or utcnow()
        exam = db.get(Exam, exam_id)
        if exam is None:
            raise NotFound("Exam", exam_id)
        
        question_count = db.query(func.count(Question.id)).filter(Question.exam_id == exam_id).scalar()
        counts = dict(
            db.query(ExamAttempt.completed, func.count(ExamAttempt.id))
            .filter(ExamAttempt.exam_id == exam_id)
            .group_by(ExamAttempt.completed)
            .all()
        )
        
        return {
            "exam": exam,
            "status": exam_status(exam, now),
            "question_count": question_count or 0,
            "attempt_count": sum(counts.values()),
            "completed_count": counts.get(True, 0),
            "in_progress_count": counts.get(False, 0),
        }
    
    def ongoing_attempts(
        self,
        db: Session,
        exam_id: UUID,
        now: Optional[datetime] = None,
    ) -> List[Dict[str, Any]]:
        """
        In-progress attempts with their countdown deadline. An attempt past
        its deadline stays in progress until its client submits.
        """
        now = now or utcnow()
        exam = db.get(Exam, exam_id)
        if exam is None:
            raise NotFound("Exam", exam_id)
        
        attempts = (
            db.query(ExamAttempt)
            .filter(ExamAttempt.exam_id == exam_id, ExamAttempt.completed.is_(False))
            .order_by(ExamAttempt.start_time)
            .all()
        )
        
        ongoing = []
        for attempt in attempts:
            deadline = attempt_deadline(attempt.start_time, exam.duration)
            ongoing.append({
                "attempt_id": attempt.id,
                "student_id": attempt.student_id,
                "start_time": attempt.start_time,
                "deadline": deadline,
                "overdue": now > deadline,
            })
        return ongoing
    
    def _summaries(self, db: Session, attempts: List[ExamAttempt]) -> List[Dict[str, Any]]:
        if not attempts:
            return []
        
        attempt_ids = [a.id for a in attempts]
        exams = {
            exam.id: exam
            for exam in db.query(Exam).filter(Exam.id.in_({a.exam_id for a in attempts}))
        }
        graded = dict(
            db.query(StudentAnswer.attempt_id, func.count(StudentAnswer.id))
            .filter(StudentAnswer.attempt_id.in_(attempt_ids))
            .group_by(StudentAnswer.attempt_id)
            .all()
        )
        
        return [
            self._summary(attempt, exams.get(attempt.exam_id), graded.get(attempt.id, 0))
            for attempt in attempts
        ]
    
    @staticmethod
    def _summary(attempt: ExamAttempt, exam: Optional[Exam], total_questions: int) -> Dict[str, Any]:
        # The cached score can outrun the graded rows until the next sweep
        score = min(attempt.total_score, total_questions)
        percentage = (score / total_questions * 100) if total_questions else 0.0
        return {
            "attempt_id": attempt.id,
            "exam_id": attempt.exam_id,
            "exam_name": exam.exam_name if exam else None,
            "student_id": attempt.student_id,
            "start_time": attempt.start_time,
            "end_time": attempt.end_time,
            "completed": attempt.completed,
            "total_score": attempt.total_score,
            "total_questions": total_questions,
            "percentage": round(percentage, 2),
        }


# Global instance
reporting_service = ReportingService()
