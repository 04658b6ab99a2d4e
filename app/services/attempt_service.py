"""
Exam attempt lifecycle: NoAttempt -> InProgress -> Completed

One attempt per (exam, student), ever. Starting is idempotent while the
attempt is in progress; submitting happens exactly once. The store
enforces both: a unique constraint on (exam_id, student_id) for start and
a conditional update on completed = false for submit.

There is no server-side timer. The client counts down from
start_time + duration and calls submit itself when time runs out.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.exceptions import (
    AlreadyAttempted,
    AlreadySubmitted,
    ExamNotAvailable,
    NotFound,
    NotStarted,
)
from app.models import Exam, Question, ExamAttempt, StudentAnswer
from app.services.eligibility import (
    ExamStatus,
    attempt_deadline,
    can_start_new,
    exam_status,
    utcnow,
)
from app.services.grading_service import grading_service

logger = logging.getLogger(__name__)


class StartStatus(str, Enum):
    STARTED = "started"
    RESUMED = "resumed"


@dataclass
class StartOutcome:
    attempt: ExamAttempt
    exam: Exam
    status: StartStatus
    
    @property
    def deadline(self) -> datetime:
        return attempt_deadline(self.attempt.start_time, self.exam.duration)


@dataclass
class SubmitOutcome:
    attempt_id: UUID
    total_score: int
    total_questions: int


class AttemptService:
    """Entry points of the attempt state machine"""
    
    def list_available_exams(
        self,
        db: Session,
        student_id: UUID,
        now: Optional[datetime] = None,
    ) -> List[Dict[str, Any]]:
        """
        Exams open right now, each annotated with the student's attempt state
        """
        now = now or utcnow()
        candidates = (
            db.query(Exam)
            .filter(Exam.is_active.is_(True), Exam.start_time <= now, Exam.end_time >= now)
            .order_by(Exam.start_time)
            .all()
        )
        exams = [exam for exam in candidates if exam_status(exam, now) == ExamStatus.ONGOING]
        if not exams:
            return []
        
        attempts = {
            attempt.exam_id: attempt
            for attempt in db.query(ExamAttempt).filter(
                ExamAttempt.student_id == student_id,
                ExamAttempt.exam_id.in_([exam.id for exam in exams]),
            )
        }
        
        available = []
        for exam in exams:
            attempt = attempts.get(exam.id)
            available.append({
                "exam": exam,
                "attempted": attempt is not None,
                "completed": bool(attempt and attempt.completed),
                "attempt_id": attempt.id if attempt else None,
            })
        return available
    
    def start_attempt(
        self,
        db: Session,
        exam_id: UUID,
        student_id: UUID,
        now: Optional[datetime] = None,
    ) -> StartOutcome:
        """
        Start, or resume, the student's attempt at an exam
        
        Raises:
            NotFound: exam does not exist
            AlreadyAttempted: a completed attempt exists
            ExamNotAvailable: no attempt yet and the exam is not open
        """
        now = now or utcnow()
        exam = db.get(Exam, exam_id)
        if exam is None:
            raise NotFound("Exam", exam_id)
        
        existing = self._find_attempt(db, exam_id, student_id)
        if existing is not None:
            return self._resume(existing, exam)
        
        status = exam_status(exam, now)
        if not can_start_new(exam, now):
            logger.info(f"Start refused for exam {exam_id}, student {student_id}: {status.value}")
            raise ExamNotAvailable(exam_id, status.value)
        
        attempt = ExamAttempt(
            exam_id=exam_id,
            student_id=student_id,
            start_time=now,
            total_score=0,
            completed=False,
        )
        db.add(attempt)
        try:
            db.commit()
        except IntegrityError:
            # A concurrent start won the unique (exam_id, student_id) slot
            db.rollback()
            existing = self._find_attempt(db, exam_id, student_id)
            if existing is None:
                raise
            logger.info(f"Concurrent start collapsed onto attempt {existing.id}")
            return self._resume(existing, exam)
        
        db.refresh(attempt)
        logger.info(f"Attempt {attempt.id} started: exam {exam_id}, student {student_id}")
        return StartOutcome(attempt=attempt, exam=exam, status=StartStatus.STARTED)
    
    def get_questions_for_attempt(
        self,
        db: Session,
        exam_id: UUID,
        student_id: UUID,
        now: Optional[datetime] = None,
    ) -> List[Question]:
        """
        Questions of an exam in creation order. Callers must render them
        through the redacted student schema.
        
        Readable while the student's attempt is in progress, or before it
        exists while the exam is open for new attempts.
        
        Raises:
            NotFound: exam does not exist
            AlreadyAttempted: the student's attempt is completed
            ExamNotAvailable: no attempt yet and the exam is not open
        """
        now = now or utcnow()
        exam = db.get(Exam, exam_id)
        if exam is None:
            raise NotFound("Exam", exam_id)
        
        attempt = self._find_attempt(db, exam_id, student_id)
        if attempt is not None:
            if attempt.completed:
                raise AlreadyAttempted(exam_id)
        elif not can_start_new(exam, now):
            raise ExamNotAvailable(exam_id, exam_status(exam, now).value)
        
        return (
            db.query(Question)
            .filter(Question.exam_id == exam_id)
            .order_by(Question.created_at, Question.id)
            .all()
        )
    
    def submit_attempt(
        self,
        db: Session,
        exam_id: UUID,
        student_id: UUID,
        answers: Iterable[Dict[str, Any]],
        now: Optional[datetime] = None,
    ) -> SubmitOutcome:
        """
        Grade and finalize the student's attempt
        
        The completed flag, score, end time and every answer row are
        written in one transaction. If anything fails the attempt stays in
        progress and the submit can be retried.
        
        Raises:
            NotStarted: no attempt exists
            AlreadySubmitted: the attempt is already completed, including
                when a concurrent submit completed it first
        """
        now = now or utcnow()
        attempt = self._find_attempt(db, exam_id, student_id)
        if attempt is None:
            raise NotStarted(exam_id)
        if attempt.completed:
            raise AlreadySubmitted(exam_id)
        
        questions = db.query(Question).filter(Question.exam_id == exam_id).all()
        result = grading_service.grade(exam_id, answers, questions)
        attempt_id = attempt.id
        
        try:
            updated = (
                db.query(ExamAttempt)
                .filter(ExamAttempt.id == attempt_id, ExamAttempt.completed.is_(False))
                .update(
                    {
                        ExamAttempt.completed: True,
                        ExamAttempt.end_time: now,
                        ExamAttempt.total_score: result.score,
                    },
                    synchronize_session=False,
                )
            )
            if updated == 0:
                db.rollback()
                logger.info(f"Duplicate submit ignored for attempt {attempt_id}")
                raise AlreadySubmitted(exam_id)
            
            db.add_all([
                StudentAnswer(
                    attempt_id=attempt_id,
                    question_id=graded.question_id,
                    selected_option=graded.selected_option,
                    is_correct=graded.is_correct,
                )
                for graded in result.answers
            ])
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to persist submission for attempt {attempt_id}: {str(e)}")
            raise
        
        logger.info(
            f"Attempt {attempt_id} submitted: {result.score}/{result.total_questions}"
            f" ({result.dropped} answers dropped)"
        )
        return SubmitOutcome(
            attempt_id=attempt_id,
            total_score=result.score,
            total_questions=result.total_questions,
        )
    
    def _resume(self, attempt: ExamAttempt, exam: Exam) -> StartOutcome:
        if attempt.completed:
            raise AlreadyAttempted(exam.id)
        logger.info(f"Attempt {attempt.id} resumed")
        return StartOutcome(attempt=attempt, exam=exam, status=StartStatus.RESUMED)
    
    @staticmethod
    def _find_attempt(db: Session, exam_id: UUID, student_id: UUID) -> Optional[ExamAttempt]:
        return (
            db.query(ExamAttempt)
            .filter(ExamAttempt.exam_id == exam_id, ExamAttempt.student_id == student_id)
            .first()
        )


# Global instance
attempt_service = AttemptService()
