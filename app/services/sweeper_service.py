"""
Referential integrity sweeper

The store has no foreign keys between attempts/answers and their parents,
so deleting an exam or a question leaves orphans behind. This pass
removes them and corrects the cached score of completed attempts that
lost answers. It is idempotent: with no new deletions a second run
changes nothing.

reconcile() is the pure planning step; SweeperService loads the inputs
and applies the plan.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, NamedTuple, Optional, Set
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from app.config import settings
from app.models import Exam, Question, ExamAttempt, StudentAnswer

logger = logging.getLogger(__name__)


class AttemptRef(NamedTuple):
    id: UUID
    exam_id: UUID
    completed: bool
    total_score: int


class AnswerRef(NamedTuple):
    id: UUID
    attempt_id: UUID
    question_id: UUID
    is_correct: bool


@dataclass
class SweepPlan:
    attempts_to_delete: Set[UUID] = field(default_factory=set)
    answers_to_delete: Set[UUID] = field(default_factory=set)
    score_corrections: Dict[UUID, int] = field(default_factory=dict)
    
    @property
    def is_empty(self) -> bool:
        return not (self.attempts_to_delete or self.answers_to_delete or self.score_corrections)


@dataclass
class SweepReport:
    attempts_deleted: int = 0
    answers_deleted: int = 0
    scores_recomputed: int = 0


def reconcile(
    exam_ids: Set[UUID],
    question_ids: Set[UUID],
    attempts: Iterable[AttemptRef],
    answers: Iterable[AnswerRef],
) -> SweepPlan:
    """
    Plan the repair for one snapshot of the store
    
    - attempts whose exam is gone are deleted with all their answers
    - answers whose question (or attempt) is gone are deleted
    - completed attempts that lost an answer get total_score recomputed
      as the count of their remaining correct answers
    """
    by_id = {attempt.id: attempt for attempt in attempts}
    plan = SweepPlan()
    plan.attempts_to_delete = {
        attempt.id for attempt in by_id.values() if attempt.exam_id not in exam_ids
    }
    
    remaining_correct: Dict[UUID, int] = {}
    touched: Set[UUID] = set()
    for answer in answers:
        if answer.attempt_id not in by_id or answer.attempt_id in plan.attempts_to_delete:
            plan.answers_to_delete.add(answer.id)
            continue
        if answer.question_id not in question_ids:
            plan.answers_to_delete.add(answer.id)
            touched.add(answer.attempt_id)
            continue
        if answer.is_correct:
            remaining_correct[answer.attempt_id] = remaining_correct.get(answer.attempt_id, 0) + 1
    
    for attempt_id in touched:
        if by_id[attempt_id].completed:
            plan.score_corrections[attempt_id] = remaining_correct.get(attempt_id, 0)
    
    return plan


class SweeperService:
    """Loads a snapshot, plans with reconcile() and applies the plan in one commit"""
    
    def run(self, db: Session) -> SweepReport:
        # Children before parents: a row committed between two reads can
        # then only be missed by this pass, never taken for an orphan.
        answers = [
            AnswerRef(*row)
            for row in db.query(
                StudentAnswer.id, StudentAnswer.attempt_id,
                StudentAnswer.question_id, StudentAnswer.is_correct,
            )
        ]
        attempts = [
            AttemptRef(*row)
            for row in db.query(
                ExamAttempt.id, ExamAttempt.exam_id, ExamAttempt.completed, ExamAttempt.total_score
            )
        ]
        question_ids = {row[0] for row in db.query(Question.id)}
        exam_ids = {row[0] for row in db.query(Exam.id)}
        
        plan = reconcile(exam_ids, question_ids, attempts, answers)
        if plan.is_empty:
            return SweepReport()
        
        return self._apply(db, plan)
    
    def run_before_read(self, db: Session) -> Optional[SweepReport]:
        """
        Lazy repair ahead of a result read. Failures are logged and the
        read proceeds on unrepaired data.
        """
        if not settings.SWEEP_BEFORE_READS:
            return None
        
        try:
            return self.run(db)
        except Exception as e:
            db.rollback()
            logger.error(f"Integrity sweep failed, continuing with stale data: {str(e)}", exc_info=True)
            return None
    
    def _apply(self, db: Session, plan: SweepPlan) -> SweepReport:
        report = SweepReport()
        try:
            if plan.answers_to_delete:
                report.answers_deleted = (
                    db.query(StudentAnswer)
                    .filter(StudentAnswer.id.in_(plan.answers_to_delete))
                    .delete(synchronize_session=False)
                )
            if plan.attempts_to_delete:
                report.attempts_deleted = (
                    db.query(ExamAttempt)
                    .filter(ExamAttempt.id.in_(plan.attempts_to_delete))
                    .delete(synchronize_session=False)
                )
            for attempt_id, score in plan.score_corrections.items():
                report.scores_recomputed += (
                    db.query(ExamAttempt)
                    .filter(ExamAttempt.id == attempt_id, ExamAttempt.completed.is_(True))
                    .update({ExamAttempt.total_score: score}, synchronize_session=False)
                )
            db.commit()
        except Exception:
            db.rollback()
            raise
        
        # Bulk statements bypass the identity map
        db.expire_all()
        
        logger.info(
            f"Integrity sweep: {report.attempts_deleted} attempts, "
            f"{report.answers_deleted} answers deleted, "
            f"{report.scores_recomputed} scores recomputed"
        )
        return report


# Global instance
sweeper_service = SweeperService()
