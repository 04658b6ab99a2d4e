"""
Grading for multiple-choice exam submissions

Pure: takes the submitted answers and the exam's authoritative question
set, returns per-answer correctness and the score. Persistence belongs to
the caller.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GradedAnswer:
    question_id: UUID
    selected_option: int
    is_correct: bool


@dataclass
class GradingResult:
    answers: List[GradedAnswer] = field(default_factory=list)
    score: int = 0
    dropped: int = 0
    
    @property
    def total_questions(self) -> int:
        """Graded questions only; dropped answers are not in the denominator"""
        return len(self.answers)


class GradingService:
    """
    Exact-match grading against the answer key
    
    Answers are matched to questions of the given exam only. Anything that
    does not resolve (unknown, deleted, malformed or belonging to another
    exam) is dropped from both the graded set and the denominator.
    When a question is answered more than once, the last answer wins.
    """
    
    def grade(
        self,
        exam_id: UUID,
        submitted: Iterable[Dict[str, Any]],
        questions: Iterable[Any],
    ) -> GradingResult:
        """
        Grade a submission
        
        Args:
            exam_id: Exam being submitted
            submitted: Items with question_id and selected_option
            questions: Candidate questions; those of other exams are ignored
            
        Returns:
            GradingResult with graded answers in first-seen order
        """
        answer_key = {q.id: q.correct_option for q in questions if q.exam_id == exam_id}
        
        selections: Dict[UUID, int] = {}
        dropped = 0
        for item in submitted:
            question_id = self._parse_question_id(item.get("question_id"))
            if question_id is None or question_id not in answer_key:
                dropped += 1
                continue
            if question_id in selections:
                # Superseded answer for the same question
                dropped += 1
            selections[question_id] = item.get("selected_option")
        
        result = GradingResult(dropped=dropped)
        for question_id, selected in selections.items():
            is_correct = selected == answer_key[question_id]
            result.answers.append(GradedAnswer(question_id, selected, is_correct))
            if is_correct:
                result.score += 1
        
        logger.debug(
            f"Graded exam {exam_id}: {result.score}/{result.total_questions}, "
            f"dropped {dropped}"
        )
        return result
    
    @staticmethod
    def _parse_question_id(value: Any) -> Optional[UUID]:
        if isinstance(value, UUID):
            return value
        try:
            return UUID(str(value))
        except (ValueError, TypeError, AttributeError):
            return None


# Global instance
grading_service = GradingService()
