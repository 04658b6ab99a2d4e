"""
Exam management and student exam-taking endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID
import logging

from app.database import get_db
from app.exceptions import NotFound, ValidationFailed
from app.models import Exam, Question
from app.schemas.exam import (
    ExamCreate,
    ExamUpdate,
    ExamResponse,
    AvailableExamResponse,
    ExamOverviewResponse,
    OngoingAttemptResponse,
)
from app.schemas.question import StudentQuestionResponse
from app.schemas.attempt import (
    StartAttemptResponse,
    SubmitRequest,
    SubmitResponse,
    ResultSummary,
)
from app.services.attempt_service import attempt_service
from app.services.reporting_service import reporting_service
from app.utils.auth import Identity, Role, require_roles

router = APIRouter(prefix="/api/exams", tags=["exams"])
logger = logging.getLogger(__name__)

exam_manager = require_roles(Role.EXAM_MANAGER)
exam_readers = require_roles(Role.EXAM_MANAGER, Role.QUESTION_MANAGER, Role.RESULT_MANAGER)
student = require_roles(Role.STUDENT)


def _get_exam(db: Session, exam_id: UUID) -> Exam:
    exam = db.get(Exam, exam_id)
    if exam is None:
        raise NotFound("Exam", exam_id)
    return exam


# ============================================
# Exam Manager
# ============================================

@router.post("/", response_model=ExamResponse, status_code=201)
async def create_exam(
    request: ExamCreate,
    identity: Identity = Depends(exam_manager),
    db: Session = Depends(get_db),
):
    """
    Create an exam

    - Inactive until explicitly activated
    - Owned by the calling Exam Manager
    """
    exam = Exam(
        exam_name=request.exam_name,
        start_time=request.start_time,
        end_time=request.end_time,
        duration=request.duration,
        is_active=False,
        created_by=identity.user_id,
    )
    db.add(exam)
    db.commit()
    db.refresh(exam)
    
    logger.info(f"Exam created: {exam.id} by {identity.user_id}")
    return exam


@router.get("/", response_model=List[ExamResponse])
async def list_exams(
    identity: Identity = Depends(exam_readers),
    db: Session = Depends(get_db),
):
    """All exams, newest window first"""
    return db.query(Exam).order_by(Exam.start_time.desc()).all()


# ============================================
# Student
# ============================================

@router.get("/available", response_model=List[AvailableExamResponse])
async def list_available_exams(
    identity: Identity = Depends(student),
    db: Session = Depends(get_db),
):
    """
    Exams open right now, with whether the caller has attempted and
    completed each one
    """
    available = attempt_service.list_available_exams(db, identity.user_id)
    return [
        AvailableExamResponse(
            **ExamResponse.model_validate(item["exam"]).model_dump(),
            attempted=item["attempted"],
            completed=item["completed"],
            attempt_id=item["attempt_id"],
        )
        for item in available
    ]


@router.get("/{exam_id}/questions", response_model=List[StudentQuestionResponse])
async def get_exam_questions(
    exam_id: UUID,
    identity: Identity = Depends(student),
    db: Session = Depends(get_db),
):
    """Questions for taking the exam; the answer key is never included"""
    questions = attempt_service.get_questions_for_attempt(db, exam_id, identity.user_id)
    return [StudentQuestionResponse.model_validate(q) for q in questions]


@router.post("/{exam_id}/start", response_model=StartAttemptResponse)
async def start_exam(
    exam_id: UUID,
    identity: Identity = Depends(student),
    db: Session = Depends(get_db),
):
    """
    Start the caller's attempt, or resume it if already in progress

    The client derives its countdown from the returned deadline.
    """
    outcome = attempt_service.start_attempt(db, exam_id, identity.user_id)
    return StartAttemptResponse(
        status=outcome.status,
        attempt_id=outcome.attempt.id,
        exam_id=outcome.exam.id,
        start_time=outcome.attempt.start_time,
        duration=outcome.exam.duration,
        deadline=outcome.deadline,
    )


@router.post("/{exam_id}/submit", response_model=SubmitResponse)
async def submit_exam(
    exam_id: UUID,
    submission: SubmitRequest,
    identity: Identity = Depends(student),
    db: Session = Depends(get_db),
):
    """
    Submit the caller's answers; also the call a client makes when its
    countdown reaches zero
    """
    outcome = attempt_service.submit_attempt(
        db,
        exam_id,
        identity.user_id,
        [answer.model_dump() for answer in submission.answers],
    )
    return SubmitResponse(
        total_score=outcome.total_score,
        total_questions=outcome.total_questions,
    )


# ============================================
# Exam Manager, per exam
# ============================================

@router.get("/{exam_id}/details", response_model=ExamOverviewResponse)
async def get_exam_details(
    exam_id: UUID,
    identity: Identity = Depends(exam_manager),
    db: Session = Depends(get_db),
):
    """Exam with question and attempt counts"""
    overview = reporting_service.exam_overview(db, exam_id)
    overview["exam"] = ExamResponse.model_validate(overview["exam"])
    return ExamOverviewResponse(**overview)


@router.get("/{exam_id}/attempts", response_model=List[ResultSummary])
async def get_exam_attempts(
    exam_id: UUID,
    identity: Identity = Depends(exam_manager),
    db: Session = Depends(get_db),
):
    """Every attempt at the exam"""
    _get_exam(db, exam_id)
    return reporting_service.list_results(db, exam_id=exam_id)


@router.get("/{exam_id}/ongoing", response_model=List[OngoingAttemptResponse])
async def get_ongoing_attempts(
    exam_id: UUID,
    identity: Identity = Depends(exam_manager),
    db: Session = Depends(get_db),
):
    """Attempts still in progress, flagged when past their deadline"""
    return reporting_service.ongoing_attempts(db, exam_id)


@router.put("/{exam_id}", response_model=ExamResponse)
async def update_exam(
    exam_id: UUID,
    request: ExamUpdate,
    identity: Identity = Depends(exam_manager),
    db: Session = Depends(get_db),
):
    """Update name, window or duration"""
    exam = _get_exam(db, exam_id)
    
    changes = request.model_dump(exclude_unset=True, exclude_none=True)
    start_time = changes.get("start_time", exam.start_time)
    end_time = changes.get("end_time", exam.end_time)
    if end_time <= start_time:
        raise ValidationFailed("end_time must be after start_time")
    
    for field, value in changes.items():
        setattr(exam, field, value)
    db.commit()
    db.refresh(exam)
    
    logger.info(f"Exam updated: {exam_id} ({', '.join(changes) or 'no changes'})")
    return exam


@router.post("/{exam_id}/activate", response_model=ExamResponse)
async def activate_exam(
    exam_id: UUID,
    identity: Identity = Depends(exam_manager),
    db: Session = Depends(get_db),
):
    """Open the exam to students within its window"""
    exam = _get_exam(db, exam_id)
    exam.is_active = True
    db.commit()
    db.refresh(exam)
    logger.info(f"Exam activated: {exam_id}")
    return exam


@router.post("/{exam_id}/deactivate", response_model=ExamResponse)
async def deactivate_exam(
    exam_id: UUID,
    identity: Identity = Depends(exam_manager),
    db: Session = Depends(get_db),
):
    """Close the exam to new attempts; in-progress attempts can still finish"""
    exam = _get_exam(db, exam_id)
    exam.is_active = False
    db.commit()
    db.refresh(exam)
    logger.info(f"Exam deactivated: {exam_id}")
    return exam


@router.delete("/{exam_id}")
async def delete_exam(
    exam_id: UUID,
    identity: Identity = Depends(exam_manager),
    db: Session = Depends(get_db),
):
    """
    Delete an exam and its questions

    Its attempts and answers are left for the integrity sweeper.
    """
    exam = _get_exam(db, exam_id)
    removed = (
        db.query(Question)
        .filter(Question.exam_id == exam_id)
        .delete(synchronize_session=False)
    )
    db.delete(exam)
    db.commit()
    
    logger.info(f"Exam deleted: {exam_id} with {removed} questions")
    return {"message": "Exam deleted", "questions_deleted": removed}
