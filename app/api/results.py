"""
Result endpoints for students and Result Managers
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID
import logging

from app.database import get_db
from app.schemas.attempt import ResultSummary, AttemptDetailResponse
from app.services.reporting_service import reporting_service
from app.utils.auth import Identity, Role, require_roles

router = APIRouter(prefix="/api/results", tags=["results"])
logger = logging.getLogger(__name__)

student = require_roles(Role.STUDENT)
result_manager = require_roles(Role.RESULT_MANAGER)


# Student routes come before the parameterized ones

@router.get("/student/me", response_model=List[ResultSummary])
async def get_my_results(
    identity: Identity = Depends(student),
    db: Session = Depends(get_db),
):
    """The caller's own attempts, newest first"""
    return reporting_service.list_results(db, student_id=identity.user_id)


@router.get("/student/me/{attempt_id}", response_model=AttemptDetailResponse)
async def get_my_attempt_details(
    attempt_id: UUID,
    identity: Identity = Depends(student),
    db: Session = Depends(get_db),
):
    """The caller's own submitted attempt with correct answers revealed"""
    return reporting_service.get_attempt_detail(db, attempt_id, student_id=identity.user_id)


@router.get("/student/{student_id}", response_model=List[ResultSummary])
async def get_results_by_student(
    student_id: UUID,
    identity: Identity = Depends(result_manager),
    db: Session = Depends(get_db),
):
    """All attempts by one student"""
    return reporting_service.list_results(db, student_id=student_id)


@router.get("/attempt/{attempt_id}/details", response_model=AttemptDetailResponse)
async def get_attempt_details(
    attempt_id: UUID,
    identity: Identity = Depends(result_manager),
    db: Session = Depends(get_db),
):
    """Any submitted attempt with per-answer correctness"""
    return reporting_service.get_attempt_detail(db, attempt_id)


@router.get("/", response_model=List[ResultSummary])
async def get_all_results(
    identity: Identity = Depends(result_manager),
    db: Session = Depends(get_db),
):
    """Every attempt"""
    return reporting_service.list_results(db)


@router.get("/{exam_id}", response_model=List[ResultSummary])
async def get_results_by_exam(
    exam_id: UUID,
    identity: Identity = Depends(result_manager),
    db: Session = Depends(get_db),
):
    """All attempts at one exam"""
    return reporting_service.list_results(db, exam_id=exam_id)
