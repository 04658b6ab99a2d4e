"""
System Admin endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
import logging

from app.database import get_db
from app.models import Exam
from app.schemas.exam import ExamResponse
from app.schemas.attempt import ResultSummary, SweepReportResponse
from app.services.reporting_service import reporting_service
from app.services.sweeper_service import sweeper_service
from app.utils.auth import Identity, Role, require_roles

router = APIRouter(prefix="/api/admin", tags=["admin"])
logger = logging.getLogger(__name__)

system_admin = require_roles(Role.SYSTEM_ADMIN)


@router.get("/exams", response_model=List[ExamResponse])
async def get_all_exams(
    identity: Identity = Depends(system_admin),
    db: Session = Depends(get_db),
):
    """Every exam, most recently created first"""
    return db.query(Exam).order_by(Exam.created_at.desc()).all()


@router.get("/results", response_model=List[ResultSummary])
async def get_all_results(
    identity: Identity = Depends(system_admin),
    db: Session = Depends(get_db),
):
    """Every attempt"""
    return reporting_service.list_results(db)


@router.post("/maintenance/sweep", response_model=SweepReportResponse)
async def run_integrity_sweep(
    identity: Identity = Depends(system_admin),
    db: Session = Depends(get_db),
):
    """
    Remove orphaned attempts and answers now and recompute affected scores

    Unlike the lazy pass before result reads, failures here are reported.
    """
    logger.info(f"Integrity sweep requested by {identity.user_id}")
    report = sweeper_service.run(db)
    return SweepReportResponse(
        attempts_deleted=report.attempts_deleted,
        answers_deleted=report.answers_deleted,
        scores_recomputed=report.scores_recomputed,
    )
