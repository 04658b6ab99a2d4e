"""
Question bank endpoints for Question Managers
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID
import logging

from app.database import get_db
from app.exceptions import NotFound
from app.models import Exam, Question
from app.schemas.question import QuestionCreate, QuestionUpdate, QuestionResponse
from app.utils.auth import Identity, Role, require_roles

router = APIRouter(prefix="/api/questions", tags=["questions"])
logger = logging.getLogger(__name__)

question_manager = require_roles(Role.QUESTION_MANAGER)


def _get_question(db: Session, question_id: UUID) -> Question:
    question = db.get(Question, question_id)
    if question is None:
        raise NotFound("Question", question_id)
    return question


@router.post("/", response_model=QuestionResponse, status_code=201)
async def create_question(
    request: QuestionCreate,
    identity: Identity = Depends(question_manager),
    db: Session = Depends(get_db),
):
    """Add a question to an existing exam"""
    if db.get(Exam, request.exam_id) is None:
        raise NotFound("Exam", request.exam_id)
    
    question = Question(**request.model_dump(), created_by=identity.user_id)
    db.add(question)
    db.commit()
    db.refresh(question)
    
    logger.info(f"Question created: {question.id} for exam {request.exam_id}")
    return question


@router.get("/all", response_model=List[QuestionResponse])
async def list_all_questions(
    identity: Identity = Depends(question_manager),
    db: Session = Depends(get_db),
):
    """Every question across all exams, newest first"""
    return db.query(Question).order_by(Question.created_at.desc()).all()


@router.get("/{exam_id}", response_model=List[QuestionResponse])
async def list_exam_questions(
    exam_id: UUID,
    identity: Identity = Depends(question_manager),
    db: Session = Depends(get_db),
):
    """Questions of one exam, with answer keys"""
    return (
        db.query(Question)
        .filter(Question.exam_id == exam_id)
        .order_by(Question.created_at, Question.id)
        .all()
    )


@router.put("/{question_id}", response_model=QuestionResponse)
async def update_question(
    question_id: UUID,
    request: QuestionUpdate,
    identity: Identity = Depends(question_manager),
    db: Session = Depends(get_db),
):
    """
    Edit a question

    Answers already graded keep the correctness they were given.
    """
    question = _get_question(db, question_id)
    for field, value in request.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(question, field, value)
    db.commit()
    db.refresh(question)
    
    logger.info(f"Question updated: {question_id}")
    return question


@router.delete("/{question_id}")
async def delete_question(
    question_id: UUID,
    identity: Identity = Depends(question_manager),
    db: Session = Depends(get_db),
):
    """Delete a question; answers to it are removed by the integrity sweeper"""
    question = _get_question(db, question_id)
    db.delete(question)
    db.commit()
    
    logger.info(f"Question deleted: {question_id}")
    return {"message": "Question deleted"}
