"""
Seed a demo exam and print a bearer token for each role

Creates one active exam open for the next hour with two questions.
Identities are not stored by this service, so each role gets a fresh
user id embedded in its token.

Run with: python -m app.scripts.seed_demo
"""
import logging
import uuid
from datetime import timedelta

from app.database import SessionLocal, init_db
from app.models import Exam, Question
from app.services.eligibility import utcnow
from app.utils.auth import Role, create_access_token

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

DEMO_QUESTIONS = [
    {
        "question_text": "What is 2 + 2?",
        "option1": "3",
        "option2": "4",
        "option3": "5",
        "option4": "6",
        "correct_option": 2,
    },
    {
        "question_text": "What is 5 * 3?",
        "option1": "15",
        "option2": "10",
        "option3": "20",
        "option4": "8",
        "correct_option": 1,
    },
]


def seed() -> None:
    init_db()
    user_ids = {role: uuid.uuid4() for role in Role}
    
    db = SessionLocal()
    try:
        now = utcnow()
        exam = Exam(
            exam_name="Sample Math Exam",
            start_time=now,
            end_time=now + timedelta(hours=1),
            duration=60,
            is_active=True,
            created_by=user_ids[Role.EXAM_MANAGER],
        )
        db.add(exam)
        db.flush()
        
        db.add_all([
            Question(exam_id=exam.id, created_by=user_ids[Role.QUESTION_MANAGER], **data)
            for data in DEMO_QUESTIONS
        ])
        db.commit()
        logger.info(f"Seeded exam {exam.id} with {len(DEMO_QUESTIONS)} questions")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
    
    print("Demo bearer tokens:")
    for role, user_id in user_ids.items():
        print(f"{role.value:<18} {create_access_token(user_id, role)}")


if __name__ == "__main__":
    seed()
