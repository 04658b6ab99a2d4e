"""
Exam window policy shared by the attempt lifecycle and the student views
"""
from datetime import datetime, timedelta, timezone
from enum import Enum


class ExamStatus(str, Enum):
    INACTIVE = "inactive"
    SCHEDULED = "scheduled"
    ONGOING = "ongoing"
    ENDED = "ended"


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every stored datetime uses"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def exam_status(exam, now: datetime) -> ExamStatus:
    """Where an exam stands at `now`; both window bounds are inclusive"""
    if not exam.is_active:
        return ExamStatus.INACTIVE
    if now < exam.start_time:
        return ExamStatus.SCHEDULED
    if now > exam.end_time:
        return ExamStatus.ENDED
    return ExamStatus.ONGOING


def can_start_new(exam, now: datetime) -> bool:
    """
    Whether a student without any attempt may begin one now.
    Resuming an in-progress attempt does not go through this check.
    """
    return exam_status(exam, now) == ExamStatus.ONGOING


def attempt_deadline(start_time: datetime, duration_minutes: int) -> datetime:
    """Countdown deadline the client enforces for one attempt"""
    return start_time + timedelta(minutes=duration_minutes)
