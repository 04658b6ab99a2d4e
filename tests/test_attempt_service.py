import uuid
from datetime import timedelta

import pytest
from sqlalchemy.exc import SQLAlchemyError

from app.exceptions import (
    AlreadyAttempted,
    AlreadySubmitted,
    ExamNotAvailable,
    NotFound,
    NotStarted,
)
from app.models import ExamAttempt, StudentAnswer
from app.services import attempt_service as attempt_module
from app.services.attempt_service import AttemptService, StartStatus
from app.services.eligibility import utcnow


def _answers(*pairs):
    return [{"question_id": str(q.id), "selected_option": option} for q, option in pairs]


def _attempt_count(db, exam_id, student_id):
    return (
        db.query(ExamAttempt)
        .filter(ExamAttempt.exam_id == exam_id, ExamAttempt.student_id == student_id)
        .count()
    )


class TestStartAttempt:

    def setup_method(self):
        self.service = AttemptService()

    def test_start_creates_in_progress_attempt(self, db_session, make_exam, student_id):
        exam = make_exam()
        before = utcnow()

        outcome = self.service.start_attempt(db_session, exam.id, student_id)

        assert outcome.status == StartStatus.STARTED
        assert outcome.attempt.completed is False
        assert outcome.attempt.end_time is None
        assert before <= outcome.attempt.start_time <= utcnow()
        assert outcome.deadline == outcome.attempt.start_time + timedelta(minutes=exam.duration)

    def test_second_start_resumes_same_attempt(self, db_session, make_exam, student_id):
        exam = make_exam()

        first = self.service.start_attempt(db_session, exam.id, student_id)
        second = self.service.start_attempt(db_session, exam.id, student_id)

        assert second.status == StartStatus.RESUMED
        assert second.attempt.id == first.attempt.id
        assert _attempt_count(db_session, exam.id, student_id) == 1

    def test_ended_exam_rejects_new_attempt(self, db_session, make_exam, student_id):
        exam = make_exam(start_offset=-180, end_offset=-60)

        with pytest.raises(ExamNotAvailable) as exc_info:
            self.service.start_attempt(db_session, exam.id, student_id)

        assert exc_info.value.details["exam_status"] == "ended"
        assert _attempt_count(db_session, exam.id, student_id) == 0

    def test_scheduled_exam_rejects_new_attempt(self, db_session, make_exam, student_id):
        exam = make_exam(start_offset=30, end_offset=90)

        with pytest.raises(ExamNotAvailable) as exc_info:
            self.service.start_attempt(db_session, exam.id, student_id)

        assert exc_info.value.details["exam_status"] == "scheduled"

    def test_inactive_exam_rejects_new_attempt(self, db_session, make_exam, student_id):
        exam = make_exam(is_active=False)

        with pytest.raises(ExamNotAvailable):
            self.service.start_attempt(db_session, exam.id, student_id)

    def test_in_progress_attempt_resumes_after_window_closes(self, db_session, make_exam, student_id):
        exam = make_exam()
        started = self.service.start_attempt(db_session, exam.id, student_id)

        later = exam.end_time + timedelta(minutes=30)
        resumed = self.service.start_attempt(db_session, exam.id, student_id, now=later)

        assert resumed.status == StartStatus.RESUMED
        assert resumed.attempt.id == started.attempt.id

    def test_completed_attempt_cannot_restart(self, db_session, exam_with_questions, student_id):
        exam, _ = exam_with_questions
        self.service.start_attempt(db_session, exam.id, student_id)
        self.service.submit_attempt(db_session, exam.id, student_id, [])

        with pytest.raises(AlreadyAttempted):
            self.service.start_attempt(db_session, exam.id, student_id)

    def test_unknown_exam(self, db_session, student_id):
        with pytest.raises(NotFound):
            self.service.start_attempt(db_session, uuid.uuid4(), student_id)

    def test_concurrent_start_collapses_onto_existing_attempt(
        self, db_session, make_exam, student_id, monkeypatch
    ):
        exam = make_exam()
        winner = ExamAttempt(
            exam_id=exam.id, student_id=student_id, start_time=utcnow(), completed=False
        )
        db_session.add(winner)
        db_session.commit()
        winner_id = winner.id

        # The losing request looked before the winner committed
        real_find = AttemptService._find_attempt
        lookups = []

        def racing_find(db, exam_id, sid):
            lookups.append(exam_id)
            if len(lookups) == 1:
                return None
            return real_find(db, exam_id, sid)

        monkeypatch.setattr(AttemptService, "_find_attempt", staticmethod(racing_find))

        outcome = self.service.start_attempt(db_session, exam.id, student_id)

        assert outcome.status == StartStatus.RESUMED
        assert outcome.attempt.id == winner_id
        assert _attempt_count(db_session, exam.id, student_id) == 1


class TestSubmitAttempt:

    def setup_method(self):
        self.service = AttemptService()

    def test_submit_without_start(self, db_session, exam_with_questions, student_id):
        exam, _ = exam_with_questions

        with pytest.raises(NotStarted):
            self.service.submit_attempt(db_session, exam.id, student_id, [])

    def test_submit_grades_and_completes(self, db_session, exam_with_questions, student_id):
        exam, (q1, q2, q3) = exam_with_questions
        started = self.service.start_attempt(db_session, exam.id, student_id)

        outcome = self.service.submit_attempt(
            db_session, exam.id, student_id, _answers((q1, 1), (q2, 2), (q3, 4))
        )

        assert (outcome.total_score, outcome.total_questions) == (2, 3)
        db_session.expire_all()
        attempt = db_session.get(ExamAttempt, started.attempt.id)
        assert attempt.completed is True
        assert attempt.total_score == 2
        assert attempt.end_time is not None
        answers = db_session.query(StudentAnswer).filter(StudentAnswer.attempt_id == attempt.id).all()
        assert len(answers) == 3
        assert sorted(a.is_correct for a in answers) == [False, True, True]

    def test_second_submit_changes_nothing(self, db_session, exam_with_questions, student_id):
        exam, (q1, q2, q3) = exam_with_questions
        started = self.service.start_attempt(db_session, exam.id, student_id)
        self.service.submit_attempt(db_session, exam.id, student_id, _answers((q1, 1)))
        db_session.expire_all()
        first_end = db_session.get(ExamAttempt, started.attempt.id).end_time

        with pytest.raises(AlreadySubmitted):
            self.service.submit_attempt(
                db_session, exam.id, student_id, _answers((q1, 1), (q2, 2), (q3, 3))
            )

        db_session.expire_all()
        attempt = db_session.get(ExamAttempt, started.attempt.id)
        assert attempt.total_score == 1
        assert attempt.end_time == first_end
        assert db_session.query(StudentAnswer).count() == 1

    def test_concurrent_submit_loses_compare_and_swap(
        self, db_session, exam_with_questions, student_id, monkeypatch
    ):
        exam, (q1, _, _) = exam_with_questions
        started = self.service.start_attempt(db_session, exam.id, student_id)
        attempt_id = started.attempt.id
        real_grade = attempt_module.grading_service.grade

        def grade_while_other_submit_lands(exam_id, submitted, questions):
            db_session.query(ExamAttempt).filter(ExamAttempt.id == attempt_id).update(
                {ExamAttempt.completed: True, ExamAttempt.total_score: 0},
                synchronize_session=False,
            )
            db_session.commit()
            return real_grade(exam_id, submitted, questions)

        monkeypatch.setattr(attempt_module.grading_service, "grade", grade_while_other_submit_lands)

        with pytest.raises(AlreadySubmitted):
            self.service.submit_attempt(db_session, exam.id, student_id, _answers((q1, 1)))

        db_session.expire_all()
        assert db_session.get(ExamAttempt, attempt_id).total_score == 0
        assert db_session.query(StudentAnswer).count() == 0

    def test_failed_persistence_leaves_attempt_retryable(
        self, db_session, exam_with_questions, student_id, monkeypatch
    ):
        exam, (q1, q2, _) = exam_with_questions
        started = self.service.start_attempt(db_session, exam.id, student_id)
        real_commit = db_session.commit
        failures = []

        def failing_commit():
            if not failures:
                failures.append(True)
                raise SQLAlchemyError("connection lost")
            return real_commit()

        monkeypatch.setattr(db_session, "commit", failing_commit)

        with pytest.raises(SQLAlchemyError):
            self.service.submit_attempt(db_session, exam.id, student_id, _answers((q1, 1)))

        db_session.expire_all()
        assert db_session.get(ExamAttempt, started.attempt.id).completed is False
        assert db_session.query(StudentAnswer).count() == 0

        outcome = self.service.submit_attempt(
            db_session, exam.id, student_id, _answers((q1, 1), (q2, 2))
        )
        assert (outcome.total_score, outcome.total_questions) == (2, 2)

    def test_foreign_question_is_dropped(
        self, db_session, exam_with_questions, make_exam, make_question, student_id
    ):
        exam, (q1, q2, q3) = exam_with_questions
        other_exam = make_exam(name="Other")
        foreign = make_question(other_exam, correct_option=1)
        self.service.start_attempt(db_session, exam.id, student_id)

        outcome = self.service.submit_attempt(
            db_session, exam.id, student_id, _answers((q1, 1), (foreign, 1))
        )

        assert (outcome.total_score, outcome.total_questions) == (1, 1)
        question_ids = {a.question_id for a in db_session.query(StudentAnswer).all()}
        assert question_ids == {q1.id}


class TestAvailableExams:

    def test_lists_only_ongoing_exams_with_attempt_state(self, db_session, make_exam, student_id):
        service = AttemptService()
        open_exam = make_exam(name="Open")
        started_exam = make_exam(name="Started")
        make_exam(name="Later", start_offset=60, end_offset=120)
        make_exam(name="Over", start_offset=-120, end_offset=-60)
        make_exam(name="Hidden", is_active=False)
        service.start_attempt(db_session, started_exam.id, student_id)

        available = {item["exam"].exam_name: item for item in service.list_available_exams(db_session, student_id)}

        assert set(available) == {"Open", "Started"}
        assert available["Open"]["attempted"] is False
        assert available["Started"]["attempted"] is True
        assert available["Started"]["completed"] is False
        assert open_exam.id == available["Open"]["exam"].id
