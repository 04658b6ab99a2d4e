import uuid
from datetime import timedelta

from app.config import settings
from app.database import SessionLocal
from app.models import Exam, ExamAttempt, Question, StudentAnswer
from app.services.eligibility import utcnow
from app.services.sweeper_service import (
    AnswerRef,
    AttemptRef,
    SweeperService,
    reconcile,
)


def _id():
    return uuid.uuid4()


class TestReconcile:

    def test_nothing_to_do_when_everything_resolves(self):
        exam, question, attempt = _id(), _id(), _id()

        plan = reconcile(
            {exam},
            {question},
            [AttemptRef(attempt, exam, True, 1)],
            [AnswerRef(_id(), attempt, question, True)],
        )

        assert plan.is_empty

    def test_attempt_of_deleted_exam_is_deleted_with_its_answers(self):
        live_exam, gone_exam, question = _id(), _id(), _id()
        orphan, kept = _id(), _id()
        orphan_answer, kept_answer = _id(), _id()

        plan = reconcile(
            {live_exam},
            {question},
            [AttemptRef(orphan, gone_exam, True, 1), AttemptRef(kept, live_exam, True, 1)],
            [
                AnswerRef(orphan_answer, orphan, question, True),
                AnswerRef(kept_answer, kept, question, True),
            ],
        )

        assert plan.attempts_to_delete == {orphan}
        assert plan.answers_to_delete == {orphan_answer}
        assert plan.score_corrections == {}

    def test_answer_to_deleted_question_triggers_score_recompute(self):
        exam, kept_q, gone_q, attempt = _id(), _id(), _id(), _id()
        gone_answer = _id()

        plan = reconcile(
            {exam},
            {kept_q},
            [AttemptRef(attempt, exam, True, 2)],
            [
                AnswerRef(_id(), attempt, kept_q, True),
                AnswerRef(gone_answer, attempt, gone_q, True),
            ],
        )

        assert plan.attempts_to_delete == set()
        assert plan.answers_to_delete == {gone_answer}
        assert plan.score_corrections == {attempt: 1}

    def test_losing_an_incorrect_answer_keeps_the_score(self):
        exam, kept_q, gone_q, attempt = _id(), _id(), _id(), _id()

        plan = reconcile(
            {exam},
            {kept_q},
            [AttemptRef(attempt, exam, True, 1)],
            [
                AnswerRef(_id(), attempt, kept_q, True),
                AnswerRef(_id(), attempt, gone_q, False),
            ],
        )

        assert plan.score_corrections == {attempt: 1}

    def test_in_progress_attempt_is_not_rescored(self):
        exam, gone_q, attempt = _id(), _id(), _id()

        plan = reconcile(
            {exam}, set(), [AttemptRef(attempt, exam, False, 0)],
            [AnswerRef(_id(), attempt, gone_q, False)],
        )

        assert plan.score_corrections == {}
        assert len(plan.answers_to_delete) == 1

    def test_answer_without_attempt_is_deleted(self):
        stray = _id()

        plan = reconcile({_id()}, {_id()}, [], [AnswerRef(stray, _id(), _id(), True)])

        assert plan.answers_to_delete == {stray}

    def test_all_answers_gone_recomputes_to_zero(self):
        exam, attempt = _id(), _id()

        plan = reconcile(
            {exam}, set(), [AttemptRef(attempt, exam, True, 3)],
            [AnswerRef(_id(), attempt, _id(), True) for _ in range(3)],
        )

        assert plan.score_corrections == {attempt: 0}


def _completed_attempt(db, exam_id, answers):
    """answers: list of (question_id, is_correct)"""
    attempt = ExamAttempt(
        exam_id=exam_id,
        student_id=uuid.uuid4(),
        start_time=utcnow(),
        end_time=utcnow(),
        total_score=sum(1 for _, correct in answers if correct),
        completed=True,
    )
    db.add(attempt)
    db.flush()
    db.add_all([
        StudentAnswer(
            attempt_id=attempt.id,
            question_id=question_id,
            selected_option=1,
            is_correct=correct,
        )
        for question_id, correct in answers
    ])
    db.commit()
    return attempt.id


def _submitted_exam(db):
    """A fresh exam with one question and a completed attempt answering it correctly"""
    now = utcnow()
    exam = Exam(
        exam_name='Late exam',
        start_time=now,
        end_time=now + timedelta(hours=1),
        duration=30,
        is_active=True,
        created_by=uuid.uuid4(),
    )
    db.add(exam)
    db.flush()
    question = Question(
        exam_id=exam.id,
        question_text='Late question?',
        option1='A',
        option2='B',
        option3='C',
        option4='D',
        correct_option=1,
        created_by=uuid.uuid4(),
    )
    db.add(question)
    db.commit()
    return _completed_attempt(db, exam.id, [(question.id, True)])


class TestSweeperService:

    def test_deletes_orphaned_attempts_and_rescores(self, db_session, make_exam, make_question):
        exam = make_exam()
        q1, q2 = make_question(exam), make_question(exam)
        rescored = _completed_attempt(db_session, exam.id, [(q1.id, True), (q2.id, True)])
        orphaned = _completed_attempt(db_session, uuid.uuid4(), [(q1.id, True)])

        db_session.delete(q2)
        db_session.commit()

        report = SweeperService().run(db_session)

        assert report.attempts_deleted == 1
        assert report.answers_deleted == 2
        assert report.scores_recomputed == 1
        assert db_session.get(ExamAttempt, orphaned) is None
        assert db_session.get(ExamAttempt, rescored).total_score == 1
        assert db_session.query(StudentAnswer).count() == 1

    def test_rows_committed_between_reads_are_left_alone(self, db_session, monkeypatch):
        writer = SessionLocal()
        read = db_session.query

        def query_after_concurrent_submit(*entities, **kwargs):
            _submitted_exam(writer)
            return read(*entities, **kwargs)

        monkeypatch.setattr(db_session, "query", query_after_concurrent_submit)
        try:
            report = SweeperService().run(db_session)

            assert (report.attempts_deleted, report.answers_deleted, report.scores_recomputed) == (0, 0, 0)
            assert writer.query(ExamAttempt).count() == 4
            assert writer.query(StudentAnswer).count() == 4
            assert {a.total_score for a in writer.query(ExamAttempt)} == {1}
        finally:
            writer.close()

    def test_second_run_is_a_no_op(self, db_session, make_exam, make_question):
        exam = make_exam()
        q1 = make_question(exam)
        _completed_attempt(db_session, uuid.uuid4(), [(q1.id, True)])
        sweeper = SweeperService()

        sweeper.run(db_session)
        report = sweeper.run(db_session)

        assert (report.attempts_deleted, report.answers_deleted, report.scores_recomputed) == (0, 0, 0)

    def test_run_before_read_swallows_failures(self, db_session, monkeypatch):
        sweeper = SweeperService()

        def broken(db):
            raise RuntimeError("store unavailable")

        monkeypatch.setattr(sweeper, "run", broken)

        assert sweeper.run_before_read(db_session) is None

    def test_run_before_read_respects_setting(self, db_session, monkeypatch):
        sweeper = SweeperService()
        calls = []
        monkeypatch.setattr(sweeper, "run", lambda db: calls.append(db))
        monkeypatch.setattr(settings, "SWEEP_BEFORE_READS", False)

        assert sweeper.run_before_read(db_session) is None
        assert calls == []
