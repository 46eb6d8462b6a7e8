"""
Tests for the run, submit and re-judge operations end to end on an
in-memory database.
"""

import asyncio
import threading
from contextlib import contextmanager
from datetime import timedelta

import pytest

from common.exceptions import (
    ContestEndedError,
    ContestNotStartedError,
    NotFoundError,
    NotParticipantError,
    ValidationError,
)
from common.models import LeaderboardEntry, Submission, TestCase
from common.timeutils import as_utc
from modules import contest_service, judging_service
from modules.contest_gate import STATUS_ENDED, STATUS_LIVE, STATUS_UPCOMING
from modules.contest_gate import contest_status
from modules.execution_client import ExecutionResult
from modules.leaderboard import LeaderboardRanker, LocalLockRegistry

from conftest import NOW

WRONG = ExecutionResult(stdout="wrong\n", exit_code=0)


def _submit(db, engine, gate, ranker, contest, question, user_id="alice",
            code="print(input())", language="python", on_failure=None):
    return asyncio.run(judging_service.submit_solution(
        db,
        engine,
        gate,
        ranker,
        contest.contest_id,
        question.question_id,
        user_id,
        code,
        language,
        on_standings_failure=on_failure
    ))


def _submission_count(db) -> int:
    return db.query(Submission).count()


class BusyLocks:
    """Lock registry whose lock is never acquired in time."""

    @contextmanager
    def lock(self, contest_id):
        raise TimeoutError(f"leaderboard lock of {contest_id} is busy")
        yield


class ThreadRecordingRanker(LeaderboardRanker):
    def __init__(self):
        super().__init__(LocalLockRegistry())
        self.threads = []

    def record_submission(self, db, contest_id, user_id):
        self.threads.append(threading.current_thread())
        return super().record_submission(db, contest_id, user_id)


def test_contest_status_follows_server_clock(contest, clock):
    assert contest_status(contest, clock()) == STATUS_LIVE
    assert contest_status(contest, NOW - timedelta(hours=2)) == STATUS_UPCOMING
    assert contest_status(contest, NOW + timedelta(hours=2)) == STATUS_ENDED


def test_gate_admits_at_end_time(contest, gate, clock):
    clock.now = as_utc(contest.end_time)
    assert gate.admit(contest) == as_utc(contest.end_time)


def test_accepted_submission(db, verdict_engine, gate, ranker, contest,
                             question, participants):
    submission = _submit(db, verdict_engine, gate, ranker, contest, question)

    assert submission.verdict == "accepted"
    assert submission.score == 100
    assert submission.passed_count == 3
    assert submission.total_count == 3
    assert submission.error_message is None
    assert as_utc(submission.submitted_at) == NOW

    entry = ranker.get_user_entry(db, contest.contest_id, "alice")
    assert entry.total_score == 100
    assert entry.problems_solved == 1
    assert entry.rank == 1


def test_wrong_answer_submission(db, verdict_engine, fake_client, gate,
                                 ranker, contest, question, participants):
    fake_client.script["3"] = WRONG
    submission = _submit(db, verdict_engine, gate, ranker, contest, question)

    assert submission.verdict == "wrong_answer"
    assert submission.score == 60
    assert submission.passed_count == 2
    assert submission.failed_case == 3
    assert submission.error_message == "Test case 3: Wrong answer"


def test_submission_after_end_is_rejected(db, verdict_engine, fake_client,
                                          gate, clock, ranker, contest,
                                          question, participants):
    clock.advance(hours=1, seconds=1)

    with pytest.raises(ContestEndedError):
        _submit(db, verdict_engine, gate, ranker, contest, question)

    assert _submission_count(db) == 0
    assert fake_client.calls == []


def test_submission_before_start_is_rejected(db, verdict_engine, gate,
                                             clock, ranker, contest,
                                             question, participants):
    clock.now = NOW - timedelta(hours=2)

    with pytest.raises(ContestNotStartedError):
        _submit(db, verdict_engine, gate, ranker, contest, question)

    assert _submission_count(db) == 0


def test_submission_requires_participation(db, verdict_engine, gate, ranker,
                                           contest, question):
    with pytest.raises(NotParticipantError):
        _submit(db, verdict_engine, gate, ranker, contest, question)

    assert _submission_count(db) == 0


def test_submission_validation(db, verdict_engine, gate, ranker, contest,
                               question, participants):
    with pytest.raises(ValidationError):
        _submit(db, verdict_engine, gate, ranker, contest, question,
                language="cobol")
    with pytest.raises(ValidationError):
        _submit(db, verdict_engine, gate, ranker, contest, question,
                code="   ")

    assert _submission_count(db) == 0


def test_question_must_belong_to_contest(db, verdict_engine, gate, ranker,
                                         contest, question, participants):
    other = contest_service.create_contest(
        db,
        title="Other",
        start_time=NOW - timedelta(hours=1),
        end_time=NOW + timedelta(hours=1)
    )

    with pytest.raises(NotFoundError):
        _submit(db, verdict_engine, gate, ranker, other, question)


def test_run_uses_samples_only_and_stores_nothing(db, verdict_engine,
                                                  fake_client, gate,
                                                  question, participants):
    first = asyncio.run(judging_service.run_tests(
        db,
        verdict_engine,
        gate,
        question.question_id,
        "print(input())",
        "python"
    ))
    second = asyncio.run(judging_service.run_tests(
        db,
        verdict_engine,
        gate,
        question.question_id,
        "print(input())",
        "python"
    ))

    assert [r.model_dump() for r in first] == [r.model_dump() for r in second]
    assert len(first) == 1
    assert first[0].passed
    assert first[0].expected == "1"
    assert fake_client.calls == ["1", "1"]
    assert _submission_count(db) == 0


def test_run_reports_failures_per_case(db, verdict_engine, fake_client,
                                       gate, question):
    fake_client.script["1"] = WRONG

    results = asyncio.run(judging_service.run_tests(
        db,
        verdict_engine,
        gate,
        question.question_id,
        "print('wrong')",
        "python"
    ))

    assert results[0].verdict == "wrong_answer"
    assert not results[0].passed
    assert results[0].actual == "wrong\n"
    assert results[0].error == "Wrong answer"


def test_run_rejects_hidden_test_case(db, verdict_engine, gate, question):
    hidden = [
        tc for tc in contest_service.get_test_cases(db, question.question_id)
        if tc.is_hidden
    ]

    with pytest.raises(ValidationError):
        asyncio.run(judging_service.run_tests(
            db,
            verdict_engine,
            gate,
            question.question_id,
            "print(input())",
            "python",
            [hidden[0].test_case_id]
        ))


def test_run_after_end_is_rejected(db, verdict_engine, fake_client, gate,
                                   clock, question):
    clock.advance(days=1)

    with pytest.raises(ContestEndedError):
        asyncio.run(judging_service.run_tests(
            db,
            verdict_engine,
            gate,
            question.question_id,
            "print(input())",
            "python"
        ))

    assert fake_client.calls == []


def test_rejudge_supersedes_original(db, verdict_engine, fake_client, gate,
                                     clock, ranker, contest, question,
                                     participants):
    fake_client.script["3"] = WRONG
    original = _submit(db, verdict_engine, gate, ranker, contest, question)
    assert original.score == 60

    # Test data fixed after the contest; re-judging is not gated
    fake_client.script.clear()
    clock.advance(days=1)
    rejudged = asyncio.run(judging_service.rejudge_submission(
        db,
        verdict_engine,
        ranker,
        original.submission_id
    ))

    assert rejudged.submission_id != original.submission_id
    assert rejudged.rejudge_of == original.submission_id
    assert rejudged.verdict == "accepted"
    assert as_utc(rejudged.submitted_at) == as_utc(original.submitted_at)

    db.refresh(original)
    assert original.verdict == "wrong_answer"
    assert original.score == 60

    entry = ranker.get_user_entry(db, contest.contest_id, "alice")
    assert entry.total_score == 100
    assert entry.problems_solved == 1


def test_rejudge_unknown_submission(db, verdict_engine, ranker):
    with pytest.raises(NotFoundError):
        asyncio.run(judging_service.rejudge_submission(
            db,
            verdict_engine,
            ranker,
            "sub-missing"
        ))


def test_rejudge_without_test_cases_is_rejected(db, verdict_engine,
                                                fake_client, gate, ranker,
                                                contest, question,
                                                participants):
    fake_client.script["3"] = WRONG
    original = _submit(db, verdict_engine, gate, ranker, contest, question)
    db.query(TestCase).filter(
        TestCase.question_id == question.question_id
    ).delete()
    db.commit()
    fake_client.calls.clear()

    with pytest.raises(ValidationError):
        asyncio.run(judging_service.rejudge_submission(
            db,
            verdict_engine,
            ranker,
            original.submission_id
        ))

    assert fake_client.calls == []
    assert _submission_count(db) == 1
    entry = ranker.get_user_entry(db, contest.contest_id, "alice")
    assert entry.total_score == 60
    assert entry.problems_solved == 0


def test_stored_submission_survives_standings_failure(db, verdict_engine,
                                                      gate, ranker, contest,
                                                      question, participants):
    queued = []

    submission = _submit(
        db,
        verdict_engine,
        gate,
        LeaderboardRanker(BusyLocks()),
        contest,
        question,
        on_failure=queued.append
    )

    assert submission.verdict == "accepted"
    assert _submission_count(db) == 1
    assert queued == [contest.contest_id]
    assert db.query(LeaderboardEntry).count() == 0

    ranker.rebuild(db, contest.contest_id)
    entry = ranker.get_user_entry(db, contest.contest_id, "alice")
    assert entry.total_score == 100
    assert entry.rank == 1


def test_failed_rebuild_dispatch_does_not_fail_submission(db, verdict_engine,
                                                          gate, contest,
                                                          question,
                                                          participants):
    def broker_down(contest_id):
        raise ConnectionError("broker unreachable")

    submission = _submit(
        db,
        verdict_engine,
        gate,
        LeaderboardRanker(BusyLocks()),
        contest,
        question,
        on_failure=broker_down
    )

    assert submission.score == 100
    assert _submission_count(db) == 1


def test_standings_update_runs_off_the_event_loop(db, verdict_engine, gate,
                                                  contest, question,
                                                  participants):
    ranker = ThreadRecordingRanker()

    _submit(db, verdict_engine, gate, ranker, contest, question)

    assert len(ranker.threads) == 1
    assert ranker.threads[0] is not threading.main_thread()
    assert ranker.get_user_entry(db, contest.contest_id, "alice").rank == 1
