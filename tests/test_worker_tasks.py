"""
Tests for the worker tasks run in-process against a SQLite file.
"""

import asyncio
import importlib
from datetime import timedelta

import pytest
from sqlalchemy import create_engine

from common.db import create_session_factory
from common.exceptions import NotFoundError
from common.models import Base, LeaderboardEntry
from modules import contest_service, submission_store
from modules.classifier import Verdict
from modules.verdict_engine import JudgeOutcome, VerdictEngine

from conftest import NOW, FakeExecutionClient


@pytest.fixture
def worker_env(monkeypatch, tmp_path):
    database_url = f"sqlite:///{tmp_path / 'arena.db'}"
    monkeypatch.setenv("STATIC_TOKEN", "worker-token")
    monkeypatch.setenv("DATABASE_URL", database_url)
    monkeypatch.setenv("USE_REDIS_LOCKS", "false")

    engine = create_engine(database_url)
    Base.metadata.create_all(engine)
    session_factory = create_session_factory(engine)

    judge_tasks = importlib.import_module("worker.tasks.judge_tasks")
    monkeypatch.setattr(
        judge_tasks,
        "build_verdict_engine",
        lambda settings: VerdictEngine(FakeExecutionClient())
    )

    yield judge_tasks, session_factory
    engine.dispose()


@pytest.fixture
def stored_submission(worker_env):
    _, session_factory = worker_env
    db = session_factory()
    try:
        contest = contest_service.create_contest(
            db,
            title="Archive",
            start_time=NOW - timedelta(days=2),
            end_time=NOW - timedelta(days=1)
        )
        question = contest_service.add_question(
            db,
            contest.contest_id,
            title="Echo",
            points=100
        )
        contest_service.add_test_case(
            db,
            question.question_id,
            input="7",
            expected_output="7",
            points=100
        )
        return submission_store.create_submission(
            db,
            contest_id=contest.contest_id,
            question_id=question.question_id,
            user_id="alice",
            code="print(input())",
            language="python",
            outcome=JudgeOutcome(
                verdict=Verdict.WRONG_ANSWER,
                score=0,
                passed_count=0,
                total_count=1,
                execution_time_ms=3,
                failed_case=1
            ),
            submitted_at=NOW - timedelta(days=1, hours=12)
        )
    finally:
        db.close()


def test_run_sync_returns_coroutine_result(worker_env):
    judge_tasks, _ = worker_env

    async def answer():
        await asyncio.sleep(0)
        return 42

    assert judge_tasks.run_sync(answer()) == 42


def test_rejudge_task_writes_new_verdict(worker_env, stored_submission):
    judge_tasks, session_factory = worker_env

    result = judge_tasks.rejudge_submission(stored_submission.submission_id)

    assert result["status"] == "success"
    assert result["rejudge_of"] == stored_submission.submission_id
    assert result["verdict"] == "accepted"
    assert result["score"] == 100

    db = session_factory()
    try:
        entry = db.query(LeaderboardEntry).filter(
            LeaderboardEntry.user_id == "alice"
        ).one()
        assert entry.total_score == 100
        assert entry.rank == 1
    finally:
        db.close()


def test_rejudge_task_propagates_missing_submission(worker_env):
    judge_tasks, _ = worker_env

    with pytest.raises(NotFoundError):
        judge_tasks.rejudge_submission("sub-missing")


def test_rebuild_leaderboard_task(worker_env, stored_submission):
    judge_tasks, _ = worker_env

    result = judge_tasks.rebuild_leaderboard(stored_submission.contest_id)

    assert result == {"status": "success", "entries": 1}
