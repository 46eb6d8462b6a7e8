"""
Shared fixtures: in-memory database, scripted execution service,
fixed server clock and a small contest.
"""

import asyncio
import random
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from common.db import create_session_factory
from common.models import Base
from modules import contest_service
from modules.contest_gate import ContestGate
from modules.execution_client import ExecutionClient, ExecutionResult
from modules.leaderboard import LeaderboardRanker, LocalLockRegistry
from modules.verdict_engine import VerdictEngine

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

Scripted = Union[ExecutionResult, Exception]


class FakeExecutionClient(ExecutionClient):
    """
    Execution service double.

    Programs echo their stdin unless the stdin is scripted with a
    result or an exception. An optional random latency shuffles the
    completion order of concurrent runs.
    """

    def __init__(
        self,
        script: Optional[dict[str, Scripted]] = None,
        default: Optional[Scripted] = None,
        max_latency: float = 0.0,
        seed: int = 0
    ):
        self.script = script or {}
        self.default = default
        self.max_latency = max_latency
        self.random = random.Random(seed)
        self.calls: list[str] = []

    async def run(
        self,
        code,
        language,
        stdin,
        time_limit_seconds,
        memory_limit_mb
    ) -> ExecutionResult:
        self.calls.append(stdin)
        if self.max_latency:
            await asyncio.sleep(self.random.uniform(0, self.max_latency))

        outcome = self.script.get(stdin, self.default)
        if isinstance(outcome, Exception):
            raise outcome
        if outcome is None:
            return ExecutionResult(stdout=stdin + "\n", duration_ms=5)
        return outcome


class FixedClock:
    """Server clock that only moves when a test moves it."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def gate(clock):
    return ContestGate(clock=clock)


@pytest.fixture
def fake_client():
    return FakeExecutionClient()


@pytest.fixture
def verdict_engine(fake_client):
    return VerdictEngine(fake_client, max_concurrency=4)


@pytest.fixture
def ranker():
    return LeaderboardRanker(LocalLockRegistry())


@pytest.fixture
def contest(db):
    return contest_service.create_contest(
        db,
        title="Weekly Round",
        start_time=NOW - timedelta(hours=1),
        end_time=NOW + timedelta(hours=1)
    )


@pytest.fixture
def question(db, contest):
    """100 point question weighted 30/30/40; the first case is a sample."""
    question = contest_service.add_question(
        db,
        contest.contest_id,
        title="Echo",
        points=100
    )
    for value, points, sample in (("1", 30, True), ("2", 30, False), ("3", 40, False)):
        contest_service.add_test_case(
            db,
            question.question_id,
            input=value,
            expected_output=value,
            points=points,
            is_sample=sample
        )
    return question


@pytest.fixture
def participants(db, contest):
    for user_id in ("alice", "bob", "carol"):
        contest_service.join_contest(db, contest.contest_id, user_id)
    return ["alice", "bob", "carol"]
