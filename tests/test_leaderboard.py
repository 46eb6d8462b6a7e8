"""
Tests for standings, ranking and the submission store queries behind them.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from datetime import timedelta

from common.timeutils import as_utc
from modules import contest_service, submission_store
from modules.classifier import Verdict
from modules.leaderboard import LeaderboardRanker, LocalLockRegistry
from modules.verdict_engine import JudgeOutcome

from conftest import NOW


class CountingLocks(LocalLockRegistry):
    """Local locks that record how many holders overlap."""

    def __init__(self):
        super().__init__()
        self.holders = 0
        self.max_holders = 0
        self._count = threading.Lock()

    @contextmanager
    def lock(self, contest_id):
        with super().lock(contest_id):
            with self._count:
                self.holders += 1
                self.max_holders = max(self.max_holders, self.holders)
            try:
                time.sleep(0.01)
                yield
            finally:
                with self._count:
                    self.holders -= 1


def _store(db, contest, question, user_id, score, minutes, rejudge_of=None):
    verdict = (
        Verdict.ACCEPTED if score == question.points else Verdict.WRONG_ANSWER
    )
    return submission_store.create_submission(
        db,
        contest_id=contest.contest_id,
        question_id=question.question_id,
        user_id=user_id,
        code="code",
        language="python",
        outcome=JudgeOutcome(
            verdict=verdict,
            score=score,
            passed_count=0,
            total_count=3,
            execution_time_ms=10
        ),
        submitted_at=NOW + timedelta(minutes=minutes),
        rejudge_of=rejudge_of
    )


def _record(db, ranker, contest, question, user_id, score, minutes):
    submission = _store(db, contest, question, user_id, score, minutes)
    ranker.record_submission(db, contest.contest_id, user_id)
    return submission


def _standings(db, ranker, contest):
    return [
        (entry.user_id, entry.rank, entry.total_score)
        for entry in ranker.get_leaderboard(db, contest.contest_id)
    ]


def test_equal_scores_share_rank(db, ranker, contest, question):
    _record(db, ranker, contest, question, "alice", 100, 5)
    _record(db, ranker, contest, question, "bob", 100, 10)
    _record(db, ranker, contest, question, "carol", 60, 1)

    assert _standings(db, ranker, contest) == [
        ("alice", 1, 100),
        ("bob", 1, 100),
        ("carol", 3, 60),
    ]


def test_reach_time_separates_ranks_when_enabled(db, contest, question):
    ranker = LeaderboardRanker(LocalLockRegistry(), rank_ties_by_time=True)
    _record(db, ranker, contest, question, "bob", 100, 10)
    _record(db, ranker, contest, question, "alice", 100, 5)
    _record(db, ranker, contest, question, "carol", 60, 1)

    assert _standings(db, ranker, contest) == [
        ("alice", 1, 100),
        ("bob", 2, 100),
        ("carol", 3, 60),
    ]


def test_best_score_counts_and_keeps_first_reach_time(db, ranker, contest,
                                                      question):
    _record(db, ranker, contest, question, "alice", 60, 5)
    _record(db, ranker, contest, question, "alice", 60, 10)
    _record(db, ranker, contest, question, "alice", 30, 20)

    entry = ranker.get_user_entry(db, contest.contest_id, "alice")
    assert entry.total_score == 60
    assert entry.problems_solved == 0
    assert as_utc(entry.score_reached_at) == NOW + timedelta(minutes=5)


def test_solved_requires_full_points(db, ranker, contest, question):
    second = contest_service.add_question(
        db,
        contest.contest_id,
        title="Second",
        points=50
    )
    _record(db, ranker, contest, question, "alice", 99, 1)
    _record(db, ranker, contest, second, "alice", 50, 2)
    _record(db, ranker, contest, second, "alice", 50, 3)

    entry = ranker.get_user_entry(db, contest.contest_id, "alice")
    assert entry.total_score == 149
    assert entry.problems_solved == 1
    assert as_utc(entry.score_reached_at) == NOW + timedelta(minutes=2)


def test_more_solved_wins_score_tie(db, ranker, contest, question):
    second = contest_service.add_question(
        db,
        contest.contest_id,
        title="Second",
        points=50
    )
    third = contest_service.add_question(
        db,
        contest.contest_id,
        title="Third",
        points=50
    )
    _record(db, ranker, contest, second, "alice", 40, 1)
    _record(db, ranker, contest, third, "alice", 40, 2)
    _record(db, ranker, contest, second, "bob", 50, 30)
    _record(db, ranker, contest, third, "bob", 30, 31)

    assert _standings(db, ranker, contest) == [
        ("bob", 1, 80),
        ("alice", 2, 80),
    ]


def test_standings_do_not_depend_on_arrival_order(db, ranker, contest,
                                                  question):
    _store(db, contest, question, "alice", 100, 9)
    _store(db, contest, question, "bob", 70, 2)
    _store(db, contest, question, "carol", 100, 4)
    for user_id in ("carol", "alice", "bob"):
        ranker.record_submission(db, contest.contest_id, user_id)
    incremental = _standings(db, ranker, contest)

    ranker.rebuild(db, contest.contest_id)

    assert _standings(db, ranker, contest) == incremental
    assert incremental == [
        ("carol", 1, 100),
        ("alice", 1, 100),
        ("bob", 3, 70),
    ]


def test_joined_user_gets_zero_row(db, ranker, contest, question):
    contest_service.join_contest(db, contest.contest_id, "dave")
    ranker.ensure_entry(db, contest.contest_id, "dave")
    _record(db, ranker, contest, question, "alice", 30, 1)

    assert _standings(db, ranker, contest) == [
        ("alice", 1, 30),
        ("dave", 2, 0),
    ]
    entry = ranker.get_user_entry(db, contest.contest_id, "dave")
    assert entry.score_reached_at is None


def test_rebuild_includes_participants_without_submissions(db, ranker,
                                                           contest,
                                                           participants):
    entries = ranker.rebuild(db, contest.contest_id)

    assert sorted(entry.user_id for entry in entries) == participants
    assert {entry.rank for entry in entries} == {1}


def test_rejudged_row_replaces_original(db, ranker, contest, question):
    original = _record(db, ranker, contest, question, "alice", 100, 1)
    _store(db, contest, question, "alice", 40, 1,
           rejudge_of=original.submission_id)
    ranker.record_submission(db, contest.contest_id, "alice")

    entry = ranker.get_user_entry(db, contest.contest_id, "alice")
    assert entry.total_score == 40
    assert entry.problems_solved == 0


def test_user_history_newest_first(db, contest, question):
    _store(db, contest, question, "alice", 10, 1)
    _store(db, contest, question, "alice", 20, 2)
    _store(db, contest, question, "bob", 30, 3)

    history = submission_store.list_user_submissions(
        db,
        contest.contest_id,
        "alice"
    )

    assert [s.score for s in history] == [20, 10]
    assert submission_store.list_contest_user_ids(db, contest.contest_id) \
        in (["alice", "bob"], ["bob", "alice"])


def test_best_submission_prefers_latest_on_equal_score(db, contest, question):
    first = _store(db, contest, question, "alice", 100, 1)
    second = _store(db, contest, question, "alice", 100, 2)
    _store(db, contest, question, "alice", 50, 3)

    best = submission_store.best_submission(
        submission_store.list_user_submissions(
            db,
            contest.contest_id,
            "alice",
            question.question_id
        )
    )

    assert best.submission_id == second.submission_id
    assert best.submission_id != first.submission_id


def test_concurrent_updates_are_serialized(session_factory, db, contest,
                                           question):
    locks = CountingLocks()
    ranker = LeaderboardRanker(locks)
    users = [f"user{index}" for index in range(6)]
    for index, user_id in enumerate(users):
        _store(db, contest, question, user_id, (index % 3) * 30 + 10, index)
    barrier = threading.Barrier(len(users))

    def update(user_id):
        session = session_factory()
        try:
            barrier.wait()
            ranker.record_submission(session, contest.contest_id, user_id)
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=len(users)) as pool:
        list(pool.map(update, users))

    assert locks.max_holders == 1
    incremental = _standings(db, ranker, contest)
    assert [rank for _, rank, _ in incremental] == [1, 1, 3, 3, 5, 5]

    ranker.rebuild(db, contest.contest_id)

    assert _standings(db, ranker, contest) == incremental
