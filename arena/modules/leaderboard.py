"""
Leaderboard ranker.

Standings are a projection of each user's best score per question.
Every update of a contest's standings runs under a per-contest lock
and a row lock on the contest, so two submissions landing at the same
time cannot interleave their read-modify-write of the ranking.
"""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional, Sequence

from pydantic import BaseModel
from redis import Redis
from sqlalchemy.orm import Session

from common.exceptions import NotFoundError
from common.models import (
    Contest,
    LeaderboardEntry,
    Participant,
    Question,
    Submission,
)
from common.timeutils import as_utc
from modules import submission_store

logger = logging.getLogger(__name__)

_FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)


class Standing(BaseModel):
    """Aggregated contest result of one user."""

    total_score: int = 0
    problems_solved: int = 0
    score_reached_at: Optional[datetime] = None


class LocalLockRegistry:
    """Per-contest locks for a single process."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    @contextmanager
    def lock(self, contest_id: str) -> Iterator[None]:
        with self._guard:
            contest_lock = self._locks.setdefault(contest_id, threading.Lock())
        with contest_lock:
            yield


class RedisLockRegistry:
    """
    Per-contest locks shared by API and worker processes.

    Args:
        redis_client: Redis client
        timeout: Lock TTL in seconds, released if a holder dies
    """

    def __init__(self, redis_client: Redis, timeout: int = 30):
        self.redis_client = redis_client
        self.timeout = timeout

    @contextmanager
    def lock(self, contest_id: str) -> Iterator[None]:
        with self.redis_client.lock(
            f"arena:leaderboard:{contest_id}",
            timeout=self.timeout,
            blocking_timeout=self.timeout
        ):
            yield


def compute_standing(
    submissions: Sequence[Submission],
    full_points: dict[str, int]
) -> Standing:
    """
    Derive a user's standing from their submissions in one contest.

    Per question the best score counts; the time it was reached is the
    earliest submission achieving it. A question is solved only when
    the best score equals its full points.

    Args:
        submissions: All submissions of the user in the contest
        full_points: question_id -> question points
    """
    by_question: dict[str, list[Submission]] = {}
    for submission in submission_store.effective_submissions(list(submissions)):
        by_question.setdefault(submission.question_id, []).append(submission)

    total_score = 0
    problems_solved = 0
    reached_times: list[datetime] = []

    for question_id, rows in by_question.items():
        best = submission_store.best_submission(rows).score
        if best <= 0:
            continue
        total_score += best
        reached_times.append(min(
            as_utc(row.submitted_at) for row in rows if row.score == best
        ))
        points = full_points.get(question_id)
        if points and best >= points:
            problems_solved += 1

    return Standing(
        total_score=total_score,
        problems_solved=problems_solved,
        score_reached_at=max(reached_times) if reached_times else None
    )


def _order_key(entry: LeaderboardEntry) -> tuple:
    reached = as_utc(entry.score_reached_at)
    return (
        -entry.total_score,
        -entry.problems_solved,
        reached is None,
        reached or _FAR_FUTURE,
        entry.user_id,
    )


def assign_ranks(
    entries: Sequence[LeaderboardEntry],
    rank_ties_by_time: bool = False
) -> list[LeaderboardEntry]:
    """
    Sort entries and assign standard competition ranks.

    Order: total score desc, problems solved desc, time the score was
    reached asc (then user id for a stable listing). Entries equal on
    score and solved count share a rank, and the next distinct entry
    skips ahead (1, 1, 3). With ``rank_ties_by_time`` the reach time
    also separates ranks.
    """
    ordered = sorted(entries, key=_order_key)
    previous: Optional[tuple] = None
    rank = 0

    for position, entry in enumerate(ordered, start=1):
        key = (entry.total_score, entry.problems_solved)
        if rank_ties_by_time:
            key = key + (as_utc(entry.score_reached_at),)
        if key != previous:
            rank = position
            previous = key
        entry.rank = rank

    return ordered


class LeaderboardRanker:
    """
    Maintains per-contest standings.

    Args:
        locks: Lock registry serializing updates per contest
        rank_ties_by_time: Let the reach time separate numeric ranks
    """

    def __init__(self, locks, rank_ties_by_time: bool = False):
        self.locks = locks
        self.rank_ties_by_time = rank_ties_by_time

    def record_submission(
        self,
        db: Session,
        contest_id: str,
        user_id: str
    ) -> LeaderboardEntry:
        """
        Recompute a user's row after one of their submissions landed,
        then re-rank the whole contest.
        """
        with self.locks.lock(contest_id):
            try:
                self._lock_contest(db, contest_id)
                entry = self._refresh_entry(db, contest_id, user_id)
                self._rerank(db, contest_id)
                db.commit()
            except Exception:
                db.rollback()
                raise

        logger.info(
            f"Leaderboard {contest_id}: {user_id} now "
            f"{entry.total_score} pts, {entry.problems_solved} solved, "
            f"rank {entry.rank}"
        )
        return entry

    def ensure_entry(
        self,
        db: Session,
        contest_id: str,
        user_id: str
    ) -> LeaderboardEntry:
        """Create a zero row for a newly joined user if missing."""
        with self.locks.lock(contest_id):
            try:
                self._lock_contest(db, contest_id)
                entry = self._get_entry(db, contest_id, user_id)
                if entry is None:
                    entry = self._refresh_entry(db, contest_id, user_id)
                    self._rerank(db, contest_id)
                db.commit()
            except Exception:
                db.rollback()
                raise
        return entry

    def rebuild(self, db: Session, contest_id: str) -> list[LeaderboardEntry]:
        """Recompute every row of a contest from its submissions."""
        with self.locks.lock(contest_id):
            try:
                self._lock_contest(db, contest_id)
                user_ids = set(
                    submission_store.list_contest_user_ids(db, contest_id)
                )
                user_ids.update(
                    row[0] for row in db.query(Participant.user_id).filter(
                        Participant.contest_id == contest_id
                    ).all()
                )
                for user_id in sorted(user_ids):
                    self._refresh_entry(db, contest_id, user_id)
                ordered = self._rerank(db, contest_id)
                db.commit()
            except Exception:
                db.rollback()
                raise

        logger.info(
            f"Rebuilt leaderboard {contest_id} with {len(ordered)} entries"
        )
        return ordered

    def get_leaderboard(
        self,
        db: Session,
        contest_id: str
    ) -> list[LeaderboardEntry]:
        """Standings in rank order."""
        entries = db.query(LeaderboardEntry).filter(
            LeaderboardEntry.contest_id == contest_id
        ).all()
        return sorted(entries, key=_order_key)

    def get_user_entry(
        self,
        db: Session,
        contest_id: str,
        user_id: str
    ) -> Optional[LeaderboardEntry]:
        return self._get_entry(db, contest_id, user_id)

    @staticmethod
    def _lock_contest(db: Session, contest_id: str) -> Contest:
        # Row lock on backends that support it, a no-op on SQLite
        contest = db.query(Contest).filter(
            Contest.contest_id == contest_id
        ).with_for_update().first()
        if contest is None:
            raise NotFoundError(f"Contest {contest_id} not found")
        return contest

    @staticmethod
    def _get_entry(
        db: Session,
        contest_id: str,
        user_id: str
    ) -> Optional[LeaderboardEntry]:
        return db.query(LeaderboardEntry).filter(
            LeaderboardEntry.contest_id == contest_id,
            LeaderboardEntry.user_id == user_id
        ).first()

    def _refresh_entry(
        self,
        db: Session,
        contest_id: str,
        user_id: str
    ) -> LeaderboardEntry:
        full_points = {
            question_id: points
            for question_id, points in db.query(
                Question.question_id,
                Question.points
            ).filter(Question.contest_id == contest_id).all()
        }
        submissions = db.query(Submission).filter(
            Submission.contest_id == contest_id,
            Submission.user_id == user_id
        ).all()
        standing = compute_standing(submissions, full_points)

        entry = self._get_entry(db, contest_id, user_id)
        if entry is None:
            entry = LeaderboardEntry(contest_id=contest_id, user_id=user_id)
            db.add(entry)

        entry.total_score = standing.total_score
        entry.problems_solved = standing.problems_solved
        entry.score_reached_at = standing.score_reached_at
        db.flush()
        return entry

    def _rerank(self, db: Session, contest_id: str) -> list[LeaderboardEntry]:
        entries = db.query(LeaderboardEntry).filter(
            LeaderboardEntry.contest_id == contest_id
        ).all()
        ordered = assign_ranks(entries, self.rank_ties_by_time)
        db.flush()
        return ordered
