"""
Submission store.

Submissions are append-only: rows are inserted once with their judged
outcome and never updated afterwards.
"""

import logging
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from common.models import Submission
from common.timeutils import as_utc, utcnow
from modules.verdict_engine import JudgeOutcome

logger = logging.getLogger(__name__)


def generate_submission_id() -> str:
    """Generate unique submission ID."""
    return f"sub-{uuid.uuid4().hex[:12]}"


def create_submission(
    db: Session,
    contest_id: str,
    question_id: str,
    user_id: str,
    code: str,
    language: str,
    outcome: JudgeOutcome,
    submitted_at: datetime,
    rejudge_of: Optional[str] = None
) -> Submission:
    """
    Persist a judged submission.

    Args:
        db: Database session
        contest_id: Contest identifier
        question_id: Question identifier
        user_id: Submitting user
        code: Submitted source
        language: Canonical language name
        outcome: Aggregated verdict from the verdict engine
        submitted_at: Wall clock time the request was admitted
        rejudge_of: Root submission this row re-judges, if any

    Returns:
        Created submission instance
    """
    submission = Submission(
        submission_id=generate_submission_id(),
        contest_id=contest_id,
        question_id=question_id,
        user_id=user_id,
        code=code,
        language=language,
        verdict=outcome.verdict.value,
        score=outcome.score,
        passed_count=outcome.passed_count,
        total_count=outcome.total_count,
        execution_time_ms=outcome.execution_time_ms,
        error_message=outcome.error_message,
        failed_case=outcome.failed_case,
        rejudge_of=rejudge_of,
        submitted_at=submitted_at,
        judged_at=utcnow()
    )

    db.add(submission)
    db.commit()
    db.refresh(submission)

    logger.info(
        f"Stored submission {submission.submission_id} "
        f"({user_id} -> {question_id}): {submission.verdict} "
        f"{submission.score} pts"
    )
    return submission


def get_submission_by_id(
    db: Session,
    submission_id: str
) -> Optional[Submission]:
    """
    Retrieve submission by ID.

    Args:
        db: Database session
        submission_id: Submission identifier

    Returns:
        Submission instance or None
    """
    return db.query(Submission).filter(
        Submission.submission_id == submission_id
    ).first()


def list_user_submissions(
    db: Session,
    contest_id: str,
    user_id: str,
    question_id: Optional[str] = None
) -> list[Submission]:
    """List a user's submissions in a contest, newest first."""
    query = db.query(Submission).filter(
        Submission.contest_id == contest_id,
        Submission.user_id == user_id
    )
    if question_id is not None:
        query = query.filter(Submission.question_id == question_id)

    return query.order_by(
        Submission.submitted_at.desc(),
        Submission.judged_at.desc()
    ).all()


def list_contest_user_ids(db: Session, contest_id: str) -> list[str]:
    """Distinct users that have submitted to a contest."""
    rows = db.query(Submission.user_id).filter(
        Submission.contest_id == contest_id
    ).distinct().all()
    return [row[0] for row in rows]


def effective_submissions(submissions: list[Submission]) -> list[Submission]:
    """
    Drop submissions superseded by a re-judge.

    A submission and its re-judges share a root (``rejudge_of`` or the
    submission's own id); only the most recently judged row of each
    root counts.
    """
    latest: dict[str, Submission] = {}
    for submission in submissions:
        root = submission.rejudge_of or submission.submission_id
        current = latest.get(root)
        if current is None or (
            as_utc(submission.judged_at) > as_utc(current.judged_at)
        ):
            latest[root] = submission
    return list(latest.values())


def best_submission(submissions: list[Submission]) -> Optional[Submission]:
    """
    The submission that represents a user's result on one question.

    Highest score wins; among equal scores the most recent one.
    """
    candidates = effective_submissions(submissions)
    if not candidates:
        return None
    return max(
        candidates,
        key=lambda s: (s.score, as_utc(s.submitted_at), as_utc(s.judged_at))
    )
