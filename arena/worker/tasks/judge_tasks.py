"""
Celery tasks for operator judging workflows.

Re-judging a submission and rebuilding a contest leaderboard run in
the worker so they never block API requests.
"""

import asyncio
import logging
from typing import Any, Coroutine, TypeVar

import redis

from common.config import get_settings
from common.db import create_engine_from_url, create_session_factory
from modules import judging_service
from modules.components import build_ranker, build_verdict_engine
from worker.celery_app import celery_app

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_sync(coro: Coroutine[Any, Any, T]) -> T:
    """
    Run a coroutine from synchronous Celery task code.

    A fresh event loop is used per call; worker processes do not keep
    one running.
    """
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.run_until_complete(loop.shutdown_default_executor())
        loop.close()


@celery_app.task(name="worker.tasks.rejudge_submission")
def rejudge_submission(submission_id: str) -> dict[str, Any]:
    """
    Re-judge a stored submission.

    Args:
        submission_id: Submission to re-judge

    Returns:
        dict: New submission id and verdict
    """
    settings = get_settings()
    engine = create_engine_from_url(settings.db_url)
    session_factory = create_session_factory(engine)
    redis_client = redis.from_url(settings.redis_url, decode_responses=True)
    db = session_factory()

    try:
        logger.info(f"Re-judging submission {submission_id}")
        submission = run_sync(judging_service.rejudge_submission(
            db,
            build_verdict_engine(settings),
            build_ranker(settings, redis_client),
            submission_id,
            on_standings_failure=rebuild_leaderboard.delay
        ))
        return {
            "status": "success",
            "submission_id": submission.submission_id,
            "rejudge_of": submission.rejudge_of,
            "verdict": submission.verdict,
            "score": submission.score,
        }

    except Exception as e:
        logger.error(
            f"Error re-judging submission {submission_id}: {e}",
            exc_info=True
        )
        raise
    finally:
        db.close()
        redis_client.close()
        engine.dispose()


@celery_app.task(name="worker.tasks.rebuild_leaderboard")
def rebuild_leaderboard(contest_id: str) -> dict[str, Any]:
    """
    Recompute every standings row of a contest.

    Args:
        contest_id: Contest identifier

    Returns:
        dict: Number of ranked entries
    """
    settings = get_settings()
    engine = create_engine_from_url(settings.db_url)
    session_factory = create_session_factory(engine)
    redis_client = redis.from_url(settings.redis_url, decode_responses=True)
    db = session_factory()

    try:
        entries = build_ranker(settings, redis_client).rebuild(db, contest_id)
        return {"status": "success", "entries": len(entries)}

    except Exception as e:
        logger.error(
            f"Error rebuilding leaderboard {contest_id}: {e}",
            exc_info=True
        )
        raise
    finally:
        db.close()
        redis_client.close()
        engine.dispose()
