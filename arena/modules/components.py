"""
Factories building the judging components from settings.

Shared by the API lifespan and the worker tasks so both services
judge and rank the same way.
"""

from typing import Optional

from redis import Redis

from common.config import Settings
from modules.execution_client import PistonExecutionClient
from modules.leaderboard import (
    LeaderboardRanker,
    LocalLockRegistry,
    RedisLockRegistry,
)
from modules.verdict_engine import VerdictEngine


def build_execution_client(settings: Settings) -> PistonExecutionClient:
    return PistonExecutionClient(
        base_url=settings.executor_url,
        api_key=settings.executor_api_key,
        grace_seconds=settings.execution_grace_seconds,
        compile_timeout_seconds=settings.compile_timeout_seconds
    )


def build_verdict_engine(settings: Settings) -> VerdictEngine:
    return VerdictEngine(
        build_execution_client(settings),
        max_concurrency=settings.max_concurrent_cases,
        error_message_max_chars=settings.error_message_max_chars,
        comparison_mode=settings.comparison_mode
    )


def build_ranker(
    settings: Settings,
    redis_client: Optional[Redis] = None
) -> LeaderboardRanker:
    """
    Build the leaderboard ranker.

    Redis locks serialize standings updates across processes; without
    a Redis client the locks only cover the current process.
    """
    if settings.use_redis_locks and redis_client is not None:
        locks = RedisLockRegistry(
            redis_client,
            timeout=settings.leaderboard_lock_timeout_seconds
        )
    else:
        locks = LocalLockRegistry()
    return LeaderboardRanker(
        locks,
        rank_ties_by_time=settings.rank_ties_by_time
    )
