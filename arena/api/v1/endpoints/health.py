"""
Health check endpoint.
"""

import logging

from fastapi import APIRouter, Depends
from redis import Redis
from sqlalchemy import text
from sqlalchemy.orm import Session

from api.dependencies import get_db, get_redis
from common.schemas import APIResponse, HealthData

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/health",
    response_model=APIResponse,
    tags=["Health"]
)
async def health_check(
    redis_client: Redis = Depends(get_redis),
    db: Session = Depends(get_db)
):
    """
    Health check endpoint.

    Returns:
        APIResponse: Health status of the service
    """
    try:
        redis_client.ping()
        redis_status = "ok"
    except Exception as e:
        logger.warning(f"Redis health check failed: {e}")
        redis_status = "unreachable"

    try:
        db.execute(text("SELECT 1"))
        database_status = "ok"
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        database_status = "unreachable"

    healthy = redis_status == "ok" and database_status == "ok"

    return APIResponse(
        success=True,
        data=HealthData(
            status="healthy" if healthy else "unhealthy",
            redis=redis_status,
            database=database_status
        ).model_dump()
    )
