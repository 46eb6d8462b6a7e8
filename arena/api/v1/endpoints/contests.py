"""
Contest and leaderboard endpoints.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from api.dependencies import (
    get_current_user_id,
    get_db,
    get_gate,
    get_ranker,
    verify_token,
)
from api.errors import to_http_exception
from common.exceptions import ArenaError
from common.models import LeaderboardEntry
from common.schemas import (
    APIResponse,
    ContestData,
    JoinContestData,
    JoinContestRequest,
    LeaderboardRowData,
)
from modules import contest_service
from modules.contest_gate import ContestGate, contest_status
from modules.leaderboard import LeaderboardRanker

logger = logging.getLogger(__name__)

router = APIRouter()


def _row(entry: LeaderboardEntry) -> LeaderboardRowData:
    return LeaderboardRowData(
        rank=entry.rank,
        user_id=entry.user_id,
        total_score=entry.total_score,
        problems_solved=entry.problems_solved,
        score_reached_at=entry.score_reached_at
    )


@router.get(
    "/contests/{contest_id}",
    response_model=APIResponse,
    tags=["Contests"]
)
async def get_contest(
    contest_id: str,
    _token: str = Depends(verify_token),
    db: Session = Depends(get_db),
    gate: ContestGate = Depends(get_gate)
):
    """
    Get a contest with its server-side status.

    Args:
        contest_id: Contest identifier

    Returns:
        APIResponse: Contest data
    """
    try:
        contest = contest_service.get_contest(db, contest_id)

        return APIResponse(
            success=True,
            data=ContestData(
                contest_id=contest.contest_id,
                title=contest.title,
                description=contest.description,
                start_time=contest.start_time,
                end_time=contest.end_time,
                visibility=contest.visibility,
                participant_cap=contest.participant_cap,
                status=contest_status(contest, gate.now())
            ).model_dump()
        )
    except ArenaError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to fetch contest {contest_id}: {e}")
        raise HTTPException(
            status_code=500,
            detail="Internal server error"
        )


@router.post(
    "/contests/{contest_id}/join",
    response_model=APIResponse,
    tags=["Contests"]
)
async def join_contest(
    contest_id: str,
    request: JoinContestRequest,
    _token: str = Depends(verify_token),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    ranker: LeaderboardRanker = Depends(get_ranker)
):
    """
    Join a contest.

    Args:
        contest_id: Contest identifier
        request: Join request with optional access code

    Returns:
        APIResponse: Join result
    """
    try:
        joined = contest_service.join_contest(
            db,
            contest_id,
            user_id,
            request.access_code
        )
        ranker.ensure_entry(db, contest_id, user_id)

        return APIResponse(
            success=True,
            data=JoinContestData(
                contest_id=contest_id,
                user_id=user_id,
                joined=joined
            ).model_dump()
        )
    except ArenaError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to join contest {contest_id}: {e}")
        raise HTTPException(
            status_code=500,
            detail="Internal server error"
        )


@router.get(
    "/contests/{contest_id}/leaderboard",
    response_model=APIResponse,
    tags=["Leaderboard"]
)
async def get_leaderboard(
    contest_id: str,
    _token: str = Depends(verify_token),
    db: Session = Depends(get_db),
    ranker: LeaderboardRanker = Depends(get_ranker)
):
    """
    Get contest standings in rank order.

    Args:
        contest_id: Contest identifier

    Returns:
        APIResponse: Ordered leaderboard rows
    """
    try:
        contest_service.get_contest(db, contest_id)
        entries = ranker.get_leaderboard(db, contest_id)

        return APIResponse(
            success=True,
            data={
                "contest_id": contest_id,
                "entries": [_row(entry).model_dump() for entry in entries],
            }
        )
    except ArenaError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to fetch leaderboard {contest_id}: {e}")
        raise HTTPException(
            status_code=500,
            detail="Internal server error"
        )


@router.get(
    "/contests/{contest_id}/leaderboard/{user_id}",
    response_model=APIResponse,
    tags=["Leaderboard"]
)
async def get_user_rank(
    contest_id: str,
    user_id: str,
    _token: str = Depends(verify_token),
    db: Session = Depends(get_db),
    ranker: LeaderboardRanker = Depends(get_ranker)
):
    """
    Get one contestant's standings row.

    Args:
        contest_id: Contest identifier
        user_id: Contestant

    Returns:
        APIResponse: Leaderboard row
    """
    try:
        entry = ranker.get_user_entry(db, contest_id, user_id)

        if entry is None:
            raise HTTPException(
                status_code=404,
                detail=f"User {user_id} has no standing in {contest_id}"
            )

        return APIResponse(success=True, data=_row(entry).model_dump())
    except HTTPException:
        raise
    except ArenaError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(
            f"Failed to fetch rank of {user_id} in {contest_id}: {e}"
        )
        raise HTTPException(
            status_code=500,
            detail="Internal server error"
        )
