"""
Run, submission and re-judge endpoints.
"""

import logging
from typing import Optional

from celery import Celery
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from api.dependencies import (
    get_current_user_id,
    get_db,
    get_gate,
    get_ranker,
    get_settings,
    get_verdict_engine,
    verify_token,
)
from api.errors import to_http_exception
from common.config import Settings
from common.exceptions import ArenaError
from common.models import Submission
from common.schemas import (
    APIResponse,
    RejudgeData,
    RunCaseData,
    RunTestsRequest,
    SubmissionData,
    SubmissionDetailData,
    SubmitSolutionRequest,
)
from modules import judging_service, submission_store
from modules.contest_gate import ContestGate
from modules.leaderboard import LeaderboardRanker
from modules.verdict_engine import VerdictEngine

logger = logging.getLogger(__name__)

router = APIRouter()


def _celery_client(settings: Settings) -> Celery:
    return Celery(broker=settings.redis_url, backend=settings.redis_url)


def _queue_leaderboard_rebuild(settings: Settings):
    def queue(contest_id: str) -> None:
        result = _celery_client(settings).send_task(
            "worker.tasks.rebuild_leaderboard",
            args=[contest_id]
        )
        logger.warning(
            f"Queued leaderboard rebuild {result.id} for {contest_id}"
        )

    return queue


def _submission_fields(submission: Submission) -> dict:
    return {
        "submission_id": submission.submission_id,
        "contest_id": submission.contest_id,
        "question_id": submission.question_id,
        "user_id": submission.user_id,
        "language": submission.language,
        "verdict": submission.verdict,
        "score": submission.score,
        "passed_test_cases": submission.passed_count,
        "total_test_cases": submission.total_count,
        "execution_time_ms": submission.execution_time_ms,
        "error_message": submission.error_message,
        "failed_test_case": submission.failed_case,
        "rejudge_of": submission.rejudge_of,
        "submitted_at": submission.submitted_at,
        "judged_at": submission.judged_at,
    }


@router.post(
    "/questions/{question_id}/run",
    response_model=APIResponse,
    tags=["Submissions"]
)
async def run_tests(
    question_id: str,
    request: RunTestsRequest,
    _token: str = Depends(verify_token),
    _user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    engine: VerdictEngine = Depends(get_verdict_engine),
    gate: ContestGate = Depends(get_gate)
):
    """
    Run code against the sample test cases of a question.

    Nothing is stored.

    Args:
        question_id: Question identifier
        request: Code, language and optional sample case ids

    Returns:
        APIResponse: Per-case results
    """
    try:
        results = await judging_service.run_tests(
            db,
            engine,
            gate,
            question_id,
            request.code,
            request.language,
            request.test_case_ids
        )

        return APIResponse(
            success=True,
            data={
                "question_id": question_id,
                "results": [
                    RunCaseData(**result.model_dump()).model_dump()
                    for result in results
                ],
            }
        )
    except ArenaError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to run tests for {question_id}: {e}")
        raise HTTPException(
            status_code=500,
            detail="Internal server error"
        )


@router.post(
    "/contests/{contest_id}/submissions",
    response_model=APIResponse,
    tags=["Submissions"]
)
async def submit_solution(
    contest_id: str,
    request: SubmitSolutionRequest,
    _token: str = Depends(verify_token),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    engine: VerdictEngine = Depends(get_verdict_engine),
    gate: ContestGate = Depends(get_gate),
    ranker: LeaderboardRanker = Depends(get_ranker),
    settings: Settings = Depends(get_settings)
):
    """
    Submit a solution for judging.

    The submission is judged against every test case before the
    response is returned and standings are updated. If the standings
    update fails, a full leaderboard rebuild is queued in the worker.

    Args:
        contest_id: Contest identifier
        request: Question, code and language

    Returns:
        APIResponse: Judged submission
    """
    try:
        submission = await judging_service.submit_solution(
            db,
            engine,
            gate,
            ranker,
            contest_id,
            request.question_id,
            user_id,
            request.code,
            request.language,
            on_standings_failure=_queue_leaderboard_rebuild(settings)
        )

        logger.info(
            f"Submission {submission.submission_id} judged "
            f"{submission.verdict} ({submission.score} points)"
        )

        return APIResponse(
            success=True,
            data=SubmissionData(
                **_submission_fields(submission)
            ).model_dump()
        )
    except ArenaError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to submit to contest {contest_id}: {e}")
        raise HTTPException(
            status_code=500,
            detail="Internal server error"
        )


@router.get(
    "/contests/{contest_id}/submissions",
    response_model=APIResponse,
    tags=["Submissions"]
)
async def list_my_submissions(
    contest_id: str,
    question_id: Optional[str] = None,
    _token: str = Depends(verify_token),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    List the caller's submissions in a contest, newest first.

    Args:
        contest_id: Contest identifier
        question_id: Optional question filter

    Returns:
        APIResponse: Submission history
    """
    try:
        submissions = submission_store.list_user_submissions(
            db,
            contest_id,
            user_id,
            question_id
        )

        return APIResponse(
            success=True,
            data={
                "contest_id": contest_id,
                "submissions": [
                    SubmissionData(**_submission_fields(s)).model_dump()
                    for s in submissions
                ],
            }
        )
    except Exception as e:
        logger.error(
            f"Failed to list submissions of {user_id} in {contest_id}: {e}"
        )
        raise HTTPException(
            status_code=500,
            detail="Internal server error"
        )


@router.get(
    "/submissions/{submission_id}",
    response_model=APIResponse,
    tags=["Submissions"]
)
async def get_submission(
    submission_id: str,
    _token: str = Depends(verify_token),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Get one of the caller's submissions, including its source.

    Args:
        submission_id: Submission identifier

    Returns:
        APIResponse: Submission detail
    """
    try:
        submission = submission_store.get_submission_by_id(
            db,
            submission_id
        )

        if not submission or submission.user_id != user_id:
            raise HTTPException(
                status_code=404,
                detail=f"Submission {submission_id} not found"
            )

        return APIResponse(
            success=True,
            data=SubmissionDetailData(
                **_submission_fields(submission),
                code=submission.code
            ).model_dump()
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to fetch submission {submission_id}: {e}")
        raise HTTPException(
            status_code=500,
            detail="Internal server error"
        )


@router.post(
    "/submissions/{submission_id}/rejudge",
    response_model=APIResponse,
    tags=["Submissions"]
)
async def rejudge_submission(
    submission_id: str,
    _token: str = Depends(verify_token),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    """
    Queue a submission for re-judging in the worker.

    Args:
        submission_id: Submission identifier

    Returns:
        APIResponse: Dispatched task
    """
    try:
        submission = submission_store.get_submission_by_id(
            db,
            submission_id
        )

        if not submission:
            raise HTTPException(
                status_code=404,
                detail=f"Submission {submission_id} not found"
            )

        result = _celery_client(settings).send_task(
            "worker.tasks.rejudge_submission",
            args=[submission_id]
        )

        logger.info(
            f"Dispatched re-judge task {result.id} for {submission_id}"
        )

        return APIResponse(
            success=True,
            data=RejudgeData(
                submission_id=submission_id,
                task_id=result.id
            ).model_dump()
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to dispatch re-judge of {submission_id}: {e}")
        raise HTTPException(
            status_code=500,
            detail="Internal server error"
        )
