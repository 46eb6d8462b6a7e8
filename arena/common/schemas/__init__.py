"""
Pydantic schemas for API request and response models.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


# Base response wrapper
class APIResponse(BaseModel):
    """Standard API response wrapper."""

    success: bool = Field(..., description="Operation success status")
    data: Optional[dict[str, Any]] = Field(
        default=None,
        description="Response data"
    )
    error: Optional[str] = Field(
        default=None,
        description="Error message if success=False"
    )


# Health check schemas
class HealthData(BaseModel):
    """Health check response data."""

    status: str = Field(..., description="Service health status")
    redis: str = Field(..., description="Redis connectivity")
    database: str = Field(..., description="Database connectivity")


# Contest schemas
class ContestData(BaseModel):
    """Contest data for API responses."""

    contest_id: str = Field(..., description="Unique contest identifier")
    title: str = Field(..., description="Contest title")
    description: str = Field(default="", description="Contest description")
    start_time: datetime = Field(..., description="Contest start time")
    end_time: datetime = Field(..., description="Contest end time")
    visibility: str = Field(..., description="public or private")
    participant_cap: Optional[int] = Field(
        default=None,
        description="Maximum number of participants"
    )
    status: str = Field(
        ...,
        description="Server side status (upcoming/live/ended)"
    )


class JoinContestRequest(BaseModel):
    """Request body for joining a contest."""

    access_code: Optional[str] = Field(
        default=None,
        description="Access code for private contests"
    )


class JoinContestData(BaseModel):
    """Response data for joining a contest."""

    contest_id: str = Field(..., description="Contest identifier")
    user_id: str = Field(..., description="Joined user")
    joined: bool = Field(
        ...,
        description="False if the user had already joined"
    )


# Run schemas
class RunTestsRequest(BaseModel):
    """Request body for a practice run against sample test cases."""

    code: str = Field(..., description="Source code")
    language: str = Field(..., description="Programming language")
    test_case_ids: list[str] = Field(
        default_factory=list,
        description="Sample test cases to run (all samples if empty)"
    )


class RunCaseData(BaseModel):
    """Result of one sample test case."""

    test_case_id: str = Field(..., description="Test case identifier")
    ordinal: int = Field(..., description="Position among requested cases")
    passed: bool = Field(..., description="Whether the case passed")
    verdict: str = Field(..., description="Case verdict")
    actual: str = Field(..., description="Program output")
    expected: str = Field(..., description="Expected output")
    error: Optional[str] = Field(default=None, description="Failure detail")
    execution_time_ms: int = Field(default=0, description="Execution time")


# Submission schemas
class SubmitSolutionRequest(BaseModel):
    """Request body for submitting a solution."""

    question_id: str = Field(..., description="Question to submit for")
    code: str = Field(..., description="Source code")
    language: str = Field(..., description="Programming language")


class SubmissionData(BaseModel):
    """Judged submission."""

    submission_id: str = Field(..., description="Submission identifier")
    contest_id: str = Field(..., description="Contest identifier")
    question_id: str = Field(..., description="Question identifier")
    user_id: str = Field(..., description="Submitting user")
    language: str = Field(..., description="Programming language")
    verdict: str = Field(..., description="Final verdict")
    score: int = Field(..., description="Awarded points")
    passed_test_cases: int = Field(..., description="Passed test cases")
    total_test_cases: int = Field(..., description="Total test cases")
    execution_time_ms: int = Field(
        ...,
        description="Maximum execution time across test cases"
    )
    error_message: Optional[str] = Field(
        default=None,
        description="Failure detail for non-accepted verdicts"
    )
    failed_test_case: Optional[int] = Field(
        default=None,
        description="Ordinal of the first failing test case"
    )
    rejudge_of: Optional[str] = Field(
        default=None,
        description="Submission re-judged by this one"
    )
    submitted_at: datetime = Field(..., description="Submission timestamp")
    judged_at: datetime = Field(..., description="Judging timestamp")


class SubmissionDetailData(SubmissionData):
    """Judged submission including its source."""

    code: str = Field(..., description="Submitted source")


class RejudgeData(BaseModel):
    """Response data for a dispatched re-judge."""

    submission_id: str = Field(..., description="Submission being re-judged")
    task_id: str = Field(..., description="Worker task identifier")


# Leaderboard schemas
class LeaderboardRowData(BaseModel):
    """One standings row."""

    rank: Optional[int] = Field(default=None, description="Assigned rank")
    user_id: str = Field(..., description="Contestant")
    total_score: int = Field(..., description="Sum of best scores")
    problems_solved: int = Field(
        ...,
        description="Questions solved with full points"
    )
    score_reached_at: Optional[datetime] = Field(
        default=None,
        description="When the current total score was reached"
    )
