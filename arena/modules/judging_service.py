"""
Judging Business Logic Module.

Orchestrates the run and submit operations:
contest gate -> verdict engine -> submission store -> leaderboard.

This module contains pure business logic with NO framework dependencies.
Can be used by both API and Worker services.
"""

import asyncio
import logging
from typing import Callable, Optional, Sequence

from pydantic import BaseModel
from sqlalchemy.orm import Session

from common.exceptions import (
    NotFoundError,
    NotParticipantError,
    ValidationError,
)
from common.models import Submission
from modules import contest_service, submission_store
from modules.classifier import VERDICT_LABELS, Verdict
from modules.contest_gate import ContestGate
from modules.languages import ensure_supported
from modules.leaderboard import LeaderboardRanker
from modules.verdict_engine import (
    INTERNAL_ERROR_MESSAGE,
    CaseResult,
    VerdictEngine,
    select_test_cases,
    truncate,
)

logger = logging.getLogger(__name__)

# Called with the contest id when an incremental standings update failed
StandingsFallback = Callable[[str], None]


class RunCaseResult(BaseModel):
    """Result of one sample test case in a practice run."""

    test_case_id: str
    ordinal: int
    passed: bool
    verdict: str
    actual: str
    expected: str
    error: Optional[str] = None
    execution_time_ms: int = 0


def _run_case_result(
    case: CaseResult,
    expected: str,
    max_chars: int
) -> RunCaseResult:
    error = None
    actual = case.stdout
    if case.internal_error is not None:
        error = INTERNAL_ERROR_MESSAGE
        actual = ""
    elif not case.passed:
        label = VERDICT_LABELS[case.verdict]
        if case.verdict == Verdict.WRONG_ANSWER:
            error = label
        else:
            detail = case.stderr.strip()
            error = f"{label}\n{truncate(detail, max_chars)}" if detail else label

    return RunCaseResult(
        test_case_id=case.test_case_id,
        ordinal=case.ordinal,
        passed=case.passed,
        verdict=case.verdict.value,
        actual=truncate(actual, max_chars),
        expected=expected,
        error=error,
        execution_time_ms=case.execution_time_ms
    )


async def update_standings(
    db: Session,
    ranker: LeaderboardRanker,
    contest_id: str,
    user_id: str,
    on_failure: Optional[StandingsFallback] = None
) -> bool:
    """
    Recompute standings after a submission was stored.

    The ranker blocks on a per-contest lock, so it runs in a worker
    thread. A failure is logged and handed to ``on_failure`` (usually a
    queued full rebuild) instead of failing the already stored
    submission.

    Returns:
        bool: True if the standings were updated
    """
    try:
        await asyncio.to_thread(
            ranker.record_submission,
            db,
            contest_id,
            user_id
        )
        return True
    except Exception as e:
        logger.error(
            f"Standings update of {contest_id} for {user_id} failed: {e}",
            exc_info=True
        )

    if on_failure is not None:
        try:
            on_failure(contest_id)
        except Exception as e:
            logger.error(
                f"Could not schedule leaderboard rebuild of {contest_id}: {e}",
                exc_info=True
            )
    return False


async def run_tests(
    db: Session,
    engine: VerdictEngine,
    gate: ContestGate,
    question_id: str,
    code: str,
    language: str,
    test_case_ids: Optional[Sequence[str]] = None
) -> list[RunCaseResult]:
    """
    Practice run against sample test cases.

    No submission is stored and standings are untouched.

    Args:
        db: Database session
        engine: Verdict engine
        gate: Contest gate
        question_id: Question identifier
        code: Source code
        language: Language name
        test_case_ids: Requested sample cases (all samples if empty)

    Returns:
        list[RunCaseResult]: Results in test case order

    Raises:
        NotFoundError: If the question does not exist
        ValidationError: If a requested case is not a sample of the
            question, or the language is unsupported
        ContestEndedError: If the contest is over
    """
    question = contest_service.get_question(db, question_id)
    gate.admit(question.contest)
    language = ensure_supported(language)

    samples = select_test_cases(
        contest_service.get_test_cases(db, question_id),
        sample_only=True
    )
    if test_case_ids:
        requested = set(test_case_ids)
        known = {tc.test_case_id for tc in samples}
        unknown = requested - known
        if unknown:
            raise ValidationError(
                f"Not sample test cases of question {question_id}: "
                f"{', '.join(sorted(unknown))}"
            )
        samples = [tc for tc in samples if tc.test_case_id in requested]

    cases = await engine.execute_cases(
        question,
        samples,
        code,
        language,
        stop_on_fatal=False
    )
    expected = {tc.test_case_id: tc.expected_output for tc in samples}

    logger.info(
        f"Practice run on {question_id}: "
        f"{sum(1 for c in cases if c.passed)}/{len(cases)} passed"
    )
    return [
        _run_case_result(
            case,
            expected[case.test_case_id],
            engine.error_message_max_chars
        )
        for case in cases
    ]


async def submit_solution(
    db: Session,
    engine: VerdictEngine,
    gate: ContestGate,
    ranker: LeaderboardRanker,
    contest_id: str,
    question_id: str,
    user_id: str,
    code: str,
    language: str,
    on_standings_failure: Optional[StandingsFallback] = None
) -> Submission:
    """
    Judge and persist a submission, then update standings.

    The contest gate runs before any execution; a rejected request
    leaves no submission behind. Once stored, the submission is
    returned even if the standings update fails.

    Returns:
        Submission: The stored submission

    Raises:
        NotFoundError: If the contest or question does not exist
        ContestEndedError / ContestNotStartedError: Outside the window
        NotParticipantError: If the user has not joined the contest
        ValidationError: Unsupported language or question without tests
    """
    contest = contest_service.get_contest(db, contest_id)
    question = contest_service.get_question(db, question_id)
    if question.contest_id != contest_id:
        raise NotFoundError(
            f"Question {question_id} not found in contest {contest_id}"
        )

    submitted_at = gate.admit(contest)

    if not contest_service.is_participant(db, contest_id, user_id):
        raise NotParticipantError(
            f"User {user_id} has not joined contest {contest_id}"
        )
    language = ensure_supported(language)
    if not code.strip():
        raise ValidationError("Code must not be empty")

    test_cases = contest_service.get_test_cases(db, question_id)
    if not test_cases:
        raise ValidationError(f"Question {question_id} has no test cases")

    logger.info(
        f"Judging submission of {user_id} to {question_id} "
        f"({language}, {len(test_cases)} test cases)"
    )
    outcome = await engine.judge(question, test_cases, code, language)

    submission = submission_store.create_submission(
        db,
        contest_id=contest_id,
        question_id=question_id,
        user_id=user_id,
        code=code,
        language=language,
        outcome=outcome,
        submitted_at=submitted_at
    )
    await update_standings(
        db,
        ranker,
        contest_id,
        user_id,
        on_standings_failure
    )
    return submission


async def rejudge_submission(
    db: Session,
    engine: VerdictEngine,
    ranker: LeaderboardRanker,
    submission_id: str,
    on_standings_failure: Optional[StandingsFallback] = None
) -> Submission:
    """
    Re-judge a stored submission against the current test cases.

    A new row is written; the original stays untouched and is
    superseded in standings. The contest gate is not applied: this is
    an operator correction of an admitted submission.

    Raises:
        NotFoundError: If the submission does not exist
        ValidationError: If the question no longer has test cases
    """
    original = submission_store.get_submission_by_id(db, submission_id)
    if original is None:
        raise NotFoundError(f"Submission {submission_id} not found")

    question = contest_service.get_question(db, original.question_id)
    test_cases = contest_service.get_test_cases(db, question.question_id)
    if not test_cases:
        raise ValidationError(
            f"Question {question.question_id} has no test cases"
        )

    outcome = await engine.judge(
        question,
        test_cases,
        original.code,
        original.language
    )

    submission = submission_store.create_submission(
        db,
        contest_id=original.contest_id,
        question_id=original.question_id,
        user_id=original.user_id,
        code=original.code,
        language=original.language,
        outcome=outcome,
        submitted_at=original.submitted_at,
        rejudge_of=original.rejudge_of or original.submission_id
    )
    await update_standings(
        db,
        ranker,
        original.contest_id,
        original.user_id,
        on_standings_failure
    )

    logger.info(
        f"Re-judged {submission_id} as {submission.submission_id}: "
        f"{original.verdict} -> {submission.verdict}"
    )
    return submission
