"""
Verdict engine: runs a submission against a question's test cases.

Test cases execute concurrently through a bounded pool, but results
are always aggregated in the question's defined test case order, so
the reported failure is the first failing case by ordinal regardless
of which execution finished first.
"""

import asyncio
import logging
from typing import Optional, Sequence

from pydantic import BaseModel

from common.exceptions import InfrastructureError, ValidationError
from common.models import Question, TestCase
from modules.classifier import (
    FATAL_VERDICTS,
    VERDICT_LABELS,
    Verdict,
    classify_case,
)
from modules.execution_client import ExecutionClient, ExecutionResult

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = (
    "Internal error: the code execution service failed while running "
    "this test case. Please resubmit."
)


class CaseResult(BaseModel):
    """Judged outcome of one test case."""

    ordinal: int
    test_case_id: str
    verdict: Verdict
    points: int = 0
    stdout: str = ""
    stderr: str = ""
    execution_time_ms: int = 0
    internal_error: Optional[str] = None
    skipped: bool = False

    @property
    def passed(self) -> bool:
        return self.verdict == Verdict.ACCEPTED and not self.skipped


class JudgeOutcome(BaseModel):
    """Aggregated verdict of a submission."""

    verdict: Verdict
    score: int
    passed_count: int
    total_count: int
    execution_time_ms: int
    error_message: Optional[str] = None
    failed_case: Optional[int] = None
    cases: list[CaseResult] = []


def truncate(text: str, limit: int) -> str:
    """Bound captured output to ``limit`` characters."""
    if len(text) <= limit:
        return text
    return text[:limit] + "\n... [truncated]"


def order_test_cases(test_cases: Sequence[TestCase]) -> list[TestCase]:
    """Canonical test case order: order_index, then id."""
    return sorted(
        test_cases,
        key=lambda tc: (tc.order_index, tc.test_case_id)
    )


def select_test_cases(
    test_cases: Sequence[TestCase],
    sample_only: bool
) -> list[TestCase]:
    """
    Pick the test cases of a run or submit request.

    Practice runs only see sample cases; submissions are graded on
    the full set.
    """
    ordered = order_test_cases(test_cases)
    if sample_only:
        return [tc for tc in ordered if tc.is_sample]
    return ordered


class VerdictEngine:
    """
    Judge submissions with bounded per-submission concurrency.

    Args:
        client: Execution capability
        max_concurrency: Maximum concurrent executions per submission
        error_message_max_chars: Truncation bound for stderr
        comparison_mode: Default output comparison mode
    """

    def __init__(
        self,
        client: ExecutionClient,
        max_concurrency: int = 4,
        error_message_max_chars: int = 2000,
        comparison_mode: str = "lines"
    ):
        self.client = client
        self.max_concurrency = max_concurrency
        self.error_message_max_chars = error_message_max_chars
        self.comparison_mode = comparison_mode

    async def execute_cases(
        self,
        question: Question,
        test_cases: Sequence[TestCase],
        code: str,
        language: str,
        stop_on_fatal: bool = True
    ) -> list[CaseResult]:
        """
        Execute test cases and classify each one.

        Args:
            question: Question providing limits and tolerance
            test_cases: Cases in their defined order
            code: Submitted source
            language: Canonical language name
            stop_on_fatal: Skip cases that have not started yet once an
                earlier case failed fatally (their results would be
                discarded by aggregation anyway)

        Returns:
            list[CaseResult]: One result per case, in input order
        """
        semaphore = asyncio.Semaphore(self.max_concurrency)
        first_fatal: list[int] = []

        async def run_one(ordinal: int, test_case: TestCase) -> CaseResult:
            async with semaphore:
                if stop_on_fatal and first_fatal and ordinal > min(first_fatal):
                    return CaseResult(
                        ordinal=ordinal,
                        test_case_id=test_case.test_case_id,
                        verdict=Verdict.ACCEPTED,
                        points=test_case.points,
                        skipped=True
                    )
                case = await self._run_case(
                    ordinal,
                    test_case,
                    question,
                    code,
                    language
                )
                if case.verdict in FATAL_VERDICTS:
                    first_fatal.append(ordinal)
                return case

        return list(await asyncio.gather(*(
            run_one(ordinal, test_case)
            for ordinal, test_case in enumerate(test_cases, start=1)
        )))

    async def _run_case(
        self,
        ordinal: int,
        test_case: TestCase,
        question: Question,
        code: str,
        language: str
    ) -> CaseResult:
        try:
            result = await self.client.run(
                code,
                language,
                test_case.input,
                question.time_limit_seconds,
                question.memory_limit_mb
            )
        except InfrastructureError as e:
            logger.error(
                f"Execution service failure on question "
                f"{question.question_id} test case {ordinal}: {e}"
            )
            return self._infrastructure_failure(ordinal, test_case, str(e))
        except Exception as e:
            logger.error(
                f"Unexpected execution client error on question "
                f"{question.question_id} test case {ordinal}: {e}",
                exc_info=True
            )
            return self._infrastructure_failure(ordinal, test_case, str(e))

        verdict = classify_case(
            result,
            test_case.expected_output,
            language,
            self.comparison_mode,
            question.float_tolerance
        )
        return self._case_result(ordinal, test_case, verdict, result)

    @staticmethod
    def _case_result(
        ordinal: int,
        test_case: TestCase,
        verdict: Verdict,
        result: ExecutionResult
    ) -> CaseResult:
        return CaseResult(
            ordinal=ordinal,
            test_case_id=test_case.test_case_id,
            verdict=verdict,
            points=test_case.points,
            stdout=result.stdout,
            stderr=result.compile_output or result.stderr,
            execution_time_ms=result.duration_ms
        )

    @staticmethod
    def _infrastructure_failure(
        ordinal: int,
        test_case: TestCase,
        detail: str
    ) -> CaseResult:
        return CaseResult(
            ordinal=ordinal,
            test_case_id=test_case.test_case_id,
            verdict=Verdict.RUNTIME_ERROR,
            points=test_case.points,
            internal_error=detail or "execution service failure"
        )

    def aggregate(
        self,
        question: Question,
        cases: Sequence[CaseResult]
    ) -> JudgeOutcome:
        """
        Fold ordered case results into a submission verdict.

        The verdict is the first failing case by ordinal. Cases after a
        fatal failure (compile, runtime, time or memory) are discarded;
        a wrong answer does not stop later cases from scoring.

        Raises:
            ValidationError: If there are no case results to fold
        """
        ordered = sorted(cases, key=lambda c: c.ordinal)
        if not ordered:
            raise ValidationError(
                f"Question {question.question_id} has no test cases"
            )
        counted: list[CaseResult] = []
        first_failure: Optional[CaseResult] = None

        for case in ordered:
            if case.skipped:
                break
            counted.append(case)
            if case.passed:
                continue
            if first_failure is None:
                first_failure = case
            if case.verdict in FATAL_VERDICTS:
                break

        passed = [case for case in counted if case.passed]
        execution_time_ms = max(
            (case.execution_time_ms for case in ordered if not case.skipped),
            default=0
        )

        if first_failure is None and len(passed) == len(ordered):
            return JudgeOutcome(
                verdict=Verdict.ACCEPTED,
                score=question.points,
                passed_count=len(passed),
                total_count=len(ordered),
                execution_time_ms=execution_time_ms,
                cases=list(ordered)
            )

        # A non-accepted submission never reaches full points
        earned = sum(case.points for case in passed)
        score = max(0, min(earned, question.points - 1))

        return JudgeOutcome(
            verdict=first_failure.verdict,
            score=score,
            passed_count=len(passed),
            total_count=len(ordered),
            execution_time_ms=execution_time_ms,
            error_message=self.failure_message(first_failure),
            failed_case=first_failure.ordinal,
            cases=list(ordered)
        )

    def failure_message(self, case: CaseResult) -> str:
        """
        User facing message for a failed case.

        Only the case ordinal, the failure category and the output of
        the user's own program are disclosed.
        """
        header = f"Test case {case.ordinal}: {VERDICT_LABELS[case.verdict]}"
        if case.internal_error is not None:
            return f"{header}\n{INTERNAL_ERROR_MESSAGE}"
        if case.verdict in (
            Verdict.COMPILE_ERROR,
            Verdict.RUNTIME_ERROR,
            Verdict.MEMORY_LIMIT_EXCEEDED,
        ) and case.stderr.strip():
            detail = truncate(case.stderr.strip(), self.error_message_max_chars)
            return f"{header}\n{detail}"
        return header

    async def judge(
        self,
        question: Question,
        test_cases: Sequence[TestCase],
        code: str,
        language: str
    ) -> JudgeOutcome:
        """
        Judge a submission against the full test case set.

        Never raises for per-case failures: every case ends up with a
        verdict and the submission always completes.

        Raises:
            ValidationError: If the question has no test cases
        """
        ordered = select_test_cases(test_cases, sample_only=False)
        if not ordered:
            raise ValidationError(
                f"Question {question.question_id} has no test cases"
            )
        cases = await self.execute_cases(question, ordered, code, language)
        outcome = self.aggregate(question, cases)

        internal_failures = [c.ordinal for c in cases if c.internal_error]
        if internal_failures:
            logger.error(
                f"Question {question.question_id}: execution service "
                f"failed on test cases {internal_failures}"
            )

        return outcome
