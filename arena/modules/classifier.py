"""
Verdict taxonomy and classification of raw execution results.

Compile, memory and runtime failures are recognised from the exit
status and from per-language stderr signatures. All pattern rules
live here so call sites never match on stderr text themselves.
"""

import re
from enum import Enum
from typing import Optional

from modules.execution_client import ExecutionResult
from modules.normalizer import outputs_match


class Verdict(str, Enum):
    """Outcome of a test case or of a whole submission."""

    ACCEPTED = "accepted"
    WRONG_ANSWER = "wrong_answer"
    RUNTIME_ERROR = "runtime_error"
    TIME_LIMIT_EXCEEDED = "time_limit_exceeded"
    MEMORY_LIMIT_EXCEEDED = "memory_limit_exceeded"
    COMPILE_ERROR = "compile_error"


VERDICT_LABELS = {
    Verdict.ACCEPTED: "Accepted",
    Verdict.WRONG_ANSWER: "Wrong answer",
    Verdict.RUNTIME_ERROR: "Runtime error",
    Verdict.TIME_LIMIT_EXCEEDED: "Time limit exceeded",
    Verdict.MEMORY_LIMIT_EXCEEDED: "Memory limit exceeded",
    Verdict.COMPILE_ERROR: "Compilation error",
}

# Failures that stop aggregation at their test case
FATAL_VERDICTS = frozenset({
    Verdict.RUNTIME_ERROR,
    Verdict.TIME_LIMIT_EXCEEDED,
    Verdict.MEMORY_LIMIT_EXCEEDED,
    Verdict.COMPILE_ERROR,
})

COMPILE_SIGNATURES: dict[str, list[re.Pattern]] = {
    "python": [
        re.compile(r"^(SyntaxError|IndentationError|TabError):", re.M),
    ],
    "javascript": [
        re.compile(r"^SyntaxError:", re.M),
    ],
    "java": [
        re.compile(r"\.java:\d+: error:"),
        re.compile(r"^error: class \w+ is public", re.M),
    ],
    "c": [
        re.compile(r":\d+:\d+: (fatal )?error:"),
        re.compile(r"undefined reference to"),
    ],
    "cpp": [
        re.compile(r":\d+:\d+: (fatal )?error:"),
        re.compile(r"undefined reference to"),
    ],
    "go": [
        re.compile(r"^# command-line-arguments", re.M),
        re.compile(r"\.go:\d+:\d+: "),
    ],
}

MEMORY_SIGNATURES: list[re.Pattern] = [
    re.compile(r"\bMemoryError\b"),
    re.compile(r"std::bad_alloc"),
    re.compile(r"java\.lang\.OutOfMemoryError"),
    re.compile(r"JavaScript heap out of memory"),
    re.compile(r"runtime: out of memory"),
    re.compile(r"[Cc]annot allocate memory"),
]

RUNTIME_SIGNATURES: dict[str, list[re.Pattern]] = {
    "python": [re.compile(r"^Traceback \(most recent call last\):", re.M)],
    "javascript": [re.compile(r"^\s+at .+:\d+:\d+\)?$", re.M)],
    "java": [re.compile(r"^Exception in thread ", re.M)],
    "go": [re.compile(r"^panic: ", re.M)],
}

# Headers printed only once a program is running; a syntax error after
# one of these comes from code the program parsed itself
STARTED_SIGNATURES: dict[str, list[re.Pattern]] = {
    language: RUNTIME_SIGNATURES[language]
    for language in ("python", "java", "go")
}


def _matches(patterns: list[re.Pattern], text: str) -> bool:
    return any(pattern.search(text) for pattern in patterns)


def is_compile_failure(result: ExecutionResult, language: str) -> bool:
    """
    A compile failure is reported by the compile stage, or is a failed
    run that produced no output and carries a compiler signature.
    """
    if result.compile_output is not None:
        return True
    if result.stdout.strip() or result.exit_code == 0:
        return False
    if _matches(STARTED_SIGNATURES.get(language, []), result.stderr):
        return False
    return _matches(COMPILE_SIGNATURES.get(language, []), result.stderr)


def classify_execution(
    result: ExecutionResult,
    language: str
) -> Optional[Verdict]:
    """
    Classify an execution by its failure mode.

    Returns:
        Verdict or None when the program ran cleanly
    """
    if is_compile_failure(result, language):
        return Verdict.COMPILE_ERROR
    if result.timed_out:
        return Verdict.TIME_LIMIT_EXCEEDED
    if result.memory_exceeded or _matches(MEMORY_SIGNATURES, result.stderr):
        return Verdict.MEMORY_LIMIT_EXCEEDED
    if result.exit_code != 0 or result.signal:
        return Verdict.RUNTIME_ERROR
    if _matches(RUNTIME_SIGNATURES.get(language, []), result.stderr):
        return Verdict.RUNTIME_ERROR
    return None


def classify_case(
    result: ExecutionResult,
    expected_output: str,
    language: str,
    mode: str = "lines",
    float_tolerance: Optional[float] = None
) -> Verdict:
    """Classify one test case execution against its expected output."""
    failure = classify_execution(result, language)
    if failure is not None:
        return failure
    if outputs_match(expected_output, result.stdout, mode, float_tolerance):
        return Verdict.ACCEPTED
    return Verdict.WRONG_ANSWER
