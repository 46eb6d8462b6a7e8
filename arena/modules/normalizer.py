"""
Output normalization and comparison.

Modes:
    exact:  only line endings and trailing newlines are normalized
    lines:  every line is trimmed and blank lines are dropped
    tokens: output is compared as a whitespace separated token list

A float tolerance, when given, switches to token comparison where
numeric tokens match within an absolute or relative tolerance.
"""

import math
from typing import Optional

COMPARISON_MODES = ("exact", "lines", "tokens")


def _unify_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def normalize_output(text: Optional[str], mode: str = "lines") -> str:
    """
    Canonicalize program output for comparison.

    Args:
        text: Raw output (None is treated as empty)
        mode: One of COMPARISON_MODES

    Returns:
        str: Normalized output
    """
    if mode not in COMPARISON_MODES:
        raise ValueError(f"Unknown comparison mode: {mode}")

    text = _unify_newlines(text or "")

    if mode == "exact":
        return "\n".join(line.rstrip() for line in text.split("\n")).rstrip("\n")

    if mode == "tokens":
        return " ".join(text.split())

    lines = (line.strip() for line in text.strip().split("\n"))
    return "\n".join(line for line in lines if line)


def _tokens_close(expected: str, actual: str, tolerance: float) -> bool:
    if expected == actual:
        return True
    try:
        exp_value = float(expected)
        act_value = float(actual)
    except ValueError:
        return False
    if math.isnan(exp_value) or math.isnan(act_value):
        return False
    return math.isclose(
        exp_value,
        act_value,
        rel_tol=tolerance,
        abs_tol=tolerance
    )


def outputs_match(
    expected: Optional[str],
    actual: Optional[str],
    mode: str = "lines",
    float_tolerance: Optional[float] = None
) -> bool:
    """
    Compare expected and actual output after normalization.

    Args:
        expected: Expected output from the test case
        actual: Output produced by the submission
        mode: Comparison mode used when no tolerance is configured
        float_tolerance: Numeric tolerance, enables token comparison

    Returns:
        bool: True if the outputs are considered equal
    """
    if float_tolerance is None:
        return normalize_output(expected, mode) == normalize_output(actual, mode)

    exp_tokens = (expected or "").split()
    act_tokens = (actual or "").split()
    if len(exp_tokens) != len(act_tokens):
        return False

    return all(
        _tokens_close(exp, act, float_tolerance)
        for exp, act in zip(exp_tokens, act_tokens)
    )
