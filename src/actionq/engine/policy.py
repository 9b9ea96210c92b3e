"""
Error policies for the action processor.

A policy maps an exception raised while transforming/executing an action to an
ErrorVerdict. RECOVERABLE routes the action to the dead-letter queue and lets
the loop continue; FATAL halts the loop with the action left at the head.
"""

from __future__ import annotations

from typing import Tuple, Type

from .types import ErrorPolicy, ErrorVerdict


def default_error_policy(exc: Exception) -> ErrorVerdict:
    """Every failure is recoverable (dead-lettered)."""
    return ErrorVerdict.RECOVERABLE


def always_fatal(exc: Exception) -> ErrorVerdict:
    return ErrorVerdict.FATAL


def classify_by_type(fatal: Tuple[Type[BaseException], ...]) -> ErrorPolicy:
    """Build a policy treating ``fatal`` exception types as FATAL.

    Example:
        # keep the head in place while offline-ish errors surface
        policy = classify_by_type(fatal=(ConnectionError, TimeoutError))
    """

    def _policy(exc: Exception) -> ErrorVerdict:
        if isinstance(exc, fatal):
            return ErrorVerdict.FATAL
        return ErrorVerdict.RECOVERABLE

    return _policy
