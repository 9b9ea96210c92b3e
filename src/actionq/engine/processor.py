"""
Action processor: transform -> execute -> classify error.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from loguru import logger

from ..metrics.registry import HOOK_LATENCY_SECONDS
from .dlq import DeadLetterRouter
from .policy import default_error_policy
from .registry import ActionRegistry
from .types import Action, DeadLetterItem, ErrorPolicy, ErrorVerdict, render_error


class ProcessOutcome(str, Enum):
    DELIVERED = "delivered"
    DEAD_LETTERED = "dead_lettered"


@dataclass(frozen=True)
class ProcessResult:
    """Normal (non-fatal) result of processing one action."""

    outcome: ProcessOutcome
    dead_letter: Optional[DeadLetterItem] = None


class ActionProcessor:
    """Runs a single action through its registered capabilities.

    Missing hooks raise UnregisteredActionError before the error policy is
    consulted: a configuration defect is never dead-lettered.
    """

    def __init__(self, registry: ActionRegistry, router: DeadLetterRouter):
        self._registry = registry
        self._router = router

    async def process(
        self,
        action: Action,
        error_policy: ErrorPolicy = default_error_policy,
    ) -> ProcessResult:
        """Process ``action``.

        Returns:
            DELIVERED when the hook completed, DEAD_LETTERED when it failed and
            ``error_policy`` classified the failure as recoverable

        Raises:
            UnregisteredActionError: no hook for ``action.type``
            Exception: the original error when classified FATAL
        """
        hook = self._registry.hook_for(action.type)

        try:
            ident, payload = self._registry.transform(action)
            with HOOK_LATENCY_SECONDS.labels(action.type).time():
                await hook(ident, payload)
        except Exception as exc:
            verdict = error_policy(exc)
            if verdict is ErrorVerdict.RECOVERABLE:
                item = self._router.route(action, exc)
                return ProcessResult(ProcessOutcome.DEAD_LETTERED, item)
            logger.debug(f"Fatal error processing {action.type!r}: {render_error(exc)}")
            raise

        return ProcessResult(ProcessOutcome.DELIVERED)
