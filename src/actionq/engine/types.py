"""
Core data types for the action queue engine.

Actions and dead-letter items are frozen pydantic models so snapshots handed
to persistence can never be mutated behind the engine's back.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Action(BaseModel):
    """An effect to perform (``type``) and its input (``payload``)."""

    model_config = ConfigDict(frozen=True)

    type: str
    payload: Any = None

    @field_validator("type")
    def _non_empty_type(cls, v):
        if not v or not v.strip():
            raise ValueError("Action type must be a non-empty string")
        return v


class DeadLetterItem(Action):
    """Action captured after a recoverable processing failure.

    Attributes:
        created_at: ISO-8601 UTC timestamp of the routing moment
        error: "<ExceptionType>: <message>" rendering of the failure
        entities: Entity map produced by a dead-letter transformer (if any)
    """

    created_at: str
    error: str
    entities: dict[str, Any] = Field(default_factory=dict)


class ErrorVerdict(str, Enum):
    """Classification returned by an error policy."""

    RECOVERABLE = "recoverable"
    FATAL = "fatal"


class ProcessingStatus(str, Enum):
    """Single-flight guard state of the processing loop."""

    IDLE = "idle"
    PROCESSING = "processing"


# --- Capability signatures ---

Hook = Callable[[Optional[str], Any], Awaitable[None]]
Transformer = Callable[[Any], Tuple[Optional[str], Any]]
DeadLetterTransformer = Callable[[Any], Tuple[Any, dict]]
ErrorPolicy = Callable[[Exception], ErrorVerdict]
ConnectivityCallback = Callable[[bool], Awaitable[None]]


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def render_error(exc: BaseException) -> str:
    """Render an exception as a non-empty diagnostic string."""
    msg = str(exc)
    return f"{type(exc).__name__}: {msg}" if msg else type(exc).__name__
