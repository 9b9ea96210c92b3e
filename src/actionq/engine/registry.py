"""
Capability registry for action types.

Hooks are mandatory per action type; transformers and dead-letter transformers
are optional and default to pass-through. Registrations are validated when the
registry is built so a transformer without a matching hook is rejected up front.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Tuple

from loguru import logger

from ..errors import RegistryError, UnregisteredActionError
from .types import Action, DeadLetterTransformer, Hook, Transformer


class ActionRegistry:
    """Hook/transformer lookup keyed by action type.

    Example:
        registry = ActionRegistry(
            hooks={"like_post": api.like_post},
            transformers={"like_post": lambda p: (p["post_id"], p)},
        )
    """

    def __init__(
        self,
        hooks: Mapping[str, Hook],
        transformers: Optional[Mapping[str, Transformer]] = None,
        dead_letter_transformers: Optional[Mapping[str, DeadLetterTransformer]] = None,
    ):
        self._hooks = dict(hooks)
        self._transformers = dict(transformers or {})
        self._dl_transformers = dict(dead_letter_transformers or {})
        self._validate()

    def _validate(self) -> None:
        for action_type, hook in self._hooks.items():
            if not callable(hook):
                raise RegistryError(f"Hook for {action_type!r} is not callable")

        for label, table in (
            ("transformer", self._transformers),
            ("dead-letter transformer", self._dl_transformers),
        ):
            for action_type, fn in table.items():
                if action_type not in self._hooks:
                    raise RegistryError(
                        f"{label} registered for {action_type!r} but no hook exists"
                    )
                if not callable(fn):
                    raise RegistryError(f"{label} for {action_type!r} is not callable")

        logger.debug(
            f"ActionRegistry ready: hooks={len(self._hooks)} "
            f"transformers={len(self._transformers)} "
            f"dl_transformers={len(self._dl_transformers)}"
        )

    @property
    def action_types(self) -> frozenset[str]:
        return frozenset(self._hooks)

    def is_registered(self, action_type: str) -> bool:
        return action_type in self._hooks

    def require(self, action_type: str) -> None:
        """Raise UnregisteredActionError if no hook exists for the type."""
        if action_type not in self._hooks:
            raise UnregisteredActionError(action_type)

    def hook_for(self, action_type: str) -> Hook:
        try:
            return self._hooks[action_type]
        except KeyError:
            raise UnregisteredActionError(action_type) from None

    def transform(self, action: Action) -> Tuple[Optional[str], Any]:
        """Apply the live transformer, or pass the payload through with no id."""
        fn = self._transformers.get(action.type)
        if fn is None:
            return None, action.payload
        return fn(action.payload)

    def transform_dead_letter(self, action: Action) -> Tuple[Any, dict]:
        """Apply the dead-letter transformer, or keep the original payload."""
        fn = self._dl_transformers.get(action.type)
        if fn is None:
            return action.payload, {}
        payload, entities = fn(action.payload)
        return payload, dict(entities or {})
