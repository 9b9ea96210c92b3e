"""
Custom exceptions for the action queue engine.

Separates configuration defects (which halt processing) from persistence
problems (which are logged and never surfaced to mutating callers).
"""


class ActionQueueError(Exception):
    """Base error for actionq."""

    pass


class RegistryError(ActionQueueError):
    """Invalid hook/transformer registration (configuration defect)."""

    pass


class UnregisteredActionError(RegistryError):
    """No execution hook is registered for an action type."""

    def __init__(self, action_type: str):
        super().__init__(f"No hook registered for action type {action_type!r}")
        self.action_type = action_type


class PersistenceError(ActionQueueError):
    """Persisted snapshot could not be read or decoded."""

    pass
