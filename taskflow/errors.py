# PURPOSE: normalized error kinds raised by the core.
#
# Callers (HTTP layer, worker) only ever see these; adapters wrap raw
# SQLAlchemy / redis errors before they cross the boundary.


class TaskflowError(Exception):
    """Base class for every error the core raises."""


# --- Validation ------------------------------------------------------------


class ValidationError(TaskflowError):
    """Input rejected by the domain; surfaced verbatim, never retried."""


class EmptyTitleError(ValidationError):
    def __init__(self) -> None:
        super().__init__("title is empty")


class InvalidOwnerError(ValidationError):
    def __init__(self) -> None:
        super().__init__("invalid task owner")


class InvalidStatusError(ValidationError):
    def __init__(self, value: object = None) -> None:
        super().__init__(f"invalid status: {value!r}")
        self.value = value


# --- Lookup / state machine ------------------------------------------------


class NotFoundError(TaskflowError):
    """Task absent or not owned by the caller (indistinguishable on purpose)."""

    def __init__(self, message: str = "task not found") -> None:
        super().__init__(message)


class TransitionError(TaskflowError):
    """Status change disallowed by the state machine."""


class InvalidTransitionError(TransitionError):
    def __init__(self, source: object = None, target: object = None) -> None:
        super().__init__(f"invalid status transition: {source} -> {target}")
        self.source = source
        self.target = target


# --- Infrastructure ----------------------------------------------------------


class TransientInfrastructureError(TaskflowError):
    """Backing service unavailable."""


class CacheUnavailableError(TransientInfrastructureError):
    pass


class StoreUnavailableError(TransientInfrastructureError):
    pass


# --- Events ------------------------------------------------------------------


class PublishError(TaskflowError):
    """Event could not be handed to the transport."""


class EncodingError(PublishError):
    pass


class TransportError(PublishError, TransientInfrastructureError):
    pass


class EventDecodeError(TaskflowError):
    """Consumed message is not a valid task event."""
