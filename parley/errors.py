"""Exception hierarchy for Parley.

Structural failures (storage, unresolved actions, misconfiguration,
remote service) propagate to the turn handler. Entity lookup failures
are recovered locally by the memory manager.
"""


class ParleyError(Exception):
    """Base exception for all Parley errors."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class ConfigurationError(ParleyError):
    """Raised at initialization when a required runtime option is missing."""

    def __init__(self, missing: list[str]) -> None:
        super().__init__(
            "Missing required configuration: " + ", ".join(missing)
        )
        self.missing = missing


class StorageError(ParleyError):
    """Base exception for persistent store failures.

    Store implementations wrap backend-specific errors in one of
    the StorageError subclasses.
    """

    pass


class StorageConnectionError(StorageError):
    """Raised when the persistent store is unreachable.

    Examples:
        - Redis server unavailable
        - Network errors
    """

    pass


class UnknownEntityError(ParleyError):
    """Raised when a memory operation names an entity absent from the model."""

    def __init__(self, entity_name: str) -> None:
        super().__init__(f"Can't find Entity named: {entity_name}")
        self.entity_name = entity_name


class EntityValueError(ParleyError, ValueError):
    """Raised when a remembered value can't be read as the requested type."""

    pass


class ActionResolutionError(ParleyError):
    """Raised when a dialog references an action id missing from definitions."""

    def __init__(self, action_id: str) -> None:
        super().__init__(f"Can't find Action Id {action_id}")
        self.action_id = action_id


class ServiceError(ParleyError):
    """Raised when the remote extraction/scoring service fails."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.status_code = status_code
