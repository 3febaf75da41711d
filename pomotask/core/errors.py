from __future__ import annotations


class PomotaskError(Exception):
    """Base class for every error the application raises on purpose."""


class ValidationError(PomotaskError):
    pass


class NotFoundError(PomotaskError):
    pass


class UnauthenticatedError(PomotaskError):
    def __init__(self, message: str = "No signed-in user") -> None:
        super().__init__(message)


class StoreError(PomotaskError):
    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation
        self.original_message = message

    @property
    def permission_denied(self) -> bool:
        return False


class PermissionDeniedError(StoreError):
    """The backend refused access; usually misconfigured storage rights."""

    @property
    def permission_denied(self) -> bool:
        return True


class TimerStateError(PomotaskError):
    pass
