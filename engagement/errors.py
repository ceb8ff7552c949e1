"""Error taxonomy for engagement mutations."""


class EngagementError(Exception):
    """Base class for errors raised by the engagement layer."""

    pass


class Unauthenticated(EngagementError):
    """Raised when a mutation needs a signed-in user and there is none."""

    def __init__(self, message: str = "Sign-in required"):
        super().__init__(message)


class RemoteFailure(EngagementError):
    """Raised when a remote insert/delete/procedure call fails.

    The original exception is kept on ``cause`` (and chained as ``__cause__``
    by the raiser).
    """

    def __init__(self, operation: str, cause: BaseException | None = None):
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Remote {operation} failed{detail}")


class InvariantViolation(EngagementError):
    """Raised on programming errors, e.g. toggling an entity that was never loaded."""

    pass
