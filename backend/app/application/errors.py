class ApplicationError(Exception):
    """Base application-layer error, independent from transport concerns."""


class NotFoundError(ApplicationError):
    """Raised when an expected entity does not exist or is not visible to the caller."""


class ConflictError(ApplicationError):
    """Raised when a uniqueness or state conflict occurs."""


class ForbiddenError(ApplicationError):
    """Raised when operation is forbidden by business rules."""


class ValidationError(ApplicationError):
    """Raised when application-level validation fails."""


class CapacityError(ApplicationError):
    """Raised when a bounded resource is exhausted and the caller should retry later."""


class RateLimitError(ApplicationError):
    """Raised when an action exceeded its request budget for one identifier."""

    def __init__(self, message: str, result) -> None:
        super().__init__(message)
        self.result = result
