from fastapi import status


class ReconciliationError(Exception):
    """Base class for failures returned to callers of the reconciliation service."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(ReconciliationError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ForbiddenError(ReconciliationError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Not authorized"


class ConflictError(ReconciliationError):
    """Illegal transition, or a transition that lost a race to another request."""

    status_code = status.HTTP_409_CONFLICT
    default_message = "Payment status has changed, reload and try again"


class InvalidError(ReconciliationError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid payment data"


class InternalError(ReconciliationError):
    """Persistence failure. The message is always opaque to the caller."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Server error"
