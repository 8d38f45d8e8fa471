class DomainError(Exception):
    """Base exception for business rule violations.

    ``kind`` is the machine-checkable error category exposed to callers.
    """

    kind = "internal"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class NotFoundError(DomainError):
    """Raised when a referenced registration, event or user does not exist."""

    kind = "not_found"


class ValidationError(DomainError):
    """Raised when a precondition (state, time window, duplicate action) fails."""

    kind = "validation"


class AuthorizationError(DomainError):
    """Raised when a caller lacks permission for an action."""

    kind = "permission"


class InternalError(DomainError):
    """Raised when an infrastructure failure makes an operation impossible."""

    kind = "internal"
