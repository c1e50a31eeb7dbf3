"""
Domain exceptions for the Burner ticketing core.

Every error the core can report belongs to one ``ErrorKind``, a small
taxonomy shared by the HTTP layer, the Celery tasks and the tests.

Hierarchy:
    DomainException (base)
    ├── UnauthenticatedError (no verified caller identity)
    ├── PermissionDeniedError (caller lacks the required role)
    ├── ValidationError (malformed or missing input)
    │   └── InvalidSignatureError (QR payload rejected)
    ├── EntityNotFoundError (referenced record absent)
    ├── BusinessRuleViolationError (sold out, duplicate, past event...)
    ├── AlreadyExistsError (duplicate creation attempt)
    └── InternalError (unexpected failure)
        ├── ConcurrencyError (transaction conflict, retryable)
        └── QRSigningError (signature could not be produced)
"""

from enum import Enum


class ErrorKind(Enum):
    """
    Error taxonomy exposed to callers.

    The value is the wire code; ``http_status`` is the status the
    Django adapter answers with.
    """

    UNAUTHENTICATED = "unauthenticated"
    PERMISSION_DENIED = "permission-denied"
    INVALID_ARGUMENT = "invalid-argument"
    NOT_FOUND = "not-found"
    FAILED_PRECONDITION = "failed-precondition"
    ALREADY_EXISTS = "already-exists"
    INTERNAL = "internal"

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self]


_HTTP_STATUS = {
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.PERMISSION_DENIED: 403,
    ErrorKind.INVALID_ARGUMENT: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FAILED_PRECONDITION: 409,
    ErrorKind.ALREADY_EXISTS: 409,
    ErrorKind.INTERNAL: 500,
}


class DomainException(Exception):
    """
    Base class for every domain error.

    Attributes:
        message: Human readable message, safe to show to the caller
        code: Machine readable code (defaults to the class name)
        kind: ErrorKind used when the error crosses the API boundary

    Example:
        try:
            ticket.mark_used(scanner_id)
        except DomainException as e:
            logger.error(f"Domain error: {e}")
    """

    kind = ErrorKind.INTERNAL

    def __init__(self, message: str, code: str = None):
        self.message = message
        self.code = code or self.__class__.__name__
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict:
        """Serialize for API responses."""
        return {
            "code": self.kind.value,
            "error": self.code,
            "message": self.message,
        }


class UnauthenticatedError(DomainException):
    """Raised when the request carries no verified caller identity."""

    kind = ErrorKind.UNAUTHENTICATED

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, "UNAUTHENTICATED")


class PermissionDeniedError(DomainException):
    """
    The caller is authenticated but its role does not allow the operation.

    Example:
        if not isinstance(claims.role, SiteAdmin):
            raise PermissionDeniedError("Only site admins can run migrations")
    """

    kind = ErrorKind.PERMISSION_DENIED

    def __init__(self, message: str, required_role: str = None):
        self.required_role = required_role
        super().__init__(message, "PERMISSION_DENIED")

    def to_dict(self) -> dict:
        result = super().to_dict()
        if self.required_role:
            result["required_role"] = self.required_role
        return result


class ValidationError(DomainException):
    """
    Input data failed validation.

    Example:
        if not event_id:
            raise ValidationError("Valid event ID is required", field="eventId")
    """

    kind = ErrorKind.INVALID_ARGUMENT

    def __init__(self, message: str, field: str = None):
        self.field = field
        code = f"VALIDATION_ERROR_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(message, code)

    def to_dict(self) -> dict:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        return result


class InvalidSignatureError(ValidationError):
    """A QR payload could not be parsed or its signature does not match."""

    def __init__(self, message: str = "Invalid QR code signature"):
        super().__init__(message)
        self.code = "INVALID_SIGNATURE"


class EntityNotFoundError(DomainException):
    """
    A referenced record does not exist.

    Example:
        event = event_repo.get_by_id(event_id)
        if not event:
            raise EntityNotFoundError("Event not found", "Event", event_id)
    """

    kind = ErrorKind.NOT_FOUND

    def __init__(self, message: str, entity_type: str = None, entity_id: str = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(message, "ENTITY_NOT_FOUND")

    def to_dict(self) -> dict:
        result = super().to_dict()
        if self.entity_type:
            result["entity_type"] = self.entity_type
        if self.entity_id:
            result["entity_id"] = self.entity_id
        return result


class BusinessRuleViolationError(DomainException):
    """
    A domain rule forbids the operation in the current state.

    Used for expected outcomes such as a sold out event or a duplicate
    purchase; the message is specific enough to be shown to the user.

    Example:
        if event.available_tickets < 1:
            raise BusinessRuleViolationError(
                "No tickets available for this event", rule="sold_out"
            )
    """

    kind = ErrorKind.FAILED_PRECONDITION

    def __init__(self, message: str, rule: str = None):
        self.rule = rule
        super().__init__(message, "BUSINESS_RULE_VIOLATION")

    def to_dict(self) -> dict:
        result = super().to_dict()
        if self.rule:
            result["rule"] = self.rule
        return result


class AlreadyExistsError(DomainException):
    """A record with the same key already exists."""

    kind = ErrorKind.ALREADY_EXISTS

    def __init__(self, message: str):
        super().__init__(message, "ALREADY_EXISTS")


class InternalError(DomainException):
    """
    Unexpected failure.

    The message returned to the caller stays generic; the original
    error is kept in ``cause`` for operator-side logging only.
    """

    kind = ErrorKind.INTERNAL

    def __init__(self, message: str, cause: Exception = None, code: str = "INTERNAL"):
        self.cause = cause
        super().__init__(message, code)


class ConcurrencyError(InternalError):
    """
    A concurrent transaction modified the same data.

    Raised by repositories when a compare-and-set misses or the database
    reports a serialization conflict. ``UnitOfWork.run`` retries the
    whole unit of work when it sees this error.

    Example:
        if stored.tickets_sold != expected:
            raise ConcurrencyError("Event was modified by another transaction")
    """

    def __init__(self, message: str, cause: Exception = None):
        super().__init__(message, cause, "CONCURRENCY_ERROR")


class QRSigningError(InternalError):
    """The QR signature could not be computed (missing secret, hash failure)."""

    def __init__(self, message: str, cause: Exception = None):
        super().__init__(message, cause, "QR_SIGNING_ERROR")
