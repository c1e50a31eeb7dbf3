"""
Shared Domain Components.

Components used by every domain:
- Domain exceptions and the ErrorKind taxonomy
- Result values (Success / Failure)
- Interfaces (Ports)
- Base class for Domain Events
- In-memory datastore and Unit of Work
"""

from .exceptions import (
    DomainException,
    ErrorKind,
    ValidationError,
    EntityNotFoundError,
    BusinessRuleViolationError,
    PermissionDeniedError,
    UnauthenticatedError,
    InternalError,
    ConcurrencyError,
)
from .events import DomainEvent
from .interfaces import UnitOfWork, EventPublisher
from .result import Success, Failure, Result, attempt

__all__ = [
    "DomainException",
    "ErrorKind",
    "ValidationError",
    "EntityNotFoundError",
    "BusinessRuleViolationError",
    "PermissionDeniedError",
    "UnauthenticatedError",
    "InternalError",
    "ConcurrencyError",
    "DomainEvent",
    "UnitOfWork",
    "EventPublisher",
    "Success",
    "Failure",
    "Result",
    "attempt",
]
