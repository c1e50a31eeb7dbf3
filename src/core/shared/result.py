"""
Result values for expected outcomes.

Use cases return ``Success`` or ``Failure`` instead of raising for
outcomes that are part of normal operation (sold out, duplicate
purchase, missing permission). Callers branch on ``is_success``;
``unwrap()`` converts a failure back into its exception when raising
is more convenient (tests, Celery tasks).

Example:
    result = service.execute(claims, PurchaseTicketInputDTO(event_id="e1"))
    if result.is_failure:
        return error_response(result.error)
    output = result.value
"""

from dataclasses import dataclass
from typing import Callable, Generic, TypeVar, Union

from .exceptions import DomainException, ErrorKind, InternalError


T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    """Operation completed; ``value`` carries the output."""

    value: T

    is_success = True
    is_failure = False

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Failure:
    """Operation refused; ``error`` says why."""

    error: DomainException

    is_success = False
    is_failure = True

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind

    @property
    def message(self) -> str:
        return self.error.message

    def unwrap(self):
        raise self.error


Result = Union[Success[T], Failure]


def attempt(fn: Callable[..., T], *args, **kwargs) -> Result:
    """
    Call ``fn`` and capture expected domain errors as ``Failure``.

    Internal errors (including ConcurrencyError) are not expected
    outcomes and keep propagating.

    Example:
        checked = attempt(require_scanner, claims, ticket.venue_id)
        if checked.is_failure:
            return checked
    """
    try:
        return Success(fn(*args, **kwargs))
    except InternalError:
        raise
    except DomainException as exc:
        return Failure(exc)
