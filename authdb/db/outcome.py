"""Typed outcomes for data operations and engine-error classification.

Every public data operation returns exactly one of:

    Success(value)
    BadRequest(code, message)     400 - malformed request, detected before I/O
    Unauthorized(code, message)   401 - no valid session matched
    NotFound(code, message)       404 - expected at least one row, got none
    Conflict(code, message)       409 - unique violation or occupied slot
    InternalError(code, message)  500 - any other engine or pool failure

The numeric code is chosen by the call site and is only used to correlate a
result with the line that produced it in logs.

Usage:
    result = await executor.select_one_or_fail("members", "*", {"m_name": "bob"})
    if not result.ok:
        logger.warning(f"lookup failed: {result}")
        return result
    member = result.value
"""

import logging
from dataclasses import dataclass
from typing import Any, ClassVar, Generic, Optional, TypeVar, Union

from authdb.errors import OutcomeError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# PostgreSQL SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"


@dataclass(frozen=True)
class Success(Generic[T]):
    """Successful outcome wrapping the operation's value."""

    value: T
    ok: ClassVar[bool] = True
    status: ClassVar[int] = 200

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Failure:
    """Base class for all failed outcomes."""

    code: int
    message: str = ""
    ok: ClassVar[bool] = False
    status: ClassVar[int] = 500

    def unwrap(self):
        raise OutcomeError(self)


class BadRequest(Failure):
    status = 400


class Unauthorized(Failure):
    status = 401


class NotFound(Failure):
    status = 404


class Conflict(Failure):
    status = 409


class InternalError(Failure):
    status = 500


Outcome = Union[Success[T], Failure]


def error_detail(exc: BaseException) -> str:
    """Best diagnostic text for an exception (asyncpg puts it in .detail)."""
    detail = getattr(exc, "detail", None)
    return detail if detail else str(exc)


def is_unique_violation(exc: BaseException) -> bool:
    return getattr(exc, "sqlstate", None) == UNIQUE_VIOLATION


def classify_error(
    exc: BaseException,
    internal_code: int,
    conflict_code: Optional[int] = None,
) -> Failure:
    """
    Map an exception raised during execution to a failed outcome.

    Args:
        exc: Exception raised by the driver, pool or handle
        internal_code: Code for the InternalError fallback
        conflict_code: Code for unique violations; when None, unique
            violations are treated as internal errors

    Returns:
        Conflict for a unique violation (if the call site expects one),
        InternalError for everything else
    """
    detail = error_detail(exc)
    if conflict_code is not None and is_unique_violation(exc):
        logger.warning(f"[{conflict_code}] unique violation: {detail}")
        return Conflict(conflict_code, f"conflict: {detail}")

    logger.error(f"[{internal_code}] query failed: {detail}", exc_info=exc)
    return InternalError(internal_code, detail)


def bad_request(exc: ValueError, code: int) -> BadRequest:
    logger.warning(f"[{code}] rejected request: {exc}")
    return BadRequest(code, str(exc))


def describe(outcome: Any) -> str:
    """Short log-friendly rendering of an outcome."""
    if outcome.ok:
        return "Success"
    return f"{type(outcome).__name__}({outcome.code}: {outcome.message})"
