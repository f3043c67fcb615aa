"""Exception hierarchy for the authdb data-access layer.

Data operations report failures as Outcome values (see authdb.db.outcome).
These exceptions cover the few places where raising is the contract:
misuse of a released handle, unwrapping a failed outcome, and the
transaction() context manager.
"""


class DataAccessError(Exception):
    """Base exception for all authdb errors."""


class HandleReleasedError(DataAccessError):
    """Raised when a connection handle is used after it was released."""


class OutcomeError(DataAccessError):
    """Raised by Failure.unwrap() so callers can opt into exceptions."""

    def __init__(self, failure):
        super().__init__(f"[{failure.code}] {type(failure).__name__}: {failure.message}")
        self.failure = failure


class TransactionError(OutcomeError):
    """Raised when a scoped transaction cannot begin or commit."""
