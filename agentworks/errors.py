"""
Rebate engine error taxonomy.

Every error carries the HTTP status the API layer answers with.
Input and not-found errors are raised before any write happens.
"""


class RebateError(Exception):
    """Base class for all rebate engine errors."""

    status_code: int = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidFormat(RebateError):
    """Input could not be parsed (rate is not a number, unknown enum value)."""


class UnsupportedPlatform(InvalidFormat):
    """Platform is not one of the supported platforms."""


class OutOfRange(RebateError):
    """Rate is outside [0, 100]."""


class PrecisionExceeded(RebateError):
    """Rate has more than two fractional digits."""


class NotFound(RebateError):
    """Referenced talent, agency or relation does not exist."""

    status_code = 404


class NoAgency(NotFound):
    """Talent is independent and has no agency to sync from."""


class NoConfig(RebateError):
    """Agency exists but has no active rate for the platform."""

    status_code = 404


class ConcurrentModification(RebateError):
    """The active record changed between read and write; the caller should retry."""

    status_code = 409


class IllegalStatusTransition(RebateError):
    """A ledger record was asked to make a status move that is not allowed."""

    status_code = 409

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Rebate config cannot move from '{current}' to '{requested}'")
