"""
Error taxonomy for the flight surety ledger.

Every failure raised by a ledger operation derives from FlightSuretyError and
carries a category so callers (CLI, transport adapters) can map errors without
knowing every concrete class. All errors are recoverable: a failed operation
leaves the ledger exactly as it was before the call.
"""

from typing import Any, Dict, Optional


class FlightSuretyError(Exception):
    """Base class for all ledger errors."""

    category = "ledger"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to a serializable dictionary."""
        return {
            "error": type(self).__name__,
            "category": self.category,
            "message": self.message,
            "context": {key: str(value) for key, value in self.context.items()},
        }


# Authorization


class AuthorizationError(FlightSuretyError):
    category = "authorization"


class Unauthorized(AuthorizationError):
    """Caller is not the ledger owner."""


class CallerNotFunded(AuthorizationError):
    """Caller airline has not paid its stake and cannot vote or register."""


class NotAuthorizedIndex(AuthorizationError):
    """Oracle answered with an index it was not assigned."""


class AirlineNotFunded(AuthorizationError):
    """Flight registration against an airline that is not funded."""


class NotRegistered(AuthorizationError):
    """Funding attempted by an airline that is not in Registered state."""


# State conflicts


class StateConflictError(FlightSuretyError):
    category = "state_conflict"


class AlreadyRegistered(StateConflictError):
    pass


class DuplicateVote(StateConflictError):
    pass


class DuplicatePolicy(StateConflictError):
    pass


class DuplicateResponse(StateConflictError):
    pass


class FlightAlreadyExists(StateConflictError):
    pass


class AlreadyPaused(StateConflictError):
    pass


class AlreadyOperational(StateConflictError):
    pass


# Resource bounds


class ResourceBoundError(FlightSuretyError):
    category = "resource_bound"


class InsufficientFunds(ResourceBoundError):
    pass


class InsufficientFee(ResourceBoundError):
    pass


class PremiumExceedsCap(ResourceBoundError):
    pass


# Not found


class NotFoundError(FlightSuretyError):
    category = "not_found"


class FlightNotFound(NotFoundError):
    pass


class NoOpenRequest(NotFoundError):
    pass


# System


class LedgerSystemError(FlightSuretyError):
    category = "system"


class SystemPaused(LedgerSystemError):
    """Raised by every mutating operation while the operational flag is off."""


class TransferFailed(LedgerSystemError):
    pass


class LedgerBusy(LedgerSystemError):
    """Entity locks could not be acquired within the configured timeout."""


# Input validation


class LedgerValidationError(FlightSuretyError, ValueError):
    category = "validation"


class InvalidAccount(LedgerValidationError):
    pass


class InvalidAmount(LedgerValidationError):
    pass


class InvalidStatusCode(LedgerValidationError):
    pass


class InvalidFlight(LedgerValidationError):
    """Flight code or departure timestamp out of range."""


def error_category(error: BaseException) -> Optional[str]:
    """Return the ledger category of an error, or None for foreign exceptions."""
    if isinstance(error, FlightSuretyError):
        return error.category
    return None
