"""
Exception handling utilities.

Defines the ledger error taxonomy and categorized exception types for
proper error handling at the HTTP boundary and in retry helpers.
"""

from typing import Any

from sqlalchemy.exc import DBAPIError, OperationalError


class LedgerError(Exception):
    """
    Base class for all ledger errors.

    Attributes:
        code: Machine readable error code returned to clients
        http_status: HTTP status used by the API error middleware
        context: Structured details for logs and responses
    """

    code = "ledger_error"
    http_status = 400

    def __init__(self, message: str | None = None, **context: Any) -> None:
        self.message = message or self.__class__.__doc__ or self.code
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            "success": False,
            "error": self.message,
            "code": self.code,
            **{k: v for k, v in self.context.items() if v is not None},
        }


class NotFoundError(LedgerError):
    """Requested record does not exist."""
    code = "not_found"
    http_status = 404


class InvalidRequestError(LedgerError):
    """Request payload is malformed."""
    code = "invalid_request"
    http_status = 400


class InvalidOrderError(LedgerError):
    """Order data is invalid (for example non-positive points)."""
    code = "invalid_order"
    http_status = 400


class InvalidOrderStateError(LedgerError):
    """Order status does not allow the requested transition."""
    code = "invalid_order_state"
    http_status = 409


class AlreadyConfirmedError(LedgerError):
    """Order is already confirmed."""
    code = "already_confirmed"
    http_status = 409


class AlreadyDistributedError(LedgerError):
    """Commissions for this order were already distributed."""
    code = "already_distributed"
    http_status = 409


class AlreadyPaidError(LedgerError):
    """Quick Start bonus was already paid for this account."""
    code = "already_paid"
    http_status = 409


class AlreadyMasterError(AlreadyPaidError):
    """Account is already a Quick Start master."""
    code = "already_master"


class AlreadyRegisteredError(AlreadyPaidError):
    """A Quick Start order is already registered for this account."""
    code = "already_registered"


class InsufficientPointsError(LedgerError):
    """Not enough points for the requested operation."""
    code = "insufficient_points"
    http_status = 400


class InsufficientBalanceError(LedgerError):
    """Not enough balance for the requested operation."""
    code = "insufficient_balance"
    http_status = 400


class AuthorizationError(LedgerError):
    """Caller is not allowed to perform this operation."""
    code = "forbidden"
    http_status = 403


class AuthenticationError(AuthorizationError):
    """Missing or invalid credentials."""
    code = "unauthenticated"
    http_status = 401


class TransactionConflictError(LedgerError):
    """Concurrent modification detected; the operation may be retried."""
    code = "transaction_conflict"
    http_status = 409


class PartialDistributionFailure(LedgerError):
    """
    A single sponsor level could not be credited.

    Recorded on the distribution result and in the activity log; never
    raised to the caller of the distribution engine.
    """

    code = "partial_distribution_failure"
    http_status = 500

    def __init__(
        self,
        order_id: int,
        level: int,
        account_id: int | None,
        reason: str,
    ) -> None:
        super().__init__(
            f"Level {level} payout failed for order {order_id}: {reason}",
            order_id=order_id,
            level=level,
            account_id=account_id,
        )
        self.order_id = order_id
        self.level = level
        self.account_id = account_id
        self.reason = reason


# Exception categories based on handling strategy

# Retry the whole operation from scratch
RETRYABLE = (
    TransactionConflictError,
    OperationalError,  # lock timeouts, serialization failures, "database is locked"
)

# Report to the client as-is
CLIENT_ERRORS = (
    LedgerError,
)

# Must log with traceback - unexpected database failures
MUST_LOG = (
    DBAPIError,
)


def is_retryable(exc: Exception) -> bool:
    """
    Check if the operation that raised exc can be retried.

    Args:
        exc: Exception to check

    Returns:
        True if the operation is safe to retry
    """
    return isinstance(exc, RETRYABLE)


def is_client_error(exc: Exception) -> bool:
    """
    Check if exception maps to a typed client response.

    Args:
        exc: Exception to check

    Returns:
        True if exception is part of the ledger taxonomy
    """
    return isinstance(exc, CLIENT_ERRORS)


def must_log(exc: Exception) -> bool:
    """
    Check if exception must be logged with traceback.

    Args:
        exc: Exception to check

    Returns:
        True if exception must be logged
    """
    return isinstance(exc, MUST_LOG) or not is_client_error(exc)
