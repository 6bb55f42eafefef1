"""
Exception hierarchy for in-memory contract execution.

Every contract in the package raises a subclass of VMExecutionError. A raised
error aborts the whole public operation; the vault restores every state it
touched before re-raising, so callers see a failed call as a no-op.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class VaultError(Exception):
    """Base exception for all contract execution errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the operation can be retried unchanged
    """

    recoverable = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: Optional[bool] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if recoverable is not None:
            self.recoverable = recoverable


class VMExecutionError(VaultError):
    """Raised when a contract call reverts."""
    pass


# ==================== Ledger Errors ====================


class InsufficientBalanceError(VMExecutionError):
    """Raised when an account lacks the tokens an operation needs."""
    pass


class InsufficientAllowanceError(VMExecutionError):
    """Raised when a pull or delegated withdrawal lacks pre-authorization."""
    pass


class InsufficientSharesError(InsufficientBalanceError):
    """Raised when an owner holds fewer vault shares than must be burned or moved."""
    pass


# ==================== Input Errors ====================


class InvalidInputError(VMExecutionError):
    """Raised for zero amounts, zero addresses and misrouted zaps."""
    pass


# ==================== External Call Errors ====================


class SlippageExceededError(VMExecutionError):
    """Raised when a swap would realize less than the caller's floor."""

    def __init__(
        self,
        message: str,
        amount_out: Optional[int] = None,
        minimum: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.amount_out = amount_out
        self.minimum = minimum


class ExternalCallFailureError(VMExecutionError):
    """Raised when the yield wrapper or swap router aborts."""

    def __init__(
        self,
        message: str,
        target: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.target = target


class DeadlineExpiredError(ExternalCallFailureError):
    """Raised when a swap is executed after its deadline."""
    recoverable = True


class PoolNotFoundError(ExternalCallFailureError):
    """Raised when no pool exists for a token pair and fee tier."""
    pass


class InsufficientLiquidityError(ExternalCallFailureError):
    """Raised when a pool cannot fill a swap."""
    pass


# ==================== Execution Discipline Errors ====================


class ReentrancyError(VMExecutionError):
    """Raised when a call re-enters a contract that has an operation in flight."""
    pass


class InvariantViolationError(VMExecutionError):
    """Raised when accounting state is internally inconsistent."""
    pass


# ==================== Utility Functions ====================


def get_error_context(exc: Exception) -> Dict[str, Any]:
    """Extract error context from an exception for logging.

    Args:
        exc: The exception to extract context from

    Returns:
        Dictionary containing error type, message, and any additional details
    """
    context: Dict[str, Any] = {
        "error_type": type(exc).__name__,
        "error_message": str(exc),
    }

    if isinstance(exc, VaultError):
        context["recoverable"] = exc.recoverable
        if exc.details:
            context["details"] = exc.details

    if isinstance(exc, SlippageExceededError):
        if exc.amount_out is not None:
            context["amount_out"] = exc.amount_out
        if exc.minimum is not None:
            context["minimum"] = exc.minimum

    if isinstance(exc, ExternalCallFailureError) and exc.target:
        context["target"] = exc.target

    if exc.__cause__ is not None:
        context["cause"] = type(exc.__cause__).__name__

    return context
