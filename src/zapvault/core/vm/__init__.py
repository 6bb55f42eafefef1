"""Execution-layer primitives shared by all in-memory contracts."""

from .exceptions import (
    DeadlineExpiredError,
    ExternalCallFailureError,
    InsufficientAllowanceError,
    InsufficientBalanceError,
    InsufficientLiquidityError,
    InsufficientSharesError,
    InvalidInputError,
    InvariantViolationError,
    PoolNotFoundError,
    ReentrancyError,
    SlippageExceededError,
    VaultError,
    VMExecutionError,
    get_error_context,
)

__all__ = [
    "VaultError",
    "VMExecutionError",
    "InsufficientBalanceError",
    "InsufficientAllowanceError",
    "InsufficientSharesError",
    "SlippageExceededError",
    "InvalidInputError",
    "ExternalCallFailureError",
    "DeadlineExpiredError",
    "PoolNotFoundError",
    "InsufficientLiquidityError",
    "ReentrancyError",
    "InvariantViolationError",
    "get_error_context",
]
