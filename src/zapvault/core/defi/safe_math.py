"""
Fixed-width integer arithmetic for contract accounting.

All amounts are unsigned 256-bit integers. Products are checked against
uint256 before division so the Python model never computes a value a
256-bit machine could not hold.
"""

from __future__ import annotations

from enum import Enum

MAX_UINT256 = 2**256 - 1


class Rounding(Enum):
    """Rounding direction for integer division."""
    DOWN = "down"  # Floor: for amounts paid out to users
    UP = "up"      # Ceiling: for amounts charged to users


def safe_mul(a: int, b: int) -> int:
    """Checked uint256 multiplication."""
    if a < 0 or b < 0:
        raise ValueError("Operands must be non-negative")
    result = a * b
    if result > MAX_UINT256:
        raise OverflowError(f"Multiplication overflow: {a} * {b}")
    return result


def mul_div(a: int, b: int, denominator: int, rounding: Rounding = Rounding.DOWN) -> int:
    """
    Calculate (a * b) / denominator with controlled rounding.

    Args:
        a: First multiplicand
        b: Second multiplicand
        denominator: Divisor
        rounding: Rounding.UP when charging users, Rounding.DOWN when paying them

    Returns:
        Result of (a * b) / denominator

    Raises:
        ZeroDivisionError: If denominator is zero
        OverflowError: If the product overflows uint256
    """
    if denominator == 0:
        raise ZeroDivisionError("mul_div: division by zero")

    product = safe_mul(a, b)

    if rounding is Rounding.UP:
        return (product + denominator - 1) // denominator
    return product // denominator
