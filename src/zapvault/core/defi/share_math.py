"""
Asset/share conversion math for the vault.

Pure functions of (total_assets, total_shares). Every conversion goes
through convert() so deposit-side and withdraw-side pricing share one
formula and differ only in rounding direction:

    deposit / redeem   -> Rounding.DOWN (user receives the floor)
    withdraw / mint    -> Rounding.UP   (user pays the ceiling)

An empty vault (total_shares == 0) prices shares 1:1 with assets, and has
no assets to hand out.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..vm.exceptions import InvariantViolationError
from .safe_math import Rounding, mul_div


def convert(amount: int, numerator: int, denominator: int, rounding: Rounding) -> int:
    """Scale amount by numerator/denominator with explicit rounding."""
    if denominator == 0:
        raise InvariantViolationError(
            "Conversion against zero denominator",
            details={"amount": amount, "numerator": numerator},
        )
    return mul_div(amount, numerator, denominator, rounding)


def _require_backed(total_assets: int, total_shares: int) -> None:
    if total_assets == 0:
        raise InvariantViolationError(
            "Vault has outstanding shares but no assets",
            details={"total_shares": total_shares},
        )


def to_shares(assets: int, total_assets: int, total_shares: int, rounding: Rounding) -> int:
    """Shares worth `assets` at the given valuation."""
    if total_shares == 0:
        return assets
    _require_backed(total_assets, total_shares)
    return convert(assets, total_shares, total_assets, rounding)


def to_assets(shares: int, total_assets: int, total_shares: int, rounding: Rounding) -> int:
    """Assets claimable by `shares` at the given valuation."""
    if total_shares == 0:
        return 0
    _require_backed(total_assets, total_shares)
    return convert(shares, total_assets, total_shares, rounding)


def to_assets_for_mint(shares: int, total_assets: int, total_shares: int) -> int:
    """Assets a depositor must pay to mint exactly `shares`."""
    if total_shares == 0:
        return shares
    _require_backed(total_assets, total_shares)
    return convert(shares, total_assets, total_shares, Rounding.UP)


@dataclass(frozen=True)
class Valuation:
    """
    Vault valuation captured at an operation's pricing step.

    Once captured, all pricing for that operation uses these two numbers;
    external calls made afterwards cannot move the quote.
    """

    total_assets: int
    total_shares: int

    def convert_to_shares(self, assets: int) -> int:
        return to_shares(assets, self.total_assets, self.total_shares, Rounding.DOWN)

    def convert_to_assets(self, shares: int) -> int:
        return to_assets(shares, self.total_assets, self.total_shares, Rounding.DOWN)

    def preview_deposit(self, assets: int) -> int:
        return self.convert_to_shares(assets)

    def preview_withdraw(self, assets: int) -> int:
        return to_shares(assets, self.total_assets, self.total_shares, Rounding.UP)

    def preview_mint(self, shares: int) -> int:
        return to_assets_for_mint(shares, self.total_assets, self.total_shares)

    def preview_redeem(self, shares: int) -> int:
        return self.convert_to_assets(shares)
