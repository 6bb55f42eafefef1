"""
Staking Bar - Yield Wrapper Implementation (SushiBar Style).

Holders "enter" the bar with the base token and receive the wrapped token;
"leaving" burns the wrapped token for a proportional slice of the bar's
base balance. Revenue paid into the bar raises the base-per-wrapped rate
for every holder at once.

    enter:  wrapped_out = amount * wrapped_supply // base_held   (1:1 when empty)
    leave:  base_out    = share  * base_held      // wrapped_supply

Security features:
- Reentrancy guard on enter/leave
- Floor rounding on both directions so the bar never over-issues
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict

from ..contracts.erc20 import ERC20Token, derive_address
from ..vm.exceptions import InvalidInputError, ReentrancyError
from .safe_math import Rounding, mul_div

logger = logging.getLogger(__name__)


@dataclass
class StakingBar:
    """
    Yield wrapper over a base ERC20 token.

    The bar owns its wrapped token and is the only address allowed to mint
    it. Callers must approve the bar on the base token before enter().
    """

    base: ERC20Token
    wrapped: ERC20Token | None = None
    address: str = ""

    _locked: bool = field(default=False, repr=False)

    def __post_init__(self) -> None:
        if not self.address:
            self.address = derive_address("bar", self.base.address)
        self.address = self.address.lower()
        if self.wrapped is None:
            self.wrapped = ERC20Token(
                name=f"Staked {self.base.name}",
                symbol=f"x{self.base.symbol}",
                decimals=self.base.decimals,
                owner=self.address,
            )

    # ==================== Views ====================

    def total_underlying(self) -> int:
        """Base tokens held by the bar."""
        return self.base.balance_of(self.address)

    def to_underlying(self, share: int, rounding: Rounding = Rounding.DOWN) -> int:
        """Base value of `share` wrapped tokens at the current rate."""
        supply = self.wrapped.total_supply
        if supply == 0:
            return 0
        return mul_div(share, self.total_underlying(), supply, rounding)

    def to_wrapped(self, amount: int, rounding: Rounding = Rounding.DOWN) -> int:
        """Wrapped tokens corresponding to `amount` base at the current rate."""
        supply = self.wrapped.total_supply
        held = self.total_underlying()
        if supply == 0 or held == 0:
            return amount
        return mul_div(amount, supply, held, rounding)

    # ==================== Enter / Leave ====================

    def enter(self, caller: str, amount: int) -> int:
        """
        Lock base tokens and mint wrapped tokens to caller.

        Args:
            caller: Address entering (must have approved the bar)
            amount: Base tokens to lock

        Returns:
            Wrapped tokens minted
        """
        self._require_not_locked()
        if amount <= 0:
            raise InvalidInputError("StakingBar: enter amount must be positive")

        try:
            self._locked = True

            minted = self.to_wrapped(amount, Rounding.DOWN)
            if minted == 0:
                raise InvalidInputError("StakingBar: enter amount too small")

            self.base.transfer_from(self.address, caller, self.address, amount)
            self.wrapped.mint(self.address, caller, minted)

            logger.debug(
                "Bar entered",
                extra={
                    "event": "bar.enter",
                    "bar": self.address[:10],
                    "caller": caller[:10],
                    "amount": amount,
                    "minted": minted,
                }
            )

            return minted

        finally:
            self._locked = False

    def leave(self, caller: str, share: int) -> int:
        """
        Burn wrapped tokens and release the proportional base amount.

        Args:
            caller: Holder of the wrapped tokens
            share: Wrapped tokens to burn

        Returns:
            Base tokens released to caller
        """
        self._require_not_locked()
        if share <= 0:
            raise InvalidInputError("StakingBar: leave amount must be positive")

        try:
            self._locked = True

            released = self.to_underlying(share, Rounding.DOWN)
            self.wrapped.burn(caller, share)
            self.base.transfer(self.address, caller, released)

            logger.debug(
                "Bar left",
                extra={
                    "event": "bar.leave",
                    "bar": self.address[:10],
                    "caller": caller[:10],
                    "share": share,
                    "released": released,
                }
            )

            return released

        finally:
            self._locked = False

    def accrue_yield(self, funder: str, amount: int) -> None:
        """Pay base tokens into the bar, raising the rate for all holders."""
        if amount <= 0:
            raise InvalidInputError("StakingBar: yield amount must be positive")
        self.base.transfer(funder, self.address, amount)

        logger.info(
            "Yield accrued",
            extra={
                "event": "bar.yield",
                "bar": self.address[:10],
                "amount": amount,
                "total_underlying": self.total_underlying(),
                "wrapped_supply": self.wrapped.total_supply,
            }
        )

    # ==================== Snapshot / Restore ====================

    def snapshot(self) -> Dict[str, Any]:
        return {"wrapped": self.wrapped.snapshot(), "locked": self._locked}

    def restore(self, state: Dict[str, Any]) -> None:
        self.wrapped.restore(state["wrapped"])
        self._locked = state["locked"]

    # ==================== Helpers ====================

    def _require_not_locked(self) -> None:
        if self._locked:
            raise ReentrancyError("StakingBar: reentrant call")
