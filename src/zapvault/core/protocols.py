"""
zapvault - Collaborator Protocol Interfaces

The vault talks to three kinds of external contract: token ledgers, the
yield wrapper and the swap router. Each is described here as a Protocol so
that any implementation with the right shape can be plugged in.

Every collaborator is treated as untrusted:
- It may raise, or return a falsy success flag
- It may call back into the vault while the vault is mid-operation
- Its exchange rate may change between any two calls
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Protocol, runtime_checkable

if TYPE_CHECKING:
    from zapvault.core.defi.safe_math import Rounding
    from zapvault.core.defi.swap_router import ExactInputSingleParams


@runtime_checkable
class ISnapshottable(Protocol):
    """State that can be captured and rolled back as part of a vault operation."""

    def snapshot(self) -> Dict[str, Any]:
        ...

    def restore(self, state: Dict[str, Any]) -> None:
        ...


@runtime_checkable
class ILedger(Protocol):
    """
    Fungible-token ledger.

    Failure is signalled either by raising or by returning a falsy value.
    """

    address: str
    symbol: str
    decimals: int
    total_supply: int

    def balance_of(self, account: str) -> int:
        ...

    def allowance(self, owner: str, spender: str) -> int:
        ...

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        ...

    def transfer_from(self, spender: str, from_addr: str, to_addr: str, amount: int) -> bool:
        ...

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        ...


@runtime_checkable
class IYieldWrapper(Protocol):
    """
    Converts the base asset into an appreciating wrapped form and back.

    The exchange rate is total_underlying() / wrapped.total_supply and is
    controlled entirely by the wrapper.
    """

    address: str
    base: ILedger
    wrapped: ILedger

    def enter(self, caller: str, amount: int) -> int:
        """Lock `amount` base from caller; credit wrapped to caller. Returns wrapped minted."""
        ...

    def leave(self, caller: str, share: int) -> int:
        """Burn `share` wrapped from caller; return base to caller. Returns base released."""
        ...

    def total_underlying(self) -> int:
        ...

    def to_underlying(self, share: int, rounding: "Rounding") -> int:
        """Base value of `share` wrapped at the current rate."""
        ...

    def to_wrapped(self, amount: int, rounding: "Rounding") -> int:
        """Wrapped amount corresponding to `amount` base at the current rate."""
        ...


@runtime_checkable
class ISwapRouter(Protocol):
    """Single-hop exact-input swap router."""

    address: str

    def exact_input_single(self, caller: str, params: "ExactInputSingleParams") -> int:
        """
        Swap params.amount_in of token_in for token_out.

        Must raise if the realized output is below params.amount_out_minimum
        or params.deadline has passed. Returns the realized output.
        """
        ...
