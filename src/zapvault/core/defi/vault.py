"""
Zap Vault - Share-Based Yield Vault (ERC4626 Style).

Users deposit the base asset and receive vault shares; the vault parks the
asset in a yield wrapper (StakingBar) and values itself at the wrapper's
live exchange rate. Shares are redeemed for a proportional slice of that
growing value. zap_in() accepts any other token, swaps it into the base
asset through the router and deposits the proceeds in the same operation.

Pricing:
- deposit / redeem round DOWN (the user receives the floor)
- withdraw / mint round UP (the user pays the ceiling)
- an empty vault mints shares 1:1 with assets

Execution discipline:
- One operation in flight per vault; re-entry raises ReentrancyError, and
  public views refuse to answer while an operation is in flight
- Valuation is captured once, before the operation's first external call
- Shares are minted after assets are paid in and burned before assets are
  paid out
- Any failure restores the vault and every collaborator it touched
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator

from ..config import Config
from ..contracts.erc20 import ERC20Factory, derive_address
from ..protocols import ILedger, ISnapshottable, ISwapRouter, IYieldWrapper
from ..vm.exceptions import (
    ExternalCallFailureError,
    InvalidInputError,
    ReentrancyError,
    SlippageExceededError,
    VMExecutionError,
    get_error_context,
)
from .safe_math import MAX_UINT256, Rounding
from .share_ledger import ShareLedger
from .share_math import Valuation
from .swap_router import ExactInputSingleParams

logger = logging.getLogger(__name__)


@dataclass
class VaultEvent:
    """Deposit or Withdraw event emitted by the vault."""

    event_type: str  # "Deposit" or "Withdraw"
    sender: str
    receiver: str
    owner: str
    assets: int
    shares: int
    timestamp: float = field(default_factory=time.time)

    def as_tuple(self) -> tuple:
        if self.event_type == "Deposit":
            return (self.sender, self.owner, self.assets, self.shares)
        return (self.sender, self.receiver, self.owner, self.assets, self.shares)


@dataclass
class ZapVault:
    """
    Share vault over a yield wrapper with a swap-router zap entry point.

    Caller addresses are passed explicitly as the first argument of every
    state-changing method (msg.sender).
    """

    asset_token: ILedger
    bar: IYieldWrapper
    router: ISwapRouter
    tokens: ERC20Factory

    name: str = ""
    symbol: str = ""
    address: str = ""

    default_fee_tier: int = Config.DEFAULT_FEE_TIER
    swap_deadline_seconds: int = Config.SWAP_DEADLINE_SECONDS
    clock: Callable[[], float] = field(default=time.time, repr=False)

    shares: ShareLedger | None = None
    events: list[VaultEvent] = field(default_factory=list)

    _locked: bool = field(default=False, repr=False)

    def __post_init__(self) -> None:
        for collaborator, interface in (
            (self.asset_token, ILedger),
            (self.bar, IYieldWrapper),
            (self.router, ISwapRouter),
        ):
            if not isinstance(collaborator, interface):
                raise InvalidInputError(
                    f"{type(collaborator).__name__} does not implement {interface.__name__}"
                )
        if self.bar.base is not self.asset_token:
            raise InvalidInputError("Yield wrapper base token must be the vault asset")
        if not self.address:
            self.address = derive_address("vault", self.asset_token.address, self.bar.address)
        self.address = self.address.lower()
        if not self.name:
            self.name = f"{self.bar.wrapped.symbol} Vault"
        if not self.symbol:
            self.symbol = f"v{self.bar.wrapped.symbol}"
        if self.shares is None:
            self.shares = ShareLedger(
                name=self.name,
                symbol=self.symbol,
                decimals=self.asset_token.decimals,
                address=self.address,
                owner=self.address,
            )
        self.tokens.register(self.asset_token)

        logger.info(
            "Vault deployed",
            extra={
                "event": "vault.deployed",
                "vault": self.address,
                "asset": self.asset_token.address,
                "bar": self.bar.address,
                "router": self.router.address,
            }
        )

    # ==================== ERC4626 Views ====================

    @property
    def asset(self) -> str:
        """Address of the base asset."""
        return self.asset_token.address

    @property
    def decimals(self) -> int:
        return self.shares.decimals

    @property
    def total_supply(self) -> int:
        return self.shares.total_supply

    def total_assets(self) -> int:
        """Base-asset value managed by the vault at the wrapper's current rate."""
        self._require_not_locked()
        return self._total_assets()

    def convert_to_shares(self, assets: int) -> int:
        return self._view().convert_to_shares(assets)

    def convert_to_assets(self, shares: int) -> int:
        return self._view().convert_to_assets(shares)

    def preview_deposit(self, assets: int) -> int:
        """Shares deposit(assets) would mint right now."""
        return self._view().preview_deposit(assets)

    def preview_mint(self, shares: int) -> int:
        """Assets mint(shares) would charge right now."""
        return self._view().preview_mint(shares)

    def preview_withdraw(self, assets: int) -> int:
        """Shares withdraw(assets) would burn right now."""
        return self._view().preview_withdraw(assets)

    def preview_redeem(self, shares: int) -> int:
        """Assets redeem(shares) would pay out right now."""
        return self._view().preview_redeem(shares)

    def max_deposit(self, receiver: str) -> int:
        return MAX_UINT256

    def max_mint(self, receiver: str) -> int:
        return MAX_UINT256

    def max_withdraw(self, owner: str) -> int:
        return self.convert_to_assets(self.shares.balance_of(owner))

    def max_redeem(self, owner: str) -> int:
        self._require_not_locked()
        return self.shares.balance_of(owner)

    def price_per_share(self) -> int:
        """Assets backing one whole share (10**decimals units)."""
        one_share = 10 ** self.decimals
        valuation = self._view()
        if valuation.total_shares == 0:
            return one_share
        return valuation.convert_to_assets(one_share)

    # ==================== Share Token ====================

    def balance_of(self, holder: str) -> int:
        return self.shares.balance_of(holder)

    def allowance(self, owner: str, spender: str) -> int:
        return self.shares.allowance(owner, spender)

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        self._require_not_locked()
        return self.shares.approve(owner, spender, amount)

    def increase_allowance(self, owner: str, spender: str, added_value: int) -> bool:
        self._require_not_locked()
        return self.shares.increase_allowance(owner, spender, added_value)

    def decrease_allowance(self, owner: str, spender: str, subtracted_value: int) -> bool:
        self._require_not_locked()
        return self.shares.decrease_allowance(owner, spender, subtracted_value)

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        self._require_not_locked()
        return self.shares.transfer(sender, recipient, amount)

    def transfer_from(self, spender: str, from_addr: str, to_addr: str, amount: int) -> bool:
        self._require_not_locked()
        return self.shares.transfer_from(spender, from_addr, to_addr, amount)

    # ==================== Deposit / Mint ====================

    def deposit(self, caller: str, assets: int, receiver: str) -> int:
        """
        Deposit base asset and mint shares to receiver.

        Args:
            caller: Address paying the assets (must have approved the vault)
            assets: Base asset amount, > 0
            receiver: Address credited with the shares

        Returns:
            Shares minted (equal to preview_deposit(assets) before the call)

        Raises:
            InvalidInputError: If assets is zero or would mint zero shares
            InsufficientBalanceError / InsufficientAllowanceError: If the pull fails
            ExternalCallFailureError: If the yield wrapper aborts
        """
        self._require_positive(assets, "assets")

        with self._operation("deposit"):
            valuation = self._valuation()
            shares = valuation.preview_deposit(assets)
            self._require_nonzero_shares(shares)
            self._pull(self.asset_token, caller, assets)
            self._deposit(caller, receiver, assets, shares)

        return shares

    def mint(self, caller: str, shares: int, receiver: str) -> int:
        """
        Mint exactly `shares` to receiver, charging the rounded-up asset cost.

        Returns:
            Assets charged (equal to preview_mint(shares) before the call)
        """
        self._require_positive(shares, "shares")

        with self._operation("mint"):
            valuation = self._valuation()
            assets = valuation.preview_mint(shares)
            self._require_positive(assets, "assets")
            self._pull(self.asset_token, caller, assets)
            self._deposit(caller, receiver, assets, shares)

        return assets

    # ==================== Withdraw / Redeem ====================

    def withdraw(self, caller: str, assets: int, receiver: str, owner: str) -> int:
        """
        Burn owner's shares and send exactly `assets` base asset to receiver.

        Args:
            caller: Address executing the withdrawal
            assets: Base asset amount to deliver, > 0
            receiver: Address receiving the base asset
            owner: Address whose shares are burned

        Returns:
            Shares burned (equal to preview_withdraw(assets) before the call)

        Raises:
            InsufficientAllowanceError: If caller is not owner and lacks share allowance
            InsufficientSharesError: If owner holds too few shares
            ExternalCallFailureError: If the yield wrapper aborts
        """
        self._require_positive(assets, "assets")

        with self._operation("withdraw"):
            valuation = self._valuation()
            shares = valuation.preview_withdraw(assets)
            self._withdraw(caller, receiver, owner, assets, shares)

        return shares

    def redeem(self, caller: str, shares: int, receiver: str, owner: str) -> int:
        """
        Burn exactly `shares` from owner and send the rounded-down asset value.

        Returns:
            Assets delivered (equal to preview_redeem(shares) before the call)
        """
        self._require_positive(shares, "shares")

        with self._operation("redeem"):
            valuation = self._valuation()
            assets = valuation.preview_redeem(shares)
            if assets == 0:
                raise InvalidInputError("Redemption would return zero assets")
            self._withdraw(caller, receiver, owner, assets, shares)

        return assets

    # ==================== Zap ====================

    def zap_in(
        self,
        caller: str,
        input_token: str,
        amount_in: int,
        min_out: int,
        pool_selector: int | None = None,
        min_shares: int = 0,
        deadline: float | None = None,
    ) -> int:
        """
        Swap a foreign token into the base asset and deposit the proceeds.

        Args:
            caller: Address paying input_token and receiving the shares
            input_token: Token to sell; must not be the base asset
            amount_in: Amount of input_token, > 0
            min_out: Minimum base asset the swap must realize
            pool_selector: Router fee tier (defaults to configuration)
            min_shares: Minimum shares the deposit must mint (0 disables)
            deadline: Swap deadline timestamp (defaults to now + configured window)

        Returns:
            Shares minted

        Raises:
            InvalidInputError: If input_token is the base asset or amount_in is zero
            SlippageExceededError: If the swap realizes less than min_out or the
                deposit mints fewer than min_shares
            ExternalCallFailureError: If the router aborts for any other reason
        """
        if input_token.lower() == self.asset:
            raise InvalidInputError(
                f"Use deposit() for {self.asset_token.symbol}",
                details={"input_token": input_token},
            )
        self._require_positive(amount_in, "amount_in")
        if min_out < 0 or min_shares < 0:
            raise InvalidInputError("Minimums cannot be negative")

        token_in = self.tokens.get_token(input_token)
        if token_in is None:
            raise InvalidInputError(f"Unknown input token {input_token}")

        fee = self.default_fee_tier if pool_selector is None else pool_selector

        with self._operation("zap_in", token_in):
            valuation = self._valuation()

            self._pull(token_in, caller, amount_in)
            self._approve(token_in, self.router.address, amount_in)

            params = ExactInputSingleParams(
                token_in=token_in.address,
                token_out=self.asset,
                fee=fee,
                recipient=self.address,
                deadline=deadline if deadline is not None else self.clock() + self.swap_deadline_seconds,
                amount_in=amount_in,
                amount_out_minimum=min_out,
                sqrt_price_limit_x96=0,
            )
            balance_before = self.asset_token.balance_of(self.address)
            with self._external_call("router.exact_input_single"):
                amount_out = self.router.exact_input_single(self.address, params)
            received = self.asset_token.balance_of(self.address) - balance_before
            if received < amount_out:
                raise ExternalCallFailureError(
                    "Router reported more output than it delivered",
                    target=self.router.address,
                    details={"reported": amount_out, "received": received},
                )

            shares = valuation.preview_deposit(amount_out)
            self._require_nonzero_shares(shares)
            if shares < min_shares:
                raise SlippageExceededError(
                    "Zap minted fewer shares than requested",
                    amount_out=shares,
                    minimum=min_shares,
                )
            self._deposit(caller, caller, amount_out, shares)

            logger.info(
                "Zap executed",
                extra={
                    "event": "vault.zap_in",
                    "vault": self.address[:10],
                    "caller": caller[:10],
                    "token_in": token_in.symbol,
                    "amount_in": amount_in,
                    "amount_out": amount_out,
                    "fee": fee,
                    "shares": shares,
                }
            )

        return shares

    # ==================== Internal Sequencing ====================

    def _deposit(self, caller: str, receiver: str, assets: int, shares: int) -> None:
        """Stake assets already held by the vault, then credit shares."""
        self._approve(self.asset_token, self.bar.address, assets)
        with self._external_call("bar.enter"):
            self.bar.enter(self.address, assets)

        self.shares.mint_shares(receiver, shares)
        self._emit("Deposit", caller, receiver, receiver, assets, shares)

        logger.info(
            "Vault deposit",
            extra={
                "event": "vault.deposit",
                "vault": self.address[:10],
                "caller": caller[:10],
                "receiver": receiver[:10],
                "assets": assets,
                "shares": shares,
                "total_supply": self.shares.total_supply,
            }
        )

    def _withdraw(self, caller: str, receiver: str, owner: str, assets: int, shares: int) -> None:
        """Burn shares first, then unstake and pay out."""
        if caller.lower() != owner.lower():
            self.shares.spend_allowance(owner, caller, shares)
        self.shares.burn_shares(owner, shares)

        self._unstake(assets, exit_all=self.shares.total_supply == 0)
        self._push(self.asset_token, receiver, assets)
        self._emit("Withdraw", caller, receiver, owner, assets, shares)

        logger.info(
            "Vault withdraw",
            extra={
                "event": "vault.withdraw",
                "vault": self.address[:10],
                "caller": caller[:10],
                "receiver": receiver[:10],
                "owner": owner[:10],
                "assets": assets,
                "shares": shares,
                "total_supply": self.shares.total_supply,
            }
        )

    def _unstake(self, assets: int, exit_all: bool = False) -> None:
        """
        Make sure the vault holds `assets` of idle base asset.

        When the last share has been burned the whole wrapped balance is
        released; rounding dust left over stays idle in the vault.
        """
        if exit_all:
            wrapped_needed = self.bar.wrapped.balance_of(self.address)
            if wrapped_needed == 0:
                return
        else:
            idle = self.asset_token.balance_of(self.address)
            if idle >= assets:
                return
            wrapped_needed = self.bar.to_wrapped(assets - idle, Rounding.UP)
        with self._external_call("bar.leave"):
            self.bar.leave(self.address, wrapped_needed)

    def _total_assets(self) -> int:
        wrapped_held = self.bar.wrapped.balance_of(self.address)
        idle = self.asset_token.balance_of(self.address)
        return self.bar.to_underlying(wrapped_held, Rounding.DOWN) + idle

    def _valuation(self) -> Valuation:
        return Valuation(total_assets=self._total_assets(), total_shares=self.shares.total_supply)

    def _view(self) -> Valuation:
        self._require_not_locked()
        return self._valuation()

    # ==================== Token Movement ====================

    def _pull(self, token: ILedger, owner: str, amount: int) -> None:
        if not token.transfer_from(self.address, owner, self.address, amount):
            raise ExternalCallFailureError(f"{token.symbol} transferFrom returned false", target=token.address)

    def _push(self, token: ILedger, to: str, amount: int) -> None:
        if not token.transfer(self.address, to, amount):
            raise ExternalCallFailureError(f"{token.symbol} transfer returned false", target=token.address)

    def _approve(self, token: ILedger, spender: str, amount: int) -> None:
        if not token.approve(self.address, spender, amount):
            raise ExternalCallFailureError(f"{token.symbol} approve returned false", target=token.address)

    # ==================== Atomicity ====================

    @contextmanager
    def _operation(self, name: str, *extra: Any) -> Iterator[None]:
        """Run a public operation under the vault lock, reverting everything on failure."""
        self._require_not_locked()

        saved = self._snapshot(extra)
        self._locked = True
        try:
            yield
        except Exception as exc:
            self._restore(saved)
            logger.warning(
                "Vault operation reverted",
                extra={"event": f"vault.{name}.reverted", "vault": self.address[:10], **get_error_context(exc)},
            )
            raise
        finally:
            self._locked = False

    @contextmanager
    def _external_call(self, target: str) -> Iterator[None]:
        """Surface collaborator aborts as ExternalCallFailureError."""
        try:
            yield
        except (SlippageExceededError, ReentrancyError, ExternalCallFailureError):
            raise
        except (VMExecutionError, ArithmeticError) as exc:
            raise ExternalCallFailureError(f"{target} failed: {exc}", target=target) from exc

    def _participants(self, extra: tuple) -> list[ISnapshottable]:
        seen: set[int] = set()
        participants = []
        for item in (self.shares, self.asset_token, self.bar, self.router, *extra):
            if id(item) in seen:
                continue
            seen.add(id(item))
            if isinstance(item, ISnapshottable):
                participants.append(item)
            else:
                logger.debug(
                    "Participant cannot be snapshotted",
                    extra={"event": "vault.snapshot_skipped", "participant": type(item).__name__},
                )
        return participants

    def _snapshot(self, extra: tuple) -> list[tuple[ISnapshottable, Dict[str, Any]]]:
        saved = [(p, p.snapshot()) for p in self._participants(extra)]
        saved.append((self, {"events": len(self.events)}))
        return saved

    def _restore(self, saved: list[tuple[Any, Dict[str, Any]]]) -> None:
        for participant, state in reversed(saved):
            if participant is self:
                del self.events[state["events"]:]
            else:
                participant.restore(state)

    # ==================== Helpers ====================

    def _emit(self, event_type: str, sender: str, receiver: str, owner: str, assets: int, shares: int) -> None:
        self.events.append(
            VaultEvent(
                event_type=event_type,
                sender=sender.lower(),
                receiver=receiver.lower(),
                owner=owner.lower(),
                assets=assets,
                shares=shares,
            )
        )

    def _require_positive(self, amount: int, what: str) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise InvalidInputError(f"{what} must be an integer")
        if amount <= 0:
            raise InvalidInputError(f"{what} must be positive", details={what: amount})

    def _require_nonzero_shares(self, shares: int) -> None:
        if shares == 0:
            raise InvalidInputError("Deposit would mint zero shares")

    def _require_not_locked(self) -> None:
        if self._locked:
            raise ReentrancyError("ZapVault: operation already in flight")

    def check_invariants(self) -> None:
        """Verify share accounting is internally consistent."""
        self.shares.check_invariants()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize a summary of vault state."""
        return {
            "address": self.address,
            "name": self.name,
            "symbol": self.symbol,
            "asset": self.asset,
            "wrapped": self.bar.wrapped.address,
            "total_assets": self.total_assets(),
            "total_supply": self.total_supply,
            "price_per_share": self.price_per_share(),
            "holders": {h: b for h, b in self.shares.balances.items() if b},
        }
