"""
Swap Router - Single-Hop Exact-Input Swaps.

A minimal exchange collaborator for the vault's zap path. Each pool is a
constant-product pair identified by (token_a, token_b, fee) where fee is one
of the Uniswap V3 tiers in hundredths of a basis point:

    100   -> 0.01%
    500   -> 0.05%
    3000  -> 0.30%
    10000 -> 1.00%

Swaps follow the exactInputSingle contract: the router pulls amount_in from
the caller (who must have approved the router), sends the output to the
recipient, and reverts if the output is below amount_out_minimum or the
deadline has passed.

Security features:
- Deadline enforcement
- Minimum-output (slippage) enforcement
- Optional sqrt price limit
- Reentrancy guard
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict

from ..contracts.erc20 import ERC20Factory, ERC20Token, derive_address
from ..vm.exceptions import (
    DeadlineExpiredError,
    InsufficientLiquidityError,
    InvalidInputError,
    PoolNotFoundError,
    ReentrancyError,
    SlippageExceededError,
)
from .safe_math import mul_div

logger = logging.getLogger(__name__)

FEE_DENOMINATOR = 1_000_000
FEE_TIERS = (100, 500, 3000, 10000)


@dataclass(frozen=True)
class ExactInputSingleParams:
    """Parameters for a single-hop exact-input swap."""

    token_in: str
    token_out: str
    fee: int
    recipient: str
    deadline: float
    amount_in: int
    amount_out_minimum: int
    sqrt_price_limit_x96: int = 0


@dataclass
class Pool:
    """Constant-product reserves for one token pair and fee tier."""

    token0: str
    token1: str
    fee: int
    reserve0: int = 0
    reserve1: int = 0

    def reserves_for(self, token_in: str) -> tuple[int, int]:
        """(reserve_in, reserve_out) for a swap that sells token_in."""
        if token_in == self.token0:
            return self.reserve0, self.reserve1
        return self.reserve1, self.reserve0

    def sqrt_price_x96(self) -> int:
        """Current price of token0 in token1 as a Q64.96 square root."""
        return sqrt_price_x96(self.reserve0, self.reserve1)


def sqrt_price_x96(reserve0: int, reserve1: int) -> int:
    if reserve0 == 0:
        return 0
    return math.isqrt((reserve1 << 192) // reserve0)


def pool_key(token_a: str, token_b: str, fee: int) -> tuple[str, str, int]:
    token_a, token_b = token_a.lower(), token_b.lower()
    token0, token1 = (token_a, token_b) if token_a < token_b else (token_b, token_a)
    return token0, token1, fee


def get_amount_out(amount_in: int, reserve_in: int, reserve_out: int, fee: int) -> int:
    """Constant-product output for amount_in after the pool fee, rounded down."""
    amount_in_after_fee = mul_div(amount_in, FEE_DENOMINATOR - fee, FEE_DENOMINATOR)
    return mul_div(amount_in_after_fee, reserve_out, reserve_in + amount_in_after_fee)


@dataclass
class SwapRouter:
    """
    Router over constant-product pools.

    Token addresses are resolved through the shared ERC20Factory registry.
    The router itself custodies every pool's reserves.
    """

    tokens: ERC20Factory
    address: str = ""
    clock: Callable[[], float] = field(default=time.time, repr=False)

    pools: dict[tuple[str, str, int], Pool] = field(default_factory=dict)

    _locked: bool = field(default=False, repr=False)

    def __post_init__(self) -> None:
        if not self.address:
            self.address = derive_address("router")
        self.address = self.address.lower()

    # ==================== Pool Management ====================

    def create_pool(self, token_a: str, token_b: str, fee: int) -> Pool:
        """Register an empty pool for a token pair and fee tier."""
        if fee not in FEE_TIERS:
            raise InvalidInputError(f"Unsupported fee tier: {fee}")
        if token_a.lower() == token_b.lower():
            raise InvalidInputError("Pool tokens must differ")
        self._token(token_a)
        self._token(token_b)

        key = pool_key(token_a, token_b, fee)
        if key in self.pools:
            raise InvalidInputError(f"Pool already exists: {key}")

        pool = Pool(token0=key[0], token1=key[1], fee=fee)
        self.pools[key] = pool

        logger.info(
            "Pool created",
            extra={
                "event": "router.pool_created",
                "token0": key[0][:10],
                "token1": key[1][:10],
                "fee": fee,
            }
        )
        return pool

    def add_liquidity(
        self,
        provider: str,
        token_a: str,
        token_b: str,
        fee: int,
        amount_a: int,
        amount_b: int,
    ) -> Pool:
        """Deposit reserves into a pool (creating it if needed). Provider must approve the router."""
        if amount_a <= 0 or amount_b <= 0:
            raise InvalidInputError("Liquidity amounts must be positive")

        key = pool_key(token_a, token_b, fee)
        pool = self.pools.get(key) or self.create_pool(token_a, token_b, fee)

        self._token(token_a).transfer_from(self.address, provider, self.address, amount_a)
        self._token(token_b).transfer_from(self.address, provider, self.address, amount_b)

        if token_a.lower() == pool.token0:
            pool.reserve0 += amount_a
            pool.reserve1 += amount_b
        else:
            pool.reserve0 += amount_b
            pool.reserve1 += amount_a

        return pool

    def get_pool(self, token_a: str, token_b: str, fee: int) -> Pool:
        pool = self.pools.get(pool_key(token_a, token_b, fee))
        if pool is None:
            raise PoolNotFoundError(
                f"No pool for {token_a[:10]}/{token_b[:10]} at fee {fee}",
                target=self.address,
            )
        return pool

    # ==================== Swaps ====================

    def quote_exact_input(self, token_in: str, token_out: str, fee: int, amount_in: int) -> int:
        """Output a swap of amount_in would realize right now."""
        pool = self.get_pool(token_in, token_out, fee)
        reserve_in, reserve_out = pool.reserves_for(token_in.lower())
        if reserve_in == 0 or reserve_out == 0:
            return 0
        return get_amount_out(amount_in, reserve_in, reserve_out, fee)

    def exact_input_single(self, caller: str, params: ExactInputSingleParams) -> int:
        """
        Swap an exact input amount through one pool.

        Args:
            caller: Address paying token_in (must have approved the router)
            params: Swap parameters

        Returns:
            Realized output amount

        Raises:
            DeadlineExpiredError: If params.deadline has passed
            SlippageExceededError: If output < amount_out_minimum or the
                post-swap price crosses sqrt_price_limit_x96
            PoolNotFoundError / InsufficientLiquidityError: If the pool cannot fill
        """
        self._require_not_locked()

        try:
            self._locked = True

            self._validate_params(params)
            if self.clock() > params.deadline:
                raise DeadlineExpiredError(
                    "Transaction too old",
                    target=self.address,
                    details={"deadline": params.deadline},
                )

            token_in = params.token_in.lower()
            pool = self.get_pool(token_in, params.token_out, params.fee)
            reserve_in, reserve_out = pool.reserves_for(token_in)
            if reserve_in == 0 or reserve_out == 0:
                raise InsufficientLiquidityError("Pool has no liquidity", target=self.address)

            amount_out = get_amount_out(params.amount_in, reserve_in, reserve_out, params.fee)
            if amount_out == 0 or amount_out >= reserve_out:
                raise InsufficientLiquidityError(
                    "Insufficient liquidity for swap",
                    target=self.address,
                    details={"amount_in": params.amount_in, "reserve_out": reserve_out},
                )
            if amount_out < params.amount_out_minimum:
                raise SlippageExceededError(
                    "Too little received",
                    amount_out=amount_out,
                    minimum=params.amount_out_minimum,
                )

            zero_for_one = token_in == pool.token0
            if zero_for_one:
                new_reserve0, new_reserve1 = reserve_in + params.amount_in, reserve_out - amount_out
            else:
                new_reserve0, new_reserve1 = reserve_out - amount_out, reserve_in + params.amount_in
            self._check_price_limit(params.sqrt_price_limit_x96, zero_for_one, new_reserve0, new_reserve1)

            self._token(token_in).transfer_from(self.address, caller, self.address, params.amount_in)
            self._token(params.token_out).transfer(self.address, params.recipient, amount_out)
            pool.reserve0, pool.reserve1 = new_reserve0, new_reserve1

            logger.info(
                "Swap executed",
                extra={
                    "event": "router.swap",
                    "caller": caller[:10],
                    "token_in": token_in[:10],
                    "token_out": params.token_out[:10],
                    "fee": params.fee,
                    "amount_in": params.amount_in,
                    "amount_out": amount_out,
                }
            )

            return amount_out

        finally:
            self._locked = False

    # ==================== Snapshot / Restore ====================

    def snapshot(self) -> Dict[str, Any]:
        return {
            "pools": {key: (p.reserve0, p.reserve1) for key, p in self.pools.items()},
            "locked": self._locked,
        }

    def restore(self, state: Dict[str, Any]) -> None:
        saved = state["pools"]
        for key in list(self.pools):
            if key not in saved:
                del self.pools[key]
        for key, (reserve0, reserve1) in saved.items():
            pool = self.pools[key]
            pool.reserve0, pool.reserve1 = reserve0, reserve1
        self._locked = state["locked"]

    # ==================== Helpers ====================

    def _validate_params(self, params: ExactInputSingleParams) -> None:
        if not params.token_in:
            raise InvalidInputError("Invalid input token")
        if not params.token_out:
            raise InvalidInputError("Invalid output token")
        if params.token_in.lower() == params.token_out.lower():
            raise InvalidInputError("Cannot swap token to itself")
        if params.amount_in <= 0:
            raise InvalidInputError("Swap amount must be positive")
        if params.amount_out_minimum < 0:
            raise InvalidInputError("Minimum output cannot be negative")
        if not params.recipient:
            raise InvalidInputError("Invalid recipient")

    def _check_price_limit(self, limit: int, zero_for_one: bool, reserve0: int, reserve1: int) -> None:
        if limit == 0 or reserve0 == 0:
            return
        new_price = sqrt_price_x96(reserve0, reserve1)
        # Selling token0 pushes the price down; selling token1 pushes it up
        crossed = new_price < limit if zero_for_one else new_price > limit
        if crossed:
            raise SlippageExceededError(
                "Price limit exceeded",
                details={"sqrt_price_x96": new_price, "limit": limit},
            )

    def _token(self, address: str) -> ERC20Token:
        token = self.tokens.get_token(address)
        if token is None:
            raise PoolNotFoundError(f"Unknown token {address[:10]}", target=self.address)
        return token

    def _require_not_locked(self) -> None:
        if self._locked:
            raise ReentrancyError("SwapRouter: reentrant call")
