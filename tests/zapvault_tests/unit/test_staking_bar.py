"""
Tests for the StakingBar yield wrapper.

Covers:
- 1:1 entry into an empty bar
- Exchange rate growth from accrued yield
- Floor rounding on enter and leave
- Approval requirement and reentrancy guard
"""
import pytest

from zapvault.core.defi.safe_math import Rounding
from zapvault.core.vm.exceptions import (
    InsufficientAllowanceError,
    InsufficientBalanceError,
    InvalidInputError,
    ReentrancyError,
)


def _enter(bar, user, amount):
    bar.base.approve(user, bar.address, amount)
    return bar.enter(user, amount)


class TestEnterLeave:
    def test_first_entry_is_one_to_one(self, bar, alice):
        assert _enter(bar, alice, 100) == 100
        assert bar.wrapped.balance_of(alice) == 100
        assert bar.total_underlying() == 100

    def test_yield_raises_rate_for_later_entrants(self, bar, sushi, alice, bob, lp):
        _enter(bar, alice, 100)
        bar.accrue_yield(lp, 50)

        assert bar.to_underlying(100) == 150
        assert _enter(bar, bob, 30) == 20  # 30 * 100 / 150

    def test_leave_returns_proportional_base(self, bar, sushi, alice, bob, lp):
        _enter(bar, alice, 100)
        bar.accrue_yield(lp, 50)
        _enter(bar, bob, 30)

        before = sushi.balance_of(alice)
        released = bar.leave(alice, 100)

        assert released == 150  # 100 * 180 / 120
        assert sushi.balance_of(alice) - before == 150
        assert bar.wrapped.total_supply == 20

    def test_to_wrapped_rounding(self, bar, alice, lp):
        _enter(bar, alice, 2)
        bar.accrue_yield(lp, 1)
        assert bar.to_wrapped(1, Rounding.DOWN) == 0
        assert bar.to_wrapped(1, Rounding.UP) == 1

    def test_entry_too_small_to_mint_rejected(self, bar, alice, bob, lp):
        _enter(bar, alice, 1)
        bar.accrue_yield(lp, 1_000)
        with pytest.raises(InvalidInputError):
            _enter(bar, bob, 1)

    def test_enter_without_approval_fails_cleanly(self, bar, alice):
        with pytest.raises(InsufficientAllowanceError):
            bar.enter(alice, 10)
        assert bar.wrapped.total_supply == 0
        assert bar._locked is False

    def test_leave_more_than_held_fails(self, bar, alice):
        _enter(bar, alice, 10)
        with pytest.raises(InsufficientBalanceError):
            bar.leave(alice, 11)

    @pytest.mark.parametrize("amount", [0, -5])
    def test_non_positive_amounts_rejected(self, bar, alice, amount):
        with pytest.raises(InvalidInputError):
            bar.enter(alice, amount)
        with pytest.raises(InvalidInputError):
            bar.leave(alice, amount)


class TestGuards:
    def test_reentrant_enter_blocked(self, bar, alice):
        bar._locked = True
        with pytest.raises(ReentrancyError):
            bar.enter(alice, 1)

    def test_snapshot_restore(self, bar, alice):
        state = bar.snapshot()
        _enter(bar, alice, 10)
        bar.restore(state)
        assert bar.wrapped.total_supply == 0
        assert bar.wrapped.balance_of(alice) == 0

    def test_wrapped_token_metadata(self, bar):
        assert bar.wrapped.symbol == "xSUSHI"
        assert bar.wrapped.owner == bar.address
