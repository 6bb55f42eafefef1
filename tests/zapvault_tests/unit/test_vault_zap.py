"""
Tests for ZapVault.zap_in (swap a foreign token, deposit the proceeds).
"""
import pytest

from zapvault.core.vm.exceptions import (
    DeadlineExpiredError,
    ExternalCallFailureError,
    InvalidInputError,
    PoolNotFoundError,
    SlippageExceededError,
)

E18 = 10**18


def _approve_zap(token, user, vault, amount):
    token.approve(user, vault.address, amount)


class TestZapGuards:
    def test_base_asset_is_rejected(self, vault, sushi, alice):
        sushi.approve(alice, vault.address, 10)
        balance = sushi.balance_of(alice)

        with pytest.raises(InvalidInputError, match="Use deposit\\(\\) for SUSHI"):
            vault.zap_in(alice, sushi.address, 10, 0)

        assert sushi.balance_of(alice) == balance
        assert sushi.allowance(alice, vault.address) == 10
        assert vault.total_supply == 0
        assert vault.events == []

    def test_base_asset_check_ignores_address_case(self, vault, sushi, alice):
        with pytest.raises(InvalidInputError):
            vault.zap_in(alice, sushi.address.upper().replace("0X", "0x"), 10, 0)

    def test_zero_amount_rejected(self, vault, weth, alice):
        with pytest.raises(InvalidInputError):
            vault.zap_in(alice, weth.address, 0, 0)

    def test_unknown_token_rejected(self, vault, alice):
        with pytest.raises(InvalidInputError):
            vault.zap_in(alice, "0x" + "12" * 20, 10, 0)


class TestZapThroughRouter:
    def test_zap_prices_at_pre_swap_valuation(self, vault, router, weth, sushi, bar, alice, bob, lp, deposit):
        deposit(vault, bob, 100 * E18)
        bar.accrue_yield(lp, 50 * E18)

        quote = router.quote_exact_input(weth.address, sushi.address, 3000, E18)
        expected_shares = vault.preview_deposit(quote)
        _approve_zap(weth, alice, vault, E18)

        shares = vault.zap_in(alice, weth.address, E18, quote)

        assert shares == expected_shares
        assert vault.balance_of(alice) == expected_shares
        assert weth.balance_of(alice) == 9 * E18
        assert vault.total_assets() == 150 * E18 + quote

    def test_zap_emits_single_deposit_event(self, vault, router, weth, sushi, alice):
        quote = router.quote_exact_input(weth.address, sushi.address, 3000, E18)
        _approve_zap(weth, alice, vault, E18)

        shares = vault.zap_in(alice, weth.address, E18, 1)

        assert len(vault.events) == 1
        assert vault.events[0].as_tuple() == (alice, alice, quote, shares)

    def test_router_allowance_fully_consumed(self, vault, router, weth, alice):
        _approve_zap(weth, alice, vault, E18)
        vault.zap_in(alice, weth.address, E18, 0)
        assert weth.allowance(vault.address, router.address) == 0
        assert weth.balance_of(vault.address) == 0

    def test_slippage_aborts_everything(self, vault, router, weth, sushi, alice):
        quote = router.quote_exact_input(weth.address, sushi.address, 3000, E18)
        pool = router.get_pool(weth.address, sushi.address, 3000)
        reserves = (pool.reserve0, pool.reserve1)
        _approve_zap(weth, alice, vault, E18)

        with pytest.raises(SlippageExceededError):
            vault.zap_in(alice, weth.address, E18, quote + 1)

        assert weth.balance_of(alice) == 10 * E18
        assert weth.allowance(alice, vault.address) == E18
        assert weth.allowance(vault.address, router.address) == 0
        assert (pool.reserve0, pool.reserve1) == reserves
        assert vault.total_supply == 0
        assert vault.events == []

    def test_expired_deadline(self, vault, weth, alice, clock):
        _approve_zap(weth, alice, vault, E18)
        with pytest.raises(DeadlineExpiredError):
            vault.zap_in(alice, weth.address, E18, 0, deadline=clock() - 1)
        assert weth.balance_of(alice) == 10 * E18

    def test_default_deadline_is_in_the_future(self, vault, weth, alice):
        _approve_zap(weth, alice, vault, E18)
        assert vault.zap_in(alice, weth.address, E18, 0) > 0

    def test_missing_pool_is_external_failure(self, vault, weth, alice):
        _approve_zap(weth, alice, vault, E18)
        with pytest.raises(ExternalCallFailureError) as excinfo:
            vault.zap_in(alice, weth.address, E18, 0, pool_selector=500)
        assert isinstance(excinfo.value, PoolNotFoundError)
        assert weth.balance_of(alice) == 10 * E18


class TestZapWithFixedOutput:
    """Router realizes a preset amount so vault arithmetic can be checked exactly."""

    def test_output_below_floor_aborts(self, fixed_vault, fixed_router, weth, alice):
        fixed_router.amount_out = 50
        _approve_zap(weth, alice, fixed_vault, 100)

        with pytest.raises(SlippageExceededError):
            fixed_vault.zap_in(alice, weth.address, 100, 60)

        assert weth.balance_of(alice) == 10 * E18
        assert fixed_vault.total_supply == 0
        assert fixed_vault.events == []

    def test_realized_output_is_deposited(self, fixed_vault, fixed_router, weth, lp, alice, bob, deposit):
        deposit(fixed_vault, bob, 100)
        fixed_vault.bar.accrue_yield(lp, 50)
        fixed_router.amount_out = 120

        assert fixed_vault.preview_deposit(120) == 80
        _approve_zap(weth, alice, fixed_vault, 100)

        shares = fixed_vault.zap_in(alice, weth.address, 100, 1)

        # Priced at 150/100, not at the post-swap 270/100
        assert shares == 80
        assert fixed_vault.events[-1].as_tuple() == (alice, alice, 120, 80)
        assert fixed_vault.total_assets() == 270

    def test_swap_parameters(self, fixed_vault, fixed_router, weth, sushi, alice, clock):
        fixed_router.amount_out = 10
        _approve_zap(weth, alice, fixed_vault, 100)

        fixed_vault.zap_in(alice, weth.address, 100, 7)

        params = fixed_router.calls[-1]
        assert params.token_in == weth.address
        assert params.token_out == sushi.address
        assert params.recipient == fixed_vault.address
        assert params.amount_in == 100
        assert params.amount_out_minimum == 7
        assert params.fee == fixed_vault.default_fee_tier
        assert params.deadline == clock() + fixed_vault.swap_deadline_seconds

    def test_min_shares_floor(self, fixed_vault, fixed_router, weth, lp, alice, bob, deposit):
        deposit(fixed_vault, bob, 100)
        fixed_vault.bar.accrue_yield(lp, 50)
        fixed_router.amount_out = 120
        _approve_zap(weth, alice, fixed_vault, 100)

        with pytest.raises(SlippageExceededError) as excinfo:
            fixed_vault.zap_in(alice, weth.address, 100, 1, min_shares=81)

        assert excinfo.value.amount_out == 80
        assert excinfo.value.minimum == 81
        assert weth.balance_of(alice) == 10 * E18
        assert fixed_vault.balance_of(alice) == 0
        assert fixed_router.calls == []

    def test_router_overreporting_output(self, fixed_vault, fixed_router, weth, alice):
        fixed_router.amount_out = 120
        fixed_router.delivered = 100
        _approve_zap(weth, alice, fixed_vault, 100)

        with pytest.raises(ExternalCallFailureError, match="more output than it delivered"):
            fixed_vault.zap_in(alice, weth.address, 100, 1)

        assert weth.balance_of(alice) == 10 * E18
        assert fixed_vault.total_supply == 0
