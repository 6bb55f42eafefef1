"""
Tests for ZapVault execution discipline.

Covers:
- Re-entry from a collaborator callback is refused
- Views refuse to answer mid-operation (read-only reentrancy)
- Failed operations restore every participant and release the lock
- Reverted operations are logged with error context
"""
import logging

import pytest

from zapvault.core.vm.exceptions import ReentrancyError


class TestReentrancy:
    def test_reentrant_deposit_aborts_outer_operation(self, vault, sushi, bar, alice, bob):
        sushi.approve(bob, vault.address, 5)
        bar.on_enter = lambda: vault.deposit(bob, 5, bob)
        sushi.approve(alice, vault.address, 10)
        alice_before = sushi.balance_of(alice)

        with pytest.raises(ReentrancyError):
            vault.deposit(alice, 10, alice)

        assert sushi.balance_of(alice) == alice_before
        assert vault.total_supply == 0
        assert vault.events == []
        assert vault._locked is False

    def test_swallowed_reentry_is_still_refused(self, vault, sushi, bar, alice, deposit):
        deposit(vault, alice, 50)
        seen = []

        def _try_withdraw():
            try:
                vault.withdraw(alice, 10, alice, alice)
            except ReentrancyError as exc:
                seen.append(exc)

        bar.on_enter = _try_withdraw
        deposit(vault, alice, 10)

        assert len(seen) == 1
        assert vault.balance_of(alice) == 60
        assert vault.total_assets() == 60

    @pytest.mark.parametrize("view", [
        lambda v: v.total_assets(),
        lambda v: v.preview_deposit(1),
        lambda v: v.preview_withdraw(1),
        lambda v: v.convert_to_assets(1),
        lambda v: v.price_per_share(),
    ])
    def test_views_refuse_mid_operation(self, vault, bar, alice, deposit, view):
        deposit(vault, alice, 50)
        seen = []

        def _peek():
            try:
                view(vault)
            except ReentrancyError as exc:
                seen.append(exc)

        bar.on_leave = _peek
        vault.withdraw(alice, 10, alice, alice)

        assert len(seen) == 1

    def test_share_transfer_during_withdraw_refused(self, vault, bar, alice, bob, deposit):
        deposit(vault, alice, 50)
        bar.on_leave = lambda: vault.transfer(alice, bob, 40)

        with pytest.raises(ReentrancyError):
            vault.withdraw(alice, 10, alice, alice)

        assert vault.balance_of(alice) == 50
        assert vault.balance_of(bob) == 0


class TestRollback:
    def test_non_contract_errors_propagate_unchanged(self, vault, sushi, bar, alice):
        def _boom():
            raise RuntimeError("wrapper crashed")

        bar.on_enter = _boom
        sushi.approve(alice, vault.address, 10)

        with pytest.raises(RuntimeError, match="wrapper crashed"):
            vault.deposit(alice, 10, alice)

        assert sushi.allowance(alice, vault.address) == 10
        assert vault.total_supply == 0

    def test_lock_released_after_failure(self, vault, sushi, alice, deposit):
        with pytest.raises(Exception):
            vault.deposit(alice, 10, alice)
        assert deposit(vault, alice, 10) == 10

    def test_revert_is_logged(self, vault, alice, caplog):
        with caplog.at_level(logging.WARNING, logger="zapvault"):
            with pytest.raises(Exception):
                vault.deposit(alice, 10, alice)

        records = [r for r in caplog.records if getattr(r, "event", None) == "vault.deposit.reverted"]
        assert len(records) == 1
        assert records[0].error_type == "InsufficientAllowanceError"

    def test_invariants_hold_after_mixed_failures(self, vault, sushi, bar, alice, bob, lp, deposit):
        deposit(vault, alice, 100)
        bar.accrue_yield(lp, 3)
        deposit(vault, bob, 17)
        with pytest.raises(Exception):
            vault.withdraw(bob, 10_000, bob, bob)
        vault.check_invariants()
        assert vault.to_dict()["total_supply"] == vault.total_supply
