"""
Tests for the vault share ledger.
"""
import pytest

from zapvault.core.defi.share_ledger import ShareLedger
from zapvault.core.vm.exceptions import (
    InsufficientAllowanceError,
    InsufficientBalanceError,
    InsufficientSharesError,
    InvalidInputError,
    InvariantViolationError,
)


@pytest.fixture
def ledger():
    ledger = ShareLedger(name="Vault Shares", symbol="vSH", owner="0xVault", address="0xVault")
    ledger.mint_shares("0xAlice", 100)
    return ledger


def test_mint_and_burn_track_supply(ledger):
    ledger.mint_shares("0xBob", 50)
    ledger.burn_shares("0xAlice", 30)
    assert ledger.total_supply == 120
    assert ledger.balance_of("0xAlice") == 70
    ledger.check_invariants()


def test_burn_more_than_held_raises_insufficient_shares(ledger):
    with pytest.raises(InsufficientSharesError):
        ledger.burn_shares("0xAlice", 101)
    assert ledger.total_supply == 100


def test_insufficient_shares_is_a_balance_error(ledger):
    with pytest.raises(InsufficientBalanceError):
        ledger.transfer("0xAlice", "0xBob", 101)


def test_transfer_of_shares(ledger):
    ledger.transfer("0xAlice", "0xBob", 40)
    assert ledger.balance_of("0xBob") == 40
    ledger.check_invariants()


def test_spend_allowance_counts_shares(ledger):
    ledger.approve("0xAlice", "0xBob", 25)
    ledger.spend_allowance("0xAlice", "0xBob", 20)
    assert ledger.allowance("0xAlice", "0xBob") == 5
    with pytest.raises(InsufficientAllowanceError):
        ledger.spend_allowance("0xAlice", "0xBob", 6)


def test_infinite_share_allowance_is_exempt(ledger):
    ledger.approve("0xAlice", "0xBob", ledger.UINT256_MAX)
    ledger.spend_allowance("0xAlice", "0xBob", 99)
    assert ledger.allowance("0xAlice", "0xBob") == ledger.UINT256_MAX


def test_check_invariants_detects_corruption(ledger):
    ledger.balances["0xghost"] = 1
    with pytest.raises(InvariantViolationError):
        ledger.check_invariants()


def test_public_burn_is_refused(ledger):
    with pytest.raises(InvalidInputError):
        ledger.burn("0xAlice", 100)
    assert ledger.total_supply == 100
    assert ledger.balance_of("0xAlice") == 100


def test_public_burn_from_is_refused(ledger):
    ledger.approve("0xAlice", "0xBob", 100)
    with pytest.raises(InvalidInputError):
        ledger.burn_from("0xBob", "0xAlice", 100)
    assert ledger.total_supply == 100
    assert ledger.allowance("0xAlice", "0xBob") == 100


def test_public_mint_is_refused_even_for_owner(ledger):
    with pytest.raises(InvalidInputError):
        ledger.mint("0xVault", "0xAlice", 1)
    assert ledger.total_supply == 100
