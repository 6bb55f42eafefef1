"""
Vault share ledger.

Vault shares are an ERC20 token whose supply is controlled by the vault:
shares are minted only on deposit and burned only on withdrawal. Holders
move and delegate shares with the usual ERC20 calls.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..contracts.erc20 import ERC20Token
from ..vm.exceptions import InsufficientSharesError, InvalidInputError, InvariantViolationError

logger = logging.getLogger(__name__)


@dataclass
class ShareLedger(ERC20Token):
    """
    Share balances, total supply and share allowances for one vault.

    The vault is the ledger owner and the only caller of mint_shares and
    burn_shares.
    """

    def mint_shares(self, to: str, amount: int) -> None:
        """Credit `amount` new shares to `to`."""
        self._mint(self._normalize(to), amount)

    def burn_shares(self, holder: str, amount: int) -> None:
        """
        Destroy `amount` shares held by `holder`.

        Raises:
            InsufficientSharesError: If holder has fewer than `amount` shares
        """
        self._burn(self._normalize(holder), amount)

    def mint(self, minter: str, to: str, amount: int) -> bool:
        raise InvalidInputError(f"{self.symbol}: vault shares are minted only by deposit/mint")

    def burn(self, holder: str, amount: int) -> bool:
        raise InvalidInputError(f"{self.symbol}: vault shares are burned only by withdraw/redeem")

    def burn_from(self, spender: str, from_addr: str, amount: int) -> bool:
        raise InvalidInputError(f"{self.symbol}: vault shares are burned only by withdraw/redeem")

    def check_invariants(self) -> None:
        """Verify the sum of holder balances equals total supply."""
        held = sum(self.balances.values())
        if held != self.total_supply:
            raise InvariantViolationError(
                "Share balances do not sum to total supply",
                details={"sum_balances": held, "total_supply": self.total_supply},
            )

    def _require_balance(self, holder: str, amount: int) -> int:
        balance = self.balances.get(holder, 0)
        if balance < amount:
            raise InsufficientSharesError(
                f"{self.symbol}: insufficient shares ({balance} < {amount})",
                details={"holder": holder},
            )
        return balance

    def _burn(self, holder: str, amount: int) -> None:
        self._validate_amount(amount)
        self._require_balance(holder, amount)
        super()._burn(holder, amount)
