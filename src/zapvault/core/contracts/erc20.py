"""
ERC20 Token Standard Implementation.

In-memory fungible-token ledger compatible with EIP-20 semantics:
- Basic token operations (transfer, approve, transferFrom)
- Owner minting and holder burning
- Metadata (name, symbol, decimals)
- Events (Transfer, Approval)
- Snapshot/restore so a failed multi-contract operation can be reverted

Security features:
- uint256 range checks on every amount
- Zero address checks on recipients and spenders
- Balance underflow prevention
- Infinite (uint256 max) allowances are never decremented
"""

from __future__ import annotations

import copy
import hashlib
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict

from ..vm.exceptions import (
    InsufficientAllowanceError,
    InsufficientBalanceError,
    InvalidInputError,
    VMExecutionError,
)

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x" + "0" * 40

_deploy_nonce = itertools.count(1)


def derive_address(*parts: Any) -> str:
    """Derive a contract address from deployment parameters and a nonce."""
    seed = ":".join(str(p) for p in parts) + f":{next(_deploy_nonce)}"
    digest = hashlib.sha3_256(seed.encode()).digest()
    return f"0x{digest[-20:].hex()}"


@dataclass
class TokenEvent:
    """Represents an ERC20 event."""

    event_type: str  # "Transfer" or "Approval"
    from_address: str
    to_address: str
    value: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class ERC20Token:
    """
    ERC20 token ledger.

    All balances and allowances are held in memory. The owner may mint;
    any holder may burn its own balance.
    """

    # Token metadata
    name: str
    symbol: str
    decimals: int = 18
    total_supply: int = 0

    # Contract address
    address: str = ""

    # Owner (for minting permissions)
    owner: str = ""

    # State
    balances: dict[str, int] = field(default_factory=dict)
    allowances: dict[str, dict[str, int]] = field(default_factory=dict)

    # Event log
    events: list[TokenEvent] = field(default_factory=list)

    # Constants
    UINT256_MAX: int = 2**256 - 1

    def __post_init__(self) -> None:
        if not self.address:
            self.address = derive_address("erc20", self.name, self.symbol)
        self.address = self._normalize(self.address)
        self.owner = self._normalize(self.owner)

    # ==================== View Functions ====================

    def balance_of(self, account: str) -> int:
        """Get the token balance of an account."""
        return self.balances.get(self._normalize(account), 0)

    def allowance(self, owner: str, spender: str) -> int:
        """Get the allowance granted by owner to spender."""
        owner_norm = self._normalize(owner)
        spender_norm = self._normalize(spender)
        return self.allowances.get(owner_norm, {}).get(spender_norm, 0)

    # ==================== State-Changing Functions ====================

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """
        Transfer tokens from sender to recipient.

        Args:
            sender: Address sending tokens (msg.sender)
            recipient: Address receiving tokens
            amount: Amount to transfer

        Returns:
            True if successful

        Raises:
            InsufficientBalanceError: If sender balance is too small
            InvalidInputError: If recipient or amount is invalid
        """
        sender_norm = self._normalize(sender)
        recipient_norm = self._normalize(recipient)

        self._validate_address(recipient_norm, "recipient")
        self._validate_amount(amount)

        self._move(sender_norm, recipient_norm, amount)

        logger.debug(
            "ERC20 transfer",
            extra={
                "event": "erc20.transfer",
                "token": self.symbol,
                "from": sender_norm[:10],
                "to": recipient_norm[:10],
                "amount": amount,
            }
        )

        return True

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        """
        Approve spender to spend tokens on behalf of owner.

        Args:
            owner: Token owner (msg.sender)
            spender: Address being approved
            amount: Amount to approve

        Returns:
            True if successful
        """
        owner_norm = self._normalize(owner)
        spender_norm = self._normalize(spender)

        self._validate_address(spender_norm, "spender")
        self._validate_amount(amount)

        self.allowances.setdefault(owner_norm, {})[spender_norm] = amount
        self._emit_approval(owner_norm, spender_norm, amount)

        return True

    def transfer_from(
        self, spender: str, from_addr: str, to_addr: str, amount: int
    ) -> bool:
        """
        Transfer tokens using an allowance.

        Args:
            spender: Address executing transfer (msg.sender)
            from_addr: Token owner
            to_addr: Recipient
            amount: Amount to transfer

        Returns:
            True if successful

        Raises:
            InsufficientAllowanceError: If spender is not approved for amount
            InsufficientBalanceError: If owner balance is too small
        """
        spender_norm = self._normalize(spender)
        from_norm = self._normalize(from_addr)
        to_norm = self._normalize(to_addr)

        self._validate_address(to_norm, "recipient")
        self._validate_amount(amount)

        self._require_allowance(from_norm, spender_norm, amount)
        self._require_balance(from_norm, amount)
        self.spend_allowance(from_norm, spender_norm, amount)
        self._move(from_norm, to_norm, amount)

        return True

    def increase_allowance(self, owner: str, spender: str, added_value: int) -> bool:
        """Increase spender's allowance, saturating at uint256 max."""
        new_allowance = min(self.allowance(owner, spender) + added_value, self.UINT256_MAX)
        return self.approve(owner, spender, new_allowance)

    def decrease_allowance(self, owner: str, spender: str, subtracted_value: int) -> bool:
        """
        Decrease spender's allowance.

        Raises:
            InsufficientAllowanceError: If decrease exceeds current allowance
        """
        current = self.allowance(owner, spender)
        if subtracted_value > current:
            raise InsufficientAllowanceError(
                f"{self.symbol}: decreased allowance below zero"
            )
        return self.approve(owner, spender, current - subtracted_value)

    def spend_allowance(self, owner: str, spender: str, amount: int) -> None:
        """
        Consume `amount` of spender's allowance over owner.

        An infinite allowance is left untouched.

        Raises:
            InsufficientAllowanceError: If allowance is smaller than amount
        """
        owner_norm = self._normalize(owner)
        spender_norm = self._normalize(spender)
        current_allowance = self._require_allowance(owner_norm, spender_norm, amount)
        if current_allowance != self.UINT256_MAX:
            self.allowances[owner_norm][spender_norm] = current_allowance - amount

    # ==================== Minting & Burning ====================

    def mint(self, minter: str, to: str, amount: int) -> bool:
        """
        Mint new tokens (owner only).

        Raises:
            VMExecutionError: If caller is not the owner
        """
        self._require_owner(minter)
        self._mint(self._normalize(to), amount)
        return True

    def burn(self, holder: str, amount: int) -> bool:
        """Burn tokens from holder's own balance."""
        self._burn(self._normalize(holder), amount)
        return True

    def burn_from(self, spender: str, from_addr: str, amount: int) -> bool:
        """Burn tokens from a holder using spender's allowance."""
        self._validate_amount(amount)
        self._require_allowance(from_addr, spender, amount)
        self._require_balance(self._normalize(from_addr), amount)
        self.spend_allowance(from_addr, spender, amount)
        self._burn(self._normalize(from_addr), amount)
        return True

    def _mint(self, to: str, amount: int) -> None:
        self._validate_address(to, "recipient")
        self._validate_amount(amount)

        if self.total_supply + amount > self.UINT256_MAX:
            raise VMExecutionError(f"{self.symbol}: total supply overflow")

        self.total_supply += amount
        self.balances[to] = self.balances.get(to, 0) + amount
        self._emit_transfer(ZERO_ADDRESS, to, amount)

        logger.debug(
            "ERC20 mint",
            extra={
                "event": "erc20.mint",
                "token": self.symbol,
                "to": to[:10],
                "amount": amount,
                "new_supply": self.total_supply,
            }
        )

    def _burn(self, holder: str, amount: int) -> None:
        self._validate_amount(amount)

        balance = self.balances.get(holder, 0)
        if balance < amount:
            raise InsufficientBalanceError(
                f"{self.symbol}: burn amount exceeds balance ({amount} > {balance})",
                details={"holder": holder},
            )

        self.balances[holder] = balance - amount
        self.total_supply -= amount
        self._emit_transfer(holder, ZERO_ADDRESS, amount)

        logger.debug(
            "ERC20 burn",
            extra={
                "event": "erc20.burn",
                "token": self.symbol,
                "from": holder[:10],
                "amount": amount,
                "new_supply": self.total_supply,
            }
        )

    # ==================== Snapshot / Restore ====================

    def snapshot(self) -> Dict[str, Any]:
        """Capture mutable state so a reverted operation can restore it."""
        return {
            "total_supply": self.total_supply,
            "balances": dict(self.balances),
            "allowances": copy.deepcopy(self.allowances),
            "events": len(self.events),
        }

    def restore(self, state: Dict[str, Any]) -> None:
        """Restore state captured by snapshot()."""
        self.total_supply = state["total_supply"]
        self.balances = dict(state["balances"])
        self.allowances = copy.deepcopy(state["allowances"])
        del self.events[state["events"]:]

    # ==================== Helpers ====================

    def _require_allowance(self, owner: str, spender: str, amount: int) -> int:
        current_allowance = self.allowance(owner, spender)
        if current_allowance < amount:
            raise InsufficientAllowanceError(
                f"{self.symbol}: insufficient allowance ({current_allowance} < {amount})",
                details={"owner": self._normalize(owner), "spender": self._normalize(spender)},
            )
        return current_allowance

    def _require_balance(self, holder: str, amount: int) -> int:
        balance = self.balances.get(holder, 0)
        if balance < amount:
            raise InsufficientBalanceError(
                f"{self.symbol}: transfer amount exceeds balance ({amount} > {balance})",
                details={"holder": holder},
            )
        return balance

    def _move(self, from_norm: str, to_norm: str, amount: int) -> None:
        from_balance = self._require_balance(from_norm, amount)
        self.balances[from_norm] = from_balance - amount
        self.balances[to_norm] = self.balances.get(to_norm, 0) + amount
        self._emit_transfer(from_norm, to_norm, amount)

    def _normalize(self, address: str) -> str:
        """Normalize address to lowercase."""
        return address.lower()

    def _validate_address(self, address: str, field: str) -> None:
        """Validate address is not zero."""
        if address == ZERO_ADDRESS or not address:
            raise InvalidInputError(f"{self.symbol}: {field} is zero address")

    def _validate_amount(self, amount: int) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise InvalidInputError(f"{self.symbol}: amount must be an integer")
        if amount < 0:
            raise InvalidInputError(f"{self.symbol}: amount cannot be negative")
        if amount > self.UINT256_MAX:
            raise InvalidInputError(f"{self.symbol}: amount exceeds uint256")

    def _require_owner(self, caller: str) -> None:
        if self._normalize(caller) != self.owner:
            raise VMExecutionError(f"{self.symbol}: caller is not owner")

    def _emit_transfer(self, from_addr: str, to_addr: str, amount: int) -> None:
        self.events.append(
            TokenEvent(
                event_type="Transfer",
                from_address=from_addr,
                to_address=to_addr,
                value=amount,
            )
        )

    def _emit_approval(self, owner: str, spender: str, amount: int) -> None:
        self.events.append(
            TokenEvent(
                event_type="Approval",
                from_address=owner,
                to_address=spender,
                value=amount,
            )
        )

    # ==================== Serialization ====================

    def to_dict(self) -> Dict[str, Any]:
        """Serialize token state to dictionary."""
        return {
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "total_supply": self.total_supply,
            "address": self.address,
            "owner": self.owner,
            "balances": dict(self.balances),
            "allowances": {k: dict(v) for k, v in self.allowances.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ERC20Token":
        """Deserialize token state from dictionary."""
        token = cls(
            name=data["name"],
            symbol=data["symbol"],
            decimals=data.get("decimals", 18),
            total_supply=data.get("total_supply", 0),
            address=data.get("address", ""),
            owner=data.get("owner", ""),
        )
        token.balances = dict(data.get("balances", {}))
        token.allowances = {
            k: dict(v) for k, v in data.get("allowances", {}).items()
        }
        return token


class ERC20Factory:
    """
    Factory and registry for ERC20 tokens.

    Deploys tokens with consistent initialization and resolves a token
    address back to its ledger, which is how the vault reaches an arbitrary
    zap input token.
    """

    def __init__(self) -> None:
        self.deployed_tokens: dict[str, ERC20Token] = {}

    def create_token(
        self,
        creator: str,
        name: str,
        symbol: str,
        decimals: int = 18,
        initial_supply: int = 0,
        mint_to: str | None = None,
    ) -> ERC20Token:
        """
        Create a new ERC20 token.

        Args:
            creator: Address creating the token (becomes owner)
            name: Token name
            symbol: Token symbol (ticker)
            decimals: Decimal places (default 18)
            initial_supply: Initial supply to mint
            mint_to: Address to mint initial supply to (defaults to creator)

        Returns:
            Deployed ERC20Token instance

        Raises:
            InvalidInputError: If parameters are invalid
        """
        if not name:
            raise InvalidInputError("ERC20Factory: name cannot be empty")
        if not symbol:
            raise InvalidInputError("ERC20Factory: symbol cannot be empty")
        if decimals < 0 or decimals > 18:
            raise InvalidInputError("ERC20Factory: invalid decimals")
        if initial_supply < 0:
            raise InvalidInputError("ERC20Factory: invalid initial supply")

        token = ERC20Token(
            name=name,
            symbol=symbol,
            decimals=decimals,
            owner=creator,
        )

        if initial_supply > 0:
            token.mint(creator, mint_to or creator, initial_supply)

        self.register(token)

        logger.info(
            "ERC20 token created",
            extra={
                "event": "erc20.created",
                "address": token.address,
                "symbol": symbol,
                "initial_supply": initial_supply,
                "creator": creator[:10],
            }
        )

        return token

    def register(self, token: ERC20Token) -> ERC20Token:
        """Register an externally constructed token."""
        self.deployed_tokens[token.address.lower()] = token
        return token

    def get_token(self, address: str) -> ERC20Token | None:
        """Get a deployed token by address."""
        return self.deployed_tokens.get(address.lower())

    def list_tokens(self) -> list[Dict[str, Any]]:
        """List all deployed tokens."""
        return [
            {
                "address": address,
                "name": token.name,
                "symbol": token.symbol,
                "decimals": token.decimals,
                "total_supply": token.total_supply,
            }
            for address, token in self.deployed_tokens.items()
        ]
