"""
Scenario simulation for the zap vault.

A scenario is a YAML (or dict) document describing tokens, funded accounts,
swap pools and an ordered list of vault actions:

    asset: {name: Sushi Token, symbol: SUSHI, decimals: 18}
    tokens:
      - {name: Wrapped Ether, symbol: WETH}
    accounts:
      alice: {SUSHI: 1000, WETH: 5}
      lp: {SUSHI: 1000000, WETH: 1000}
    pools:
      - {provider: lp, token_a: WETH, token_b: SUSHI, fee: 3000, amount_a: 1000, amount_b: 1000000}
    steps:
      - {action: deposit, caller: alice, assets: 100}
      - {action: accrue_yield, funder: lp, amount: 10}
      - {action: zap_in, caller: alice, token: WETH, amount_in: 1, min_out: 900}
      - {action: redeem, caller: alice, shares: 50}

Accounts are referred to by name; amounts are integers in base units.
Callers approve the vault for exactly what each step pulls. A step that
reverts is recorded and leaves no trace on vault or token state, including
the approval made on the caller's behalf.
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Dict

import yaml

from .contracts.erc20 import ERC20Factory, ERC20Token, derive_address
from .defi.staking_bar import StakingBar
from .defi.swap_router import SwapRouter
from .defi.vault import ZapVault
from .vm.exceptions import VMExecutionError, get_error_context

logger = logging.getLogger(__name__)

DEPLOYER = "deployer"


class ScenarioError(ValueError):
    """Raised when a scenario document is malformed."""
    pass


@dataclass
class StepResult:
    """Outcome of one scenario step."""

    index: int
    action: str
    ok: bool
    result: int | None = None
    error_type: str | None = None
    error: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class Simulation:
    """In-memory deployment of tokens, bar, router and vault driven by a scenario."""

    ACTIONS = ("deposit", "mint", "withdraw", "redeem", "zap_in", "accrue_yield", "transfer", "approve")

    def __init__(self, scenario: Dict[str, Any], clock: Callable[[], float] = time.time) -> None:
        if not isinstance(scenario, dict):
            raise ScenarioError("Scenario must be a mapping")
        self.scenario = scenario
        self.clock = clock
        self.results: list[StepResult] = []

        self.addresses: Dict[str, str] = {}
        self.factory = ERC20Factory()
        self.symbols: Dict[str, ERC20Token] = {}

        asset_spec = scenario.get("asset") or {"name": "Sushi Token", "symbol": "SUSHI"}
        self.asset = self._create_token(asset_spec)
        for token_spec in scenario.get("tokens") or []:
            self._create_token(token_spec)

        self.bar = StakingBar(base=self.asset)
        self.router = SwapRouter(tokens=self.factory, clock=clock)
        self.vault = ZapVault(
            asset_token=self.asset,
            bar=self.bar,
            router=self.router,
            tokens=self.factory,
            clock=clock,
        )

        self._fund_accounts(scenario.get("accounts") or {})
        self._seed_pools(scenario.get("pools") or [])

    @classmethod
    def from_yaml(cls, path: str | Path, clock: Callable[[], float] = time.time) -> "Simulation":
        with open(path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        return cls(data, clock=clock)

    # ==================== Setup ====================

    def account(self, name: str) -> str:
        """Address for a named account, allocated on first use."""
        if name not in self.addresses:
            self.addresses[name] = derive_address("account", name)
        return self.addresses[name]

    def token(self, symbol: str) -> ERC20Token:
        try:
            return self.symbols[symbol]
        except KeyError:
            raise ScenarioError(f"Unknown token symbol: {symbol}") from None

    def _create_token(self, spec: Dict[str, Any]) -> ERC20Token:
        symbol = spec.get("symbol")
        if symbol in self.symbols:
            raise ScenarioError(f"Duplicate token symbol: {symbol}")
        token = self.factory.create_token(
            creator=self.account(DEPLOYER),
            name=spec.get("name") or symbol,
            symbol=symbol,
            decimals=spec.get("decimals", 18),
        )
        self.symbols[symbol] = token
        return token

    def _fund_accounts(self, accounts: Dict[str, Dict[str, int]]) -> None:
        for name, holdings in accounts.items():
            for symbol, amount in (holdings or {}).items():
                self.token(symbol).mint(self.account(DEPLOYER), self.account(name), amount)

    def _seed_pools(self, pools: list[Dict[str, Any]]) -> None:
        for spec in pools:
            try:
                provider = self.account(spec["provider"])
                token_a = self.token(spec["token_a"])
                token_b = self.token(spec["token_b"])
                amount_a, amount_b = spec["amount_a"], spec["amount_b"]
            except KeyError as exc:
                raise ScenarioError(f"Pool is missing field {exc}") from None
            fee = spec.get("fee", self.vault.default_fee_tier)

            token_a.approve(provider, self.router.address, amount_a)
            token_b.approve(provider, self.router.address, amount_b)
            self.router.add_liquidity(provider, token_a.address, token_b.address, fee, amount_a, amount_b)

    # ==================== Execution ====================

    def run(self, stop_on_error: bool = False) -> list[StepResult]:
        """Execute every step, recording failures instead of raising."""
        for index, step in enumerate(self.scenario.get("steps") or []):
            result = self.run_step(index, step)
            self.results.append(result)
            if not result.ok and stop_on_error:
                break
        return self.results

    def run_step(self, index: int, step: Dict[str, Any]) -> StepResult:
        action = step.get("action")
        if action not in self.ACTIONS:
            raise ScenarioError(f"Step {index}: unknown action {action!r}")

        handler = getattr(self, f"_step_{action}")
        saved = {symbol: token.snapshot() for symbol, token in self.symbols.items()}
        try:
            value = handler(step)
        except KeyError as exc:
            raise ScenarioError(f"Step {index} ({action}) is missing field {exc}") from None
        except VMExecutionError as exc:
            # the vault has already rolled back; this undoes the step's own approvals
            for symbol, state in saved.items():
                self.symbols[symbol].restore(state)
            logger.info(
                "Scenario step reverted",
                extra={"event": "simulation.step_reverted", "step": index, "action": action, **get_error_context(exc)},
            )
            return StepResult(index, action, False, error_type=type(exc).__name__, error=str(exc))

        return StepResult(index, action, True, result=value)

    def _step_deposit(self, step: Dict[str, Any]) -> int:
        caller = self.account(step["caller"])
        assets = step["assets"]
        self.asset.approve(caller, self.vault.address, assets)
        return self.vault.deposit(caller, assets, self.account(step.get("receiver", step["caller"])))

    def _step_mint(self, step: Dict[str, Any]) -> int:
        caller = self.account(step["caller"])
        shares = step["shares"]
        self.asset.approve(caller, self.vault.address, self.vault.preview_mint(shares))
        return self.vault.mint(caller, shares, self.account(step.get("receiver", step["caller"])))

    def _step_withdraw(self, step: Dict[str, Any]) -> int:
        return self.vault.withdraw(
            self.account(step["caller"]),
            step["assets"],
            self.account(step.get("receiver", step["caller"])),
            self.account(step.get("owner", step["caller"])),
        )

    def _step_redeem(self, step: Dict[str, Any]) -> int:
        return self.vault.redeem(
            self.account(step["caller"]),
            step["shares"],
            self.account(step.get("receiver", step["caller"])),
            self.account(step.get("owner", step["caller"])),
        )

    def _step_zap_in(self, step: Dict[str, Any]) -> int:
        caller = self.account(step["caller"])
        token = self.token(step["token"])
        amount_in = step["amount_in"]
        token.approve(caller, self.vault.address, amount_in)
        return self.vault.zap_in(
            caller,
            token.address,
            amount_in,
            step.get("min_out", 0),
            pool_selector=step.get("fee"),
            min_shares=step.get("min_shares", 0),
        )

    def _step_accrue_yield(self, step: Dict[str, Any]) -> int:
        amount = step["amount"]
        self.bar.accrue_yield(self.account(step["funder"]), amount)
        return amount

    def _step_transfer(self, step: Dict[str, Any]) -> int:
        shares = step["shares"]
        self.vault.transfer(self.account(step["sender"]), self.account(step["recipient"]), shares)
        return shares

    def _step_approve(self, step: Dict[str, Any]) -> int:
        shares = step["shares"]
        self.vault.approve(self.account(step["owner"]), self.account(step["spender"]), shares)
        return shares

    # ==================== Reporting ====================

    def holders(self) -> Dict[str, Dict[str, int]]:
        """Share and token balances per named account (deployer excluded)."""
        report = {}
        for name, address in self.addresses.items():
            if name == DEPLOYER:
                continue
            row = {"shares": self.vault.balance_of(address)}
            for symbol, token in self.symbols.items():
                row[symbol] = token.balance_of(address)
            report[name] = row
        return report

    def summary(self) -> Dict[str, Any]:
        names = {address: name for name, address in self.addresses.items()}
        return {
            "vault": {
                "total_assets": self.vault.total_assets(),
                "total_supply": self.vault.total_supply,
                "price_per_share": self.vault.price_per_share(),
            },
            "holders": self.holders(),
            "steps": [r.to_dict() for r in self.results],
            "events": [
                {
                    "type": e.event_type,
                    "sender": names.get(e.sender, e.sender),
                    "receiver": names.get(e.receiver, e.receiver),
                    "owner": names.get(e.owner, e.owner),
                    "assets": e.assets,
                    "shares": e.shares,
                }
                for e in self.vault.events
            ],
        }
