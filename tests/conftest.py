"""
Test configuration and fixtures
"""
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict

# Add project root and src to Python path
project_root = Path(__file__).parent.parent
src_path = project_root / "src"

sys.path.insert(0, str(project_root))
sys.path.insert(0, str(src_path))

import pytest

from zapvault.core.contracts.erc20 import ERC20Factory, ERC20Token
from zapvault.core.defi.staking_bar import StakingBar
from zapvault.core.defi.swap_router import ExactInputSingleParams, SwapRouter
from zapvault.core.defi.vault import ZapVault
from zapvault.core.vm.exceptions import SlippageExceededError

E18 = 10**18

DEPLOYER = "0xdeployer"
LP = "0xliquidity"
ALICE = "0xalice"
BOB = "0xbob"
CAROL = "0xcarol"


class FakeClock:
    """Settable clock for deadline tests."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class FixedOutputRouter:
    """Router double that realizes a preset output regardless of pool state."""

    tokens: ERC20Factory
    amount_out: int
    address: str = "0xfixedrouter"
    delivered: int | None = None  # deliver less than reported when set
    calls: list[ExactInputSingleParams] = field(default_factory=list)

    def exact_input_single(self, caller: str, params: ExactInputSingleParams) -> int:
        self.calls.append(params)
        if self.amount_out < params.amount_out_minimum:
            raise SlippageExceededError(
                "Too little received",
                amount_out=self.amount_out,
                minimum=params.amount_out_minimum,
            )
        token_in = self.tokens.get_token(params.token_in)
        token_out = self.tokens.get_token(params.token_out)
        token_in.transfer_from(self.address, caller, self.address, params.amount_in)
        delivered = self.amount_out if self.delivered is None else self.delivered
        token_out.transfer(self.address, params.recipient, delivered)
        return self.amount_out

    def snapshot(self) -> Dict[str, Any]:
        return {"calls": len(self.calls)}

    def restore(self, state: Dict[str, Any]) -> None:
        del self.calls[state["calls"]:]


@dataclass
class HookedBar(StakingBar):
    """StakingBar that runs a callback at the start of enter/leave."""

    on_enter: Callable[[], Any] | None = field(default=None, repr=False)
    on_leave: Callable[[], Any] | None = field(default=None, repr=False)

    def enter(self, caller: str, amount: int) -> int:
        if self.on_enter is not None:
            self.on_enter()
        return super().enter(caller, amount)

    def leave(self, caller: str, share: int) -> int:
        if self.on_leave is not None:
            self.on_leave()
        return super().leave(caller, share)


@dataclass
class FalseReturningToken(ERC20Token):
    """Token whose transfer reports failure (without raising) while fail_transfers is set."""

    fail_transfers: bool = False

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        if self.fail_transfers:
            return False
        return super().transfer(sender, recipient, amount)


def approve_and_deposit(vault: ZapVault, user: str, assets: int, receiver: str | None = None) -> int:
    vault.asset_token.approve(user, vault.address, assets)
    return vault.deposit(user, assets, receiver or user)


@pytest.fixture
def alice():
    return ALICE


@pytest.fixture
def bob():
    return BOB


@pytest.fixture
def carol():
    return CAROL


@pytest.fixture
def lp():
    return LP


@pytest.fixture
def deposit():
    """approve + deposit helper: deposit(vault, user, assets, receiver=None) -> shares"""
    return approve_and_deposit


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """Drop handlers installed by CLI runs so later tests don't write to closed streams."""
    yield
    package_logger = logging.getLogger("zapvault")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def factory():
    return ERC20Factory()


@pytest.fixture
def sushi(factory):
    token = factory.create_token(DEPLOYER, "Sushi Token", "SUSHI")
    for holder in (ALICE, BOB, CAROL):
        token.mint(DEPLOYER, holder, 1_000 * E18)
    token.mint(DEPLOYER, LP, 10_000_000 * E18)
    return token


@pytest.fixture
def weth(factory):
    token = factory.create_token(DEPLOYER, "Wrapped Ether", "WETH")
    for holder in (ALICE, BOB, CAROL):
        token.mint(DEPLOYER, holder, 10 * E18)
    token.mint(DEPLOYER, LP, 10_000 * E18)
    return token


@pytest.fixture
def bar(sushi):
    return HookedBar(base=sushi)


@pytest.fixture
def router(factory, sushi, weth, clock):
    router = SwapRouter(tokens=factory, clock=clock)
    sushi.approve(LP, router.address, 1_000_000 * E18)
    weth.approve(LP, router.address, 1_000 * E18)
    # 1 WETH ~= 1000 SUSHI
    router.add_liquidity(LP, weth.address, sushi.address, 3000, 1_000 * E18, 1_000_000 * E18)
    return router


@pytest.fixture
def vault(sushi, bar, router, factory, clock):
    return ZapVault(asset_token=sushi, bar=bar, router=router, tokens=factory, clock=clock)


@pytest.fixture
def fixed_router(factory, sushi):
    router = FixedOutputRouter(tokens=factory, amount_out=0)
    sushi.transfer(LP, router.address, 1_000_000 * E18)
    return router


@pytest.fixture
def fixed_vault(sushi, factory, clock, fixed_router):
    return ZapVault(
        asset_token=sushi,
        bar=HookedBar(base=sushi),
        router=fixed_router,
        tokens=factory,
        clock=clock,
    )


@pytest.fixture
def fragile_sushi(factory):
    """Base token whose transfer can be switched to return False."""
    token = FalseReturningToken(name="Fragile Sushi", symbol="fSUSHI", owner=DEPLOYER)
    factory.register(token)
    for holder in (ALICE, BOB):
        token.mint(DEPLOYER, holder, 1_000 * E18)
    return token


@pytest.fixture
def fragile_vault(fragile_sushi, factory, clock):
    return ZapVault(
        asset_token=fragile_sushi,
        bar=HookedBar(base=fragile_sushi),
        router=SwapRouter(tokens=factory, clock=clock),
        tokens=factory,
        clock=clock,
    )
