"""
zapvault DeFi contracts.

- ZapVault: share-based vault over a yield wrapper, with swap-and-deposit
- ShareLedger: vault share token
- StakingBar: base token -> appreciating wrapped token
- SwapRouter: single-hop exact-input swaps over constant-product pools
- Valuation / mul_div: asset <-> share conversion math
"""

from .safe_math import MAX_UINT256, Rounding, mul_div
from .share_ledger import ShareLedger
from .share_math import Valuation
from .staking_bar import StakingBar
from .swap_router import FEE_TIERS, ExactInputSingleParams, Pool, SwapRouter
from .vault import VaultEvent, ZapVault

__all__ = [
    "ZapVault",
    "VaultEvent",
    "ShareLedger",
    "StakingBar",
    "SwapRouter",
    "ExactInputSingleParams",
    "Pool",
    "FEE_TIERS",
    "Valuation",
    "Rounding",
    "mul_div",
    "MAX_UINT256",
]
