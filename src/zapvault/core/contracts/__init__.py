"""
zapvault Contract Standards.

This module provides the in-memory token ledger:
- ERC20: Fungible token standard
- ERC20Factory: deploys tokens and resolves addresses to ledgers
"""

from .erc20 import ZERO_ADDRESS, ERC20Factory, ERC20Token, TokenEvent

__all__ = [
    "ERC20Token",
    "ERC20Factory",
    "TokenEvent",
    "ZERO_ADDRESS",
]
