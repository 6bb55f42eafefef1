"""
zapvault - Share-Based Yield Vault with Zap Deposits

A custody vault that issues proportional ownership shares against a base
asset parked in an external yield wrapper, plus a "zap" entry point that
swaps a foreign token into the base asset and deposits the proceeds in one
atomic operation.

Main Components:
- Conversion Engine: asset <-> share math with explicit rounding direction
- Share Ledger: ERC20-style share balances and allowances
- Vault Controller: atomic deposit, withdraw, mint, redeem and zap-in
- Reference collaborators: in-memory ERC20 ledger, staking bar, swap router
"""

__version__ = "0.1.0"
__author__ = "zapvault Development Team"

__all__ = []
