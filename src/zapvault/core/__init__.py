"""
zapvault Core Module

Core functionality for the vault including:
- Token ledgers and the share ledger
- Conversion math and the vault controller
- Yield wrapper and swap router collaborators
- Configuration, logging and the exception hierarchy
"""

__all__ = []
