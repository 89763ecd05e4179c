"""
Savings Vault Core

Per-identity savings vaults holding time-locked banks in the base currency
or a fungible token, with breaking fees on early withdrawal, a registry that
provisions one vault per identity, and hash-chained audit trails.
"""

__version__ = "1.0.0"
