"""
Token Ledger

A centrally administered fungible-unit ledger with allowances, mint/burn,
a global pause switch, account blacklisting and hash-chained audit trails.
"""

__version__ = "1.0.0"
