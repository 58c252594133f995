# reports/__init__.py
"""
Reports app - read-only views over the ledger.

- balances: account balances, trial balance, balance sheet, profit and loss
- ledgers: per-entity statements with running balances, journal listing

Nothing in this app writes to the database.
"""
