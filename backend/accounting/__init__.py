# accounting/__init__.py
"""
Accounting app - the double-entry ledger core.

This app provides:
- Account: Chart of accounts with cash/bank classification
- LedgerTransaction: A business event made of entries
- Entry: Debit/credit legs, immutable once written
- ReferenceSequence: Row-locked reference id counters

Commands (accounting.commands) handle all mutations. Reconciliation
(accounting.reconciliation) is the only path that rewrites entries.
"""
