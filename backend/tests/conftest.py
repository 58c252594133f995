# tests/conftest.py
"""
Pytest fixtures for ledger tests.

Accounts are created through the directory commands so tests exercise the
same allocation and classification paths as production code.
"""

import logging
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

import pytest

from accounting import commands
from accounting.models import Account, Entry, LedgerTransaction


def at(year, month, day, hour=12, minute=0):
    """Aware UTC datetime, for pinning transaction timestamps."""
    return datetime(year, month, day, hour, minute, tzinfo=dt_timezone.utc)


# =============================================================================
# Account Fixtures
# =============================================================================

@pytest.fixture
def basic_accounts(db):
    """The seeded chart of accounts, keyed by code."""
    commands.ensure_basic_accounts()
    return {a.code: a for a in Account.objects.all()}


@pytest.fixture
def cash_account(basic_accounts):
    return basic_accounts["ASSET.CASH"]


@pytest.fixture
def bank_account(basic_accounts):
    return basic_accounts["ASSET.BANK_IBBL"]


@pytest.fixture
def supplier_account(db):
    return commands.get_or_create_supplier_account(7, "Acme Flour")


@pytest.fixture
def customer_account(db):
    return commands.get_or_create_customer_account(3, "Jane Doe")


# =============================================================================
# Posting Helpers
# =============================================================================

@pytest.fixture
def post_unbalanced(db):
    """
    Post a transaction whose entries do not balance, bypassing the
    balanced posting operations.
    """
    def _post(reference_type, legs, reference_id=0):
        tx = LedgerTransaction.objects.create(
            reference_type=reference_type,
            reference_id=reference_id,
        )
        for code, debit, credit in legs:
            Entry.objects.create(
                transaction=tx,
                account=Account.objects.get(code=code),
                debit=Decimal(debit),
                credit=Decimal(credit),
            )
        return tx

    return _post


@pytest.fixture
def backdate(db):
    """
    Move a posted transaction in time.

    created_at cannot change through save(), so this goes through update().
    Usage: backdate(tx, 2025, 1, 15) or backdate(tx, 2025, 1, 15, hour=9)
    """
    def _backdate(tx, year, month, day, hour=12, minute=0):
        when = at(year, month, day, hour, minute)
        LedgerTransaction.objects.filter(pk=tx.pk).update(created_at=when)
        tx.refresh_from_db()
        return tx

    return _backdate


# =============================================================================
# Logging
# =============================================================================

@pytest.fixture
def accounting_log(caplog, monkeypatch):
    """
    Capture accounting logs at INFO.

    The accounting logger does not propagate under the LOGGING config, so
    propagation is switched on for the test to reach caplog's handler.
    """
    caplog.set_level(logging.INFO, logger="accounting")
    monkeypatch.setattr(logging.getLogger("accounting"), "propagate", True)
    return caplog
