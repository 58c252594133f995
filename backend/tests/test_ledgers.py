# tests/test_ledgers.py
"""
Tests for ledger statements and the journal report.

Tests cover:
- Opening/closing balances with date_from and as_of
- Running balances, newest first, and their continuity across pages
- Supplier (liability-style) vs customer/cash (asset-style) signs
- Pagination meta and limits
- Journal listing and refund transactions
"""

from decimal import Decimal

import pytest

from accounting import commands
from accounting.exceptions import InvalidArgument, NotFound
from reports.ledgers import (
    cash_bank_ledger,
    customer_ledger,
    journal_report,
    refund_transactions,
    supplier_ledger,
)


def D(value):
    return Decimal(value).quantize(Decimal("0.01"))


@pytest.fixture
def customer_history(basic_accounts, customer_account, backdate):
    """
    Five postings on AR.CUSTOMER.3:

        2025-01-05  +100  -> 100
        2025-01-10   +50  -> 150
        2025-01-15   -30  -> 120
        2025-01-20   +20  -> 140
        2025-01-25   -40  -> 100
    """
    code = customer_account.code
    movements = [(5, 100, 0), (10, 50, 0), (15, 0, 30), (20, 20, 0), (25, 0, 40)]
    for day, debit, credit in movements:
        if debit:
            legs = [
                {"account_code": code, "debit": debit, "credit": 0},
                {"account_code": "INCOME.SALES", "debit": 0, "credit": debit},
            ]
            reference_type = "sale"
        else:
            legs = [
                {"account_code": "ASSET.CASH", "debit": credit, "credit": 0},
                {"account_code": code, "debit": 0, "credit": credit},
            ]
            reference_type = "customer_payment"
        backdate(commands.post_transaction(reference_type, day, legs), 2025, 1, day)
    return customer_account


def running(statement):
    return [line["running_balance"] for line in statement["entries"]]


@pytest.mark.django_db
class TestCustomerLedger:

    def test_full_statement(self, customer_history):
        statement = customer_ledger(3)

        assert statement["account_code"] == "AR.CUSTOMER.3"
        assert statement["opening_balance"] == D(0)
        assert statement["closing_balance"] == D(100)
        assert statement["meta"] is None
        assert running(statement) == [D(100), D(140), D(120), D(150), D(100)]
        assert [line["reference_id"] for line in statement["entries"]] == [25, 20, 15, 10, 5]

    def test_pages_continue_each_other(self, customer_history):
        pages = [customer_ledger(3, page=n, limit=2) for n in (1, 2, 3)]

        assert [running(p) for p in pages] == [
            [D(100), D(140)],
            [D(120), D(150)],
            [D(100)],
        ]
        for page in pages:
            assert page["closing_balance"] == D(100)
            assert page["meta"] == {"total": 5, "page": page["meta"]["page"], "limit": 2, "total_pages": 3}

        # Balance before the last line of page N == first line of page N+1
        for current, following in zip(pages, pages[1:]):
            last = current["entries"][-1]
            before_last = last["running_balance"] - last["debit"] + last["credit"]
            assert before_last == following["entries"][0]["running_balance"]

    def test_page_past_the_end(self, customer_history):
        statement = customer_ledger(3, page=4, limit=2)
        assert statement["entries"] == []
        assert statement["closing_balance"] == D(100)

    def test_date_from_builds_opening(self, customer_history):
        statement = customer_ledger(3, date_from="2025-01-12")

        assert statement["opening_balance"] == D(150)
        assert statement["closing_balance"] == D(100)
        assert running(statement) == [D(100), D(140), D(120)]

    def test_as_of_limits_window(self, customer_history):
        statement = customer_ledger(3, as_of="2025-01-16")

        assert statement["opening_balance"] == D(0)
        assert statement["closing_balance"] == D(120)
        assert running(statement) == [D(120), D(150), D(100)]

    def test_closing_is_opening_plus_window(self, customer_history):
        statement = customer_ledger(3, date_from="2025-01-08", as_of="2025-01-22")
        effect = sum((l["debit"] - l["credit"] for l in statement["entries"]), Decimal("0"))

        assert statement["opening_balance"] == D(100)
        assert statement["closing_balance"] == statement["opening_balance"] + effect == D(140)

    def test_date_from_after_as_of_rejected(self, customer_history):
        with pytest.raises(InvalidArgument):
            customer_ledger(3, date_from="2025-02-01", as_of="2025-01-01")

    @pytest.mark.parametrize("field,value", [("date_from", "soon"), ("as_of", "2025-02-30")])
    def test_invalid_date_names_its_field(self, customer_history, field, value):
        with pytest.raises(InvalidArgument) as exc_info:
            customer_ledger(3, **{field: value})
        assert exc_info.value.details["field"] == field

    def test_unknown_customer(self, db):
        with pytest.raises(NotFound) as exc_info:
            customer_ledger(999)
        assert exc_info.value.details["customer_id"] == 999


@pytest.mark.django_db
class TestSupplierLedger:

    def test_liability_sign(self, basic_accounts, supplier_account, backdate):
        purchase = commands.post_transaction("purchase", 1, [
            {"account_code": "ASSET.INVENTORY", "debit": 500, "credit": 0},
            {"account_code": supplier_account.code, "debit": 0, "credit": 500},
        ])
        payment = commands.post_transaction("supplier_payment", 1, [
            {"account_code": supplier_account.code, "debit": 200, "credit": 0},
            {"account_code": "ASSET.CASH", "debit": 0, "credit": 200},
        ])
        backdate(purchase, 2025, 3, 1)
        backdate(payment, 2025, 3, 5)

        statement = supplier_ledger(7)

        assert statement["account_name"] == "Supplier - Acme Flour"
        assert statement["closing_balance"] == D(300)
        assert running(statement) == [D(300), D(500)]

    def test_unknown_supplier(self, db):
        with pytest.raises(NotFound):
            supplier_ledger(404)


@pytest.mark.django_db
class TestCashBankLedger:

    def test_cash_statement(self, basic_accounts):
        commands.add_cash(1000, "seed")
        commands.transfer_funds("ASSET.CASH", "ASSET.BANK_IBBL", 400, "deposit")

        statement = cash_bank_ledger("ASSET.CASH")
        assert statement["closing_balance"] == D(600)
        assert running(statement) == [D(600), D(1000)]

    def test_same_timestamp_tie_break(self, basic_accounts, backdate):
        first = commands.add_cash(10, "a")
        second = commands.add_cash(20, "b")
        backdate(first, 2025, 6, 1)
        backdate(second, 2025, 6, 1)

        statement = cash_bank_ledger("ASSET.CASH")
        assert [line["transaction_id"] for line in statement["entries"]] == [second.pk, first.pk]
        assert running(statement) == [D(30), D(10)]

    def test_rejects_non_cash_account(self, basic_accounts):
        with pytest.raises(InvalidArgument):
            cash_bank_ledger("ASSET.INVENTORY")

    def test_unknown_account(self, db):
        with pytest.raises(NotFound):
            cash_bank_ledger("ASSET.NOPE")

    def test_default_and_max_limit(self, basic_accounts, settings):
        settings.LEDGER_DEFAULT_PAGE_LIMIT = 1
        settings.LEDGER_MAX_PAGE_LIMIT = 2
        for amount in (1, 2, 3):
            commands.add_cash(amount, "x")

        assert cash_bank_ledger("ASSET.CASH", page=1)["meta"]["limit"] == 1
        assert cash_bank_ledger("ASSET.CASH", page=1, limit=50)["meta"] == {
            "total": 3, "page": 1, "limit": 2, "total_pages": 2,
        }

    def test_invalid_page(self, basic_accounts):
        with pytest.raises(InvalidArgument):
            cash_bank_ledger("ASSET.CASH", page=0, limit=10)


@pytest.mark.django_db
class TestJournalReport:

    def test_newest_first_with_entries(self, basic_accounts, backdate):
        older = backdate(commands.add_cash(100, "seed"), 2025, 1, 1)
        newer = commands.transfer_funds("ASSET.CASH", "ASSET.BANK_IBBL", 40, "move")

        report = journal_report(page=1, limit=10)

        assert [item["transaction_id"] for item in report["items"]] == [newer.pk, older.pk]
        assert report["meta"] == {"total": 2, "page": 1, "limit": 10, "total_pages": 1}
        first = report["items"][0]
        assert first["total_debit"] == first["total_credit"] == D(40)
        assert {e["account_code"] for e in first["entries"]} == {"ASSET.CASH", "ASSET.BANK_IBBL"}

    def test_account_filter(self, basic_accounts):
        commands.add_cash(100, "seed")
        commands.add_bank_balance("ASSET.BANK_IBBL", 50, "seed")

        report = journal_report(account_code="ASSET.BANK_IBBL")
        assert [item["reference_type"] for item in report["items"]] == ["bank_balance_addition"]

    def test_refund_transactions(self, basic_accounts, supplier_account):
        commands.add_cash(100, "seed")
        commands.post_transaction("supplier_refund", 9, [
            {"account_code": "ASSET.CASH", "debit": 25, "credit": 0},
            {"account_code": supplier_account.code, "debit": 0, "credit": 25},
        ])

        report = refund_transactions()
        assert report["meta"]["total"] == 1
        assert report["items"][0]["reference_id"] == 9
