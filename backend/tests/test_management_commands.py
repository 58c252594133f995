# tests/test_management_commands.py
"""
Tests for the ledger management commands.
"""

import io
import json
from decimal import Decimal

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError
from openpyxl import load_workbook

from accounting import commands
from accounting.models import Account, Entry


def run(*args, **kwargs):
    out = io.StringIO()
    call_command(*args, stdout=out, **kwargs)
    return out.getvalue()


@pytest.mark.django_db
class TestEnsureBasicAccounts:

    def test_seeds_then_reports_existing(self):
        first = run("ensure_basic_accounts")
        second = run("ensure_basic_accounts")

        assert "8 created, 0 already present." in first
        assert "0 created, 8 already present." in second
        assert Account.objects.count() == 8

    def test_runs_with_info_logging(self, accounting_log):
        output = run("ensure_basic_accounts")

        assert "8 created" in output
        assert any(r.getMessage() == "Basic accounts ensured" for r in accounting_log.records)


@pytest.mark.django_db
class TestCheckLedger:

    def test_clean_ledger(self, basic_accounts):
        commands.add_cash(100, "seed")
        output = run("check_ledger")

        assert "Checked 1 transaction(s)." in output
        assert "All transactions are balanced." in output

    def test_unbalanced_raises(self, basic_accounts, post_unbalanced):
        post_unbalanced("sale", [("ASSET.CASH", "100", "0"), ("INCOME.SALES", "0", "80")])

        with pytest.raises(CommandError, match="1 unbalanced transaction"):
            run("check_ledger")

    def test_json_report(self, basic_accounts, post_unbalanced):
        tx = post_unbalanced("sale", [("ASSET.CASH", "100", "0"), ("INCOME.SALES", "0", "80")])
        out = io.StringIO()

        with pytest.raises(CommandError):
            call_command("check_ledger", "--json", stdout=out)

        report = json.loads(out.getvalue())
        assert report["unbalanced_count"] == 1
        assert report["unbalanced_transactions"][0]["transaction_id"] == tx.pk
        assert Decimal(report["unbalanced_transactions"][0]["difference"]) == Decimal("20")

    def test_fix(self, basic_accounts, customer_account, post_unbalanced):
        tx = post_unbalanced("sale", [
            ("INCOME.SALES", "0", "1000"),
            ("EXPENSE.SALES_DISCOUNT", "100", "0"),
            ("ASSET.CASH", "500", "0"),
            (customer_account.code, "700", "0"),
        ])

        output = run("check_ledger", "--fix", str(tx.pk))

        assert "(fixed)" in output
        assert Entry.objects.get(transaction=tx, account=customer_account).debit == 400
        assert "All transactions are balanced." in run("check_ledger")

    def test_fix_balanced_transaction_errors(self, basic_accounts):
        tx = commands.add_cash(100, "seed")
        with pytest.raises(CommandError, match="already_balanced"):
            run("check_ledger", "--fix", str(tx.pk))


@pytest.mark.django_db
class TestExportReport:

    def test_trial_balance_csv_to_stdout(self, basic_accounts):
        commands.add_cash(100, "seed")
        output = run("export_report", "trial-balance", "--format", "csv")

        lines = output.splitlines()
        assert lines[0].startswith("Account No.,Account Code")
        assert "ASSET.CASH" in lines[1]

    def test_cash_ledger_xlsx_file(self, basic_accounts, tmp_path):
        commands.add_cash(100, "seed")
        target = tmp_path / "cash.xlsx"

        run("export_report", "cash-bank-ledger", "--code", "ASSET.CASH", "--output", str(target))

        ws = load_workbook(target).active
        assert ws["A1"].value == "Cash (ASSET.CASH)"
        assert ws["D4"].value == "Opening balance"

    def test_xlsx_requires_output(self, basic_accounts):
        with pytest.raises(CommandError, match="--output"):
            run("export_report", "trial-balance", "--format", "xlsx")

    def test_ledger_requires_code(self, basic_accounts):
        with pytest.raises(CommandError, match="--code"):
            run("export_report", "cash-bank-ledger")

    def test_non_cash_account_errors(self, basic_accounts):
        with pytest.raises(CommandError, match="invalid_argument"):
            run("export_report", "cash-bank-ledger", "--code", "ASSET.INVENTORY")


@pytest.mark.django_db
def test_ledger_metrics_command(basic_accounts):
    output = run("ledger_metrics")

    assert "ledger_accounts 8.0" in output
    assert "ledger_unbalanced_transactions 0.0" in output
