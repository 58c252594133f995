# tests/test_exports.py
"""
Tests for report exports (xlsx, csv, txt).
"""

import csv
import io
from decimal import Decimal

import pytest
from openpyxl import load_workbook

from accounting import commands
from accounting.exports import (
    LEDGER_EXPORT_COLUMNS,
    TRIAL_BALANCE_EXPORT_COLUMNS,
    ExportFormat,
    format_value,
    prepare_ledger_export_data,
    prepare_trial_balance_export_data,
    render_export,
)
from reports.balances import trial_balance
from reports.ledgers import cash_bank_ledger


@pytest.fixture
def tb_rows(basic_accounts):
    commands.add_cash(1000, "seed")
    commands.transfer_funds("ASSET.CASH", "ASSET.BANK_IBBL", 250, "move")
    return prepare_trial_balance_export_data(trial_balance())


def test_format_value():
    assert format_value(None) == ""
    assert format_value(Decimal("5")) == "5.00"
    assert format_value(True) == "Yes"


def test_unknown_format_rejected():
    with pytest.raises(ValueError):
        render_export([], TRIAL_BALANCE_EXPORT_COLUMNS, "pdf")


@pytest.mark.django_db
class TestTrialBalanceExport:

    def test_rows_and_footer(self, tb_rows):
        data, footer = tb_rows

        assert [row["code"] for row in data] == ["ASSET.CASH", "ASSET.BANK_IBBL", "EQUITY.CAPITAL"]
        assert footer["debit"] == footer["credit"] == Decimal("1250.00")
        assert footer["side"] == "OK"

    def test_csv(self, tb_rows):
        data, footer = tb_rows
        content = render_export(data, TRIAL_BALANCE_EXPORT_COLUMNS, ExportFormat.CSV, footer=footer)

        assert content.startswith(b"\xef\xbb\xbf")
        rows = list(csv.reader(io.StringIO(content.decode("utf-8-sig"))))
        assert rows[0][:3] == ["Account No.", "Account Code", "Account Name"]
        assert rows[1][1] == "ASSET.CASH"
        assert rows[1][4] == "1000.00"
        assert rows[-1][2] == "Total"

    def test_xlsx(self, tb_rows):
        data, footer = tb_rows
        content = render_export(
            data, TRIAL_BALANCE_EXPORT_COLUMNS, ExportFormat.EXCEL,
            title="Trial Balance", footer=footer,
        )

        ws = load_workbook(io.BytesIO(content)).active
        assert ws["A1"].value == "Trial Balance"
        assert ws["B3"].value == "Account Code"
        assert ws["B4"].value == "ASSET.CASH"
        assert ws["E4"].value == 1000.0
        assert ws["C7"].value == "Total"

    def test_txt(self, tb_rows):
        data, footer = tb_rows
        text = render_export(data, TRIAL_BALANCE_EXPORT_COLUMNS, ExportFormat.TXT, footer=footer).decode()

        lines = text.splitlines()
        assert lines[0].startswith("Account No.")
        assert set(lines[1].replace(" ", "")) == {"-"}
        assert "ASSET.BANK_IBBL" in text
        assert "=" in lines[-2]
        assert "Total" in lines[-1]


@pytest.mark.django_db
def test_ledger_export_is_oldest_first(basic_accounts):
    commands.add_cash(1000, "seed")
    commands.transfer_funds("ASSET.CASH", "ASSET.BANK_IBBL", 400, "deposit")

    data, footer = prepare_ledger_export_data(cash_bank_ledger("ASSET.CASH"))

    assert data[0]["narration"] == "Opening balance"
    assert [row["running_balance"] for row in data[1:]] == [Decimal("1000.00"), Decimal("600.00")]
    assert footer["running_balance"] == Decimal("600.00")

    text = render_export(data, LEDGER_EXPORT_COLUMNS, ExportFormat.TXT, footer=footer).decode()
    assert "Closing balance" in text
