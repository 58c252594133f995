# accounting/management/commands/export_report.py
"""
Export a ledger report to xlsx, csv or txt.

Usage:
    # Trial balance as of a date, to Excel
    python manage.py export_report trial-balance --as-of 2025-12-31 --output tb.xlsx

    # Cash/bank statement as CSV on stdout
    python manage.py export_report cash-bank-ledger --code ASSET.CASH --format csv
"""

from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from accounting.exceptions import LedgerError
from accounting.exports import (
    LEDGER_EXPORT_COLUMNS,
    TRIAL_BALANCE_EXPORT_COLUMNS,
    ExportFormat,
    prepare_ledger_export_data,
    prepare_trial_balance_export_data,
    render_export,
)
from reports.balances import trial_balance
from reports.ledgers import cash_bank_ledger


TRIAL_BALANCE = "trial-balance"
CASH_BANK_LEDGER = "cash-bank-ledger"


class Command(BaseCommand):
    help = "Export the trial balance or a cash/bank ledger"

    def add_arguments(self, parser):
        parser.add_argument("report", choices=[TRIAL_BALANCE, CASH_BANK_LEDGER])
        parser.add_argument("--code", help="Account code (cash-bank-ledger only)")
        parser.add_argument("--as-of", dest="as_of", help="Last date included (YYYY-MM-DD)")
        parser.add_argument("--date-from", dest="date_from", help="First date included (YYYY-MM-DD)")
        parser.add_argument(
            "--format",
            choices=ExportFormat.CHOICES,
            help="Output format (default: from --output extension, else txt)",
        )
        parser.add_argument("--output", help="File to write (default: stdout)")

    def handle(self, *args, **options):
        fmt = self._resolve_format(options)
        if fmt == ExportFormat.EXCEL and not options["output"]:
            raise CommandError("--output is required for xlsx exports.")

        try:
            if options["report"] == TRIAL_BALANCE:
                report = trial_balance(as_of=options["as_of"])
                data, footer = prepare_trial_balance_export_data(report)
                columns = TRIAL_BALANCE_EXPORT_COLUMNS
                title = "Trial Balance"
            else:
                if not options["code"]:
                    raise CommandError("--code is required for cash-bank-ledger.")
                statement = cash_bank_ledger(
                    options["code"],
                    as_of=options["as_of"],
                    date_from=options["date_from"],
                )
                data, footer = prepare_ledger_export_data(statement)
                columns = LEDGER_EXPORT_COLUMNS
                title = f"{statement['account_name']} ({statement['account_code']})"
        except LedgerError as exc:
            raise CommandError(f"[{exc.code}] {exc.message}") from exc

        if options["as_of"]:
            title = f"{title} as of {options['as_of']}"

        content = render_export(data, columns, fmt, title=title, footer=footer)

        if options["output"]:
            Path(options["output"]).write_bytes(content)
            self.stdout.write(self.style.SUCCESS(f"Wrote {options['output']} ({len(content)} bytes)"))
        else:
            self.stdout.write(content.decode("utf-8-sig"), ending="")

    @staticmethod
    def _resolve_format(options) -> str:
        if options["format"]:
            return options["format"]
        if options["output"]:
            suffix = Path(options["output"]).suffix.lstrip(".").lower()
            if suffix in ExportFormat.CHOICES:
                return suffix
        return ExportFormat.TXT
