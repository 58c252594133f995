# accounting/management/commands/check_ledger.py
"""
Scan the journal for unbalanced transactions, and optionally repair one.

Usage:
    # Report every transaction whose debits and credits differ
    python manage.py check_ledger

    # Same report as JSON
    python manage.py check_ledger --json

    # Repair one transaction
    python manage.py check_ledger --fix 42

Exits with an error when unbalanced transactions are found (so it can gate
deploys and cron alerts), unless --fix was given.
"""

import json

from django.core.management.base import BaseCommand, CommandError
from django.core.serializers.json import DjangoJSONEncoder

from accounting.exceptions import LedgerError
from accounting.reconciliation import find_unbalanced_transactions, fix_unbalanced_transaction


class Command(BaseCommand):
    help = "Find unbalanced ledger transactions, or repair one with --fix"

    def add_arguments(self, parser):
        parser.add_argument(
            "--fix",
            type=int,
            metavar="TRANSACTION_ID",
            help="Repair the given transaction",
        )
        parser.add_argument(
            "--json",
            action="store_true",
            help="Print the result as JSON",
        )

    def handle(self, *args, **options):
        if options["fix"] is not None:
            return self._fix(options["fix"], options["json"])

        report = find_unbalanced_transactions()

        if options["json"]:
            self.stdout.write(json.dumps(report, cls=DjangoJSONEncoder, indent=2))
        else:
            self._print_report(report)

        if report["unbalanced_count"]:
            raise CommandError(
                f"{report['unbalanced_count']} unbalanced transaction(s) found."
            )

    def _fix(self, transaction_id, as_json):
        try:
            result = fix_unbalanced_transaction(transaction_id)
        except LedgerError as exc:
            raise CommandError(f"[{exc.code}] {exc.message}") from exc

        if as_json:
            self.stdout.write(json.dumps(result, cls=DjangoJSONEncoder, indent=2))
            return

        for adjustment in result["adjustments"]:
            self.stdout.write(
                f"  entry #{adjustment['entry_id']} {adjustment['account_code']}: "
                f"{adjustment['field']} {adjustment['before']} -> {adjustment['after']}"
            )
        style = self.style.SUCCESS if result["is_balanced"] else self.style.WARNING
        self.stdout.write(style(
            f"Transaction {transaction_id}: difference "
            f"{result['original_difference']} -> {result['new_difference']} ({result['status']})"
        ))

    def _print_report(self, report):
        self.stdout.write(f"Checked {report['total_transactions']} transaction(s).")
        if not report["unbalanced_count"]:
            self.stdout.write(self.style.SUCCESS("All transactions are balanced."))
            return

        for item in report["unbalanced_transactions"]:
            self.stdout.write(self.style.WARNING(
                f"\nTX #{item['transaction_id']} {item['reference_type']}:{item['reference_id']} "
                f"debit={item['total_debit']} credit={item['total_credit']} "
                f"difference={item['difference']}"
            ))
            for entry in item["entries"]:
                self.stdout.write(
                    f"    {entry['account_code']:<30} {entry['debit']:>12} {entry['credit']:>12}"
                )
