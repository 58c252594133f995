# accounting/management/commands/ensure_basic_accounts.py
"""
Seed the foundational chart of accounts.

Safe to run repeatedly; existing accounts are left untouched.

Usage:
    python manage.py ensure_basic_accounts
"""

from django.core.management.base import BaseCommand, CommandError

from accounting.commands import ensure_basic_accounts
from accounting.exceptions import LedgerError


class Command(BaseCommand):
    help = "Create the basic ledger accounts (cash, bank, sales, capital, ...) if missing"

    def handle(self, *args, **options):
        try:
            result = ensure_basic_accounts()
        except LedgerError as exc:
            raise CommandError(str(exc)) from exc

        for code in result["created"]:
            self.stdout.write(self.style.SUCCESS(f"  created   {code}"))
        for code in result["existing"]:
            self.stdout.write(f"  existing  {code}")

        self.stdout.write(
            f"\n{len(result['created'])} created, {len(result['existing'])} already present."
        )
