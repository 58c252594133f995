# accounting/models.py
"""
Ledger models.

Three relations make up the ledger, plus one bookkeeping table:

- Account: Chart of accounts (`accounts`)
- LedgerTransaction: A named business event (`transactions`)
- Entry: One debit or credit leg of a transaction (`entries`)
- ReferenceSequence: Row-locked counters for reference ids

A transaction exclusively owns its entries (cascade delete). Entries
reference accounts without owning them; an account cannot be deleted while
any entry points at it (PROTECT).

Entries are immutable once written. The only code allowed to rewrite an
existing entry is the reconciliation repair path, which runs inside
repair_writes_allowed().
"""

from decimal import ROUND_HALF_UP, Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone

from accounting.write_barrier import write_context_allowed


ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def to_amount(value) -> Decimal:
    """Coerce a number-like value to a 2-decimal Decimal."""
    if value is None or value == "":
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


class Account(models.Model):
    """
    Chart of Accounts entry.

    account_number, code and name are each unique. An account is never both
    a cash and a bank account.
    """

    class AccountType(models.TextChoices):
        ASSET = "asset", "Asset"
        LIABILITY = "liability", "Liability"
        EQUITY = "equity", "Equity"
        INCOME = "income", "Income"
        EXPENSE = "expense", "Expense"

    class NormalBalance(models.TextChoices):
        DEBIT = "debit", "Debit"
        CREDIT = "credit", "Credit"

    # Map account types to their normal balance
    NORMAL_BALANCE_MAP = {
        AccountType.ASSET: NormalBalance.DEBIT,
        AccountType.EXPENSE: NormalBalance.DEBIT,
        AccountType.LIABILITY: NormalBalance.CREDIT,
        AccountType.EQUITY: NormalBalance.CREDIT,
        AccountType.INCOME: NormalBalance.CREDIT,
    }

    # Reserved account-number range per type: (first, last)
    NUMBER_RANGES = {
        AccountType.ASSET: (1000, 1999),
        AccountType.LIABILITY: (2000, 2999),
        AccountType.EQUITY: (3000, 3999),
        AccountType.INCOME: (4000, 4999),
        AccountType.EXPENSE: (5000, 5999),
    }

    account_number = models.CharField(max_length=20, unique=True)
    code = models.CharField(max_length=100, unique=True)
    name = models.CharField(max_length=255, unique=True)

    account_type = models.CharField(
        max_length=20,
        choices=AccountType.choices,
        db_column="type",
    )

    is_cash = models.BooleanField(default=False)
    is_bank = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "accounts"
        ordering = ["account_number"]
        constraints = [
            models.CheckConstraint(
                condition=~(Q(is_cash=True) & Q(is_bank=True)),
                name="account_not_cash_and_bank",
            ),
        ]
        indexes = [
            models.Index(fields=["account_type"], name="accounts_type_idx"),
        ]

    def __str__(self):
        return f"{self.account_number} {self.code} - {self.name}"

    @property
    def normal_balance(self) -> str:
        return self.NORMAL_BALANCE_MAP.get(self.account_type, self.NormalBalance.DEBIT)

    @property
    def is_cash_or_bank(self) -> bool:
        return self.is_cash or self.is_bank

    @classmethod
    def signed_balance_for(cls, account_type: str, debit, credit) -> Decimal:
        """
        Net balance under the type's sign convention.

        asset/expense: debit - credit
        liability/equity/income: credit - debit
        """
        debit = to_amount(debit)
        credit = to_amount(credit)
        if cls.NORMAL_BALANCE_MAP.get(account_type) == cls.NormalBalance.CREDIT:
            return credit - debit
        return debit - credit

    def signed_balance(self, debit, credit) -> Decimal:
        return self.signed_balance_for(self.account_type, debit, credit)

    def clean(self):
        if self.is_cash and self.is_bank:
            raise ValidationError("An account cannot be both cash and bank at the same time.")
        if self.account_type not in self.AccountType.values:
            raise ValidationError(f"Unknown account type: {self.account_type}")

    def save(self, *args, **kwargs):
        self.clean()
        super().save(*args, **kwargs)


class LedgerTransaction(models.Model):
    """
    A named business event made of balanced entries.

    reference_type/reference_id correlate the transaction to the external
    record that caused it (reference_id is 0 when there is none).
    created_at is fixed at insert time.
    """

    reference_type = models.CharField(max_length=50)
    reference_id = models.PositiveBigIntegerField(default=0)
    created_at = models.DateTimeField(default=timezone.now, editable=False)

    class Meta:
        db_table = "transactions"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["reference_type", "reference_id"], name="transactions_reference_idx"),
            models.Index(fields=["created_at", "id"], name="transactions_created_idx"),
        ]

    def __str__(self):
        return f"TX #{self.id} {self.reference_type}:{self.reference_id}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise RuntimeError(
                "LedgerTransaction rows are immutable once written."
            )
        super().save(*args, **kwargs)

    def totals(self) -> tuple[Decimal, Decimal]:
        """(total_debit, total_credit) over this transaction's entries."""
        total_debit = ZERO
        total_credit = ZERO
        for entry in self.entries.all():
            total_debit += entry.debit
            total_credit += entry.credit
        return total_debit, total_credit

    @property
    def difference(self) -> Decimal:
        total_debit, total_credit = self.totals()
        return total_debit - total_credit


class Entry(models.Model):
    """One leg of a transaction."""

    transaction = models.ForeignKey(
        LedgerTransaction,
        on_delete=models.CASCADE,
        related_name="entries",
    )
    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="entries",
    )
    debit = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    credit = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    narration = models.CharField(max_length=255, null=True, blank=True)

    class Meta:
        db_table = "entries"
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(
                condition=Q(debit__gte=0) & Q(credit__gte=0),
                name="entry_amounts_non_negative",
            ),
        ]
        indexes = [
            models.Index(fields=["account", "transaction"], name="entries_account_tx_idx"),
        ]

    def __str__(self):
        return f"Entry #{self.id} tx={self.transaction_id} dr={self.debit} cr={self.credit}"

    def save(self, *args, **kwargs):
        if not self._state.adding and not write_context_allowed({"repair"}):
            raise RuntimeError(
                "Entry rows are immutable. Existing entries may only be rewritten "
                "within repair_writes_allowed()."
            )
        super().save(*args, **kwargs)


class ReferenceSequence(models.Model):
    """
    Named counters for transaction reference ids.

    Allocated under select_for_update so concurrent callers never share a
    value.
    """

    name = models.CharField(max_length=100, unique=True)
    next_value = models.PositiveBigIntegerField(default=1)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "reference_sequences"

    def __str__(self):
        return f"{self.name}={self.next_value}"

    def save(self, *args, **kwargs):
        if not write_context_allowed({"sequence"}):
            raise RuntimeError(
                "ReferenceSequence is allocator-owned. "
                "Direct saves are only allowed within sequence_writes_allowed()."
            )
        super().save(*args, **kwargs)
