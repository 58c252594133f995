# accounting/reconciliation.py
"""
Reconciliation diagnostics.

find_unbalanced_transactions() scans the journal for transactions whose
debits and credits differ by more than 0.01.

fix_unbalanced_transaction() repairs one of them by dispatching to the
reconciler registered for its reference_type. A reconciler knows the entry
shape of one kind of business event and how to bring it back into balance.
Transactions without a reconciler, or whose shape the reconciler does not
recognise, raise UnsupportedRepair.

Repairs are the only code path that rewrites existing entries. They run
inside repair_writes_allowed() with the transaction's entries locked.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional

from django.db import transaction

from accounting.exceptions import AlreadyBalanced, NotFound, UnsupportedRepair
from accounting.models import ZERO, Entry, LedgerTransaction
from accounting.policies import BALANCE_TOLERANCE, is_material_imbalance
from accounting.write_barrier import repair_writes_allowed
from ops.metrics import record_repair


logger = logging.getLogger(__name__)


@dataclass
class Adjustment:
    """One rewritten entry."""

    entry: Entry
    field: str
    before: Decimal
    after: Decimal

    def to_dict(self) -> dict:
        return {
            "entry_id": self.entry.pk,
            "account_code": self.entry.account.code,
            "field": self.field,
            "before": self.before,
            "after": self.after,
        }


class BaseReconciler(ABC):
    """
    Base class for reconcilers.

    Subclasses must implement:
    - reference_type: The transaction reference_type this reconciler repairs
    - plan(tx, entries): Return the adjustments that rebalance the entries

    plan() must not save anything. It raises UnsupportedRepair when the
    entries do not have the shape it knows how to fix.
    """

    @property
    @abstractmethod
    def reference_type(self) -> str:
        pass

    @abstractmethod
    def plan(self, tx: LedgerTransaction, entries: List[Entry]) -> List[Adjustment]:
        pass


class SaleReconciler(BaseReconciler):
    """
    Repairs sales that recorded more collections than the invoice is worth.

    Expected collections are the sales credit less the discount debit.
    Anything debited to cash and the customer receivable beyond that is
    removed from the receivable entry, or from the cash entry when the
    receivable cannot absorb it.
    """

    SALES_ACCOUNT = "INCOME.SALES"
    DISCOUNT_ACCOUNT = "EXPENSE.SALES_DISCOUNT"
    CASH_ACCOUNT = "ASSET.CASH"
    RECEIVABLE_PREFIX = "AR.CUSTOMER."

    @property
    def reference_type(self) -> str:
        return "sale"

    @staticmethod
    def _find(entries, predicate) -> Optional[Entry]:
        return next((e for e in entries if predicate(e.account.code)), None)

    def plan(self, tx, entries):
        sales = self._find(entries, lambda code: code == self.SALES_ACCOUNT)
        discount = self._find(entries, lambda code: code == self.DISCOUNT_ACCOUNT)
        if sales is None or discount is None:
            raise UnsupportedRepair(
                f"Sale transaction {tx.pk} has no {self.SALES_ACCOUNT} and "
                f"{self.DISCOUNT_ACCOUNT} entries to reconcile against.",
                transaction_id=tx.pk,
            )

        cash = self._find(entries, lambda code: code == self.CASH_ACCOUNT)
        receivable = self._find(entries, lambda code: code.startswith(self.RECEIVABLE_PREFIX))

        expected = sales.credit - discount.debit
        actual = (cash.debit if cash else ZERO) + (receivable.debit if receivable else ZERO)
        excess = actual - expected

        if excess <= ZERO:
            raise UnsupportedRepair(
                f"Sale transaction {tx.pk} is not over-collected; no adjustment applies.",
                transaction_id=tx.pk,
            )

        for target in (receivable, cash):
            if target is not None and target.debit > excess:
                return [Adjustment(target, "debit", target.debit, target.debit - excess)]

        raise UnsupportedRepair(
            f"Sale transaction {tx.pk} has no collection entry large enough "
            f"to absorb the excess of {excess}.",
            transaction_id=tx.pk,
        )


class ReconcilerRegistry:
    """
    Registry of reconcilers keyed by reference_type.

    Usage:
        registry = ReconcilerRegistry()
        registry.register(SaleReconciler())
        reconciler = registry.get("sale")
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._reconcilers = {}
        return cls._instance

    def register(self, reconciler: BaseReconciler) -> None:
        self._reconcilers[reconciler.reference_type] = reconciler

    def unregister(self, reference_type: str) -> None:
        self._reconcilers.pop(reference_type, None)

    def get(self, reference_type: str) -> Optional[BaseReconciler]:
        return self._reconcilers.get(reference_type)

    def reference_types(self) -> List[str]:
        return sorted(self._reconcilers)


# Global registry instance
reconciler_registry = ReconcilerRegistry()
reconciler_registry.register(SaleReconciler())


def _entry_row(entry: Entry) -> dict:
    return {
        "entry_id": entry.pk,
        "account_code": entry.account.code,
        "account_name": entry.account.name,
        "debit": entry.debit,
        "credit": entry.credit,
        "narration": entry.narration,
    }


def _totals(entries) -> tuple[Decimal, Decimal]:
    total_debit = sum((e.debit for e in entries), ZERO)
    total_credit = sum((e.credit for e in entries), ZERO)
    return total_debit, total_credit


def find_unbalanced_transactions() -> Dict:
    """
    Every transaction whose |debit - credit| exceeds 0.01.

    Returns:
        {total_transactions, unbalanced_count, unbalanced_transactions[]}
        where each item carries the totals, the signed difference
        (debit - credit) and the entry breakdown.
    """
    transactions = (
        LedgerTransaction.objects
        .prefetch_related("entries__account")
        .order_by("id")
    )

    total = 0
    unbalanced = []
    for tx in transactions:
        total += 1
        entries = list(tx.entries.all())
        total_debit, total_credit = _totals(entries)
        difference = total_debit - total_credit
        if not is_material_imbalance(difference):
            continue
        unbalanced.append({
            "transaction_id": tx.pk,
            "reference_type": tx.reference_type,
            "reference_id": tx.reference_id,
            "date": tx.created_at,
            "total_debit": total_debit,
            "total_credit": total_credit,
            "difference": difference,
            "entries": [_entry_row(e) for e in entries],
        })

    if unbalanced:
        logger.warning(
            "Unbalanced transactions found",
            extra={"unbalanced_count": len(unbalanced), "total_transactions": total},
        )

    return {
        "total_transactions": total,
        "unbalanced_count": len(unbalanced),
        "unbalanced_transactions": unbalanced,
    }


@transaction.atomic
def fix_unbalanced_transaction(transaction_id: int) -> Dict:
    """
    Repair one unbalanced transaction.

    Raises:
        NotFound: no such transaction
        AlreadyBalanced: |debit - credit| < 0.01
        UnsupportedRepair: no reconciler for the reference_type, or the
            reconciler cannot repair this entry shape
    """
    try:
        tx = LedgerTransaction.objects.get(pk=transaction_id)
    except LedgerTransaction.DoesNotExist:
        raise NotFound(f"Transaction {transaction_id} not found.", transaction_id=transaction_id)

    entries = list(
        Entry.objects
        .select_for_update(of=("self",))
        .select_related("account")
        .filter(transaction=tx)
        .order_by("id")
    )

    total_debit, total_credit = _totals(entries)
    original_difference = total_debit - total_credit
    if abs(original_difference) < BALANCE_TOLERANCE:
        raise AlreadyBalanced(
            f"Transaction {transaction_id} is already balanced.",
            transaction_id=transaction_id,
        )

    reconciler = reconciler_registry.get(tx.reference_type)
    try:
        if reconciler is None:
            raise UnsupportedRepair(
                f"No reconciler registered for reference type '{tx.reference_type}'.",
                transaction_id=transaction_id,
                reference_type=tx.reference_type,
            )
        adjustments = reconciler.plan(tx, entries)
    except UnsupportedRepair:
        record_repair(tx.reference_type, "unsupported")
        raise

    with repair_writes_allowed():
        for adjustment in adjustments:
            setattr(adjustment.entry, adjustment.field, adjustment.after)
            adjustment.entry.save(update_fields=[adjustment.field])

    total_debit, total_credit = _totals(entries)
    new_difference = total_debit - total_credit
    balanced = not is_material_imbalance(new_difference)

    record_repair(tx.reference_type, "fixed" if balanced else "partial")
    logger.warning(
        "Transaction repaired",
        extra={
            "transaction_id": transaction_id,
            "reference_type": tx.reference_type,
            "original_difference": str(original_difference),
            "new_difference": str(new_difference),
        },
    )

    return {
        "transaction_id": transaction_id,
        "reference_type": tx.reference_type,
        "original_difference": original_difference,
        "new_difference": new_difference,
        "is_balanced": balanced,
        "adjustments": [a.to_dict() for a in adjustments],
        "status": "fixed" if balanced else "partial",
    }
