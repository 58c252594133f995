# reports/ledgers.py
"""
Ledger report generator.

Statements for one account (a supplier, a customer or a cash/bank
account) with opening, closing and per-line running balances.

Window:
- date_from: entries dated strictly before it make up the opening balance
- as_of:     last calendar date included (inclusive)

How running balances are produced:
1. opening = signed sum of entries before date_from (0 without date_from)
2. closing = opening + effect of every entry in the window, computed over
   the whole window regardless of pagination
3. the page is taken from the window ordered newest first
   (created_at DESC, id DESC)
4. starting from closing, the effect of every entry newer than the page is
   reversed; each page line then shows the balance right after it, and its
   effect is reversed to step to the next (older) line

Each line therefore shows the balance as of that entry, and the last line
of page N continues into the first line of page N+1.

Every call re-reads the account's full window, so cost grows linearly with
the account's entry count. No running balances are stored.
"""

import math
from typing import Any, Dict, List, Optional

from django.conf import settings

from accounting.commands import CUSTOMER_ACCOUNT_PREFIX, SUPPLIER_ACCOUNT_PREFIX
from accounting.exceptions import InvalidArgument, NotFound
from accounting.models import ZERO, Account, Entry, LedgerTransaction
from reports.balances import coerce_date, signed_effect


SUPPLIER_REFUND = "supplier_refund"


def _page_params(page, limit) -> tuple[Optional[int], Optional[int]]:
    """
    Normalise pagination.

    Returns (None, None) when no pagination was requested. Otherwise page
    defaults to 1 and limit to LEDGER_DEFAULT_PAGE_LIMIT, capped at
    LEDGER_MAX_PAGE_LIMIT.
    """
    if page is None and limit is None:
        return None, None

    page = 1 if page is None else int(page)
    limit = settings.LEDGER_DEFAULT_PAGE_LIMIT if limit is None else int(limit)
    if page < 1:
        raise InvalidArgument("page must be >= 1.", field="page")
    if limit < 1:
        raise InvalidArgument("limit must be >= 1.", field="limit")
    return page, min(limit, settings.LEDGER_MAX_PAGE_LIMIT)


def _meta(total: int, page: int, limit: int) -> Dict[str, int]:
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if total else 0,
    }


def _account_for(code: str, entity: str, entity_id=None) -> Account:
    account = Account.objects.filter(code=code).first()
    if account is None:
        details = {"account_code": code}
        if entity_id is not None:
            details[f"{entity}_id"] = entity_id
        raise NotFound(f"No ledger account for {entity} ({code}).", **details)
    return account


def account_statement(
    account: Account,
    sign_type: str,
    page=None,
    limit=None,
    as_of=None,
    date_from=None,
) -> Dict[str, Any]:
    """
    Statement for one account.

    Args:
        account: The account whose entries are listed
        sign_type: Account type whose sign convention applies
                   ("liability" for suppliers, "asset" for customers/cash)
        page, limit: Pagination; both None returns every line and meta=None
        as_of: Last date included
        date_from: First date included; earlier entries form the opening

    as_of only closes the window. Without date_from the statement starts
    at the first entry and the opening balance is 0; pass date_from to
    carry earlier entries into the opening instead of listing them.
    """
    as_of = coerce_date(as_of)
    date_from = coerce_date(date_from, field="date_from")
    if as_of and date_from and date_from > as_of:
        raise InvalidArgument("date_from must not be after as_of.", field="date_from")
    page, limit = _page_params(page, limit)

    base = Entry.objects.filter(account=account)

    opening = ZERO
    if date_from is not None:
        for row in base.filter(transaction__created_at__date__lt=date_from).values("debit", "credit"):
            opening += signed_effect(sign_type, row["debit"], row["credit"])

    window = base
    if date_from is not None:
        window = window.filter(transaction__created_at__date__gte=date_from)
    if as_of is not None:
        window = window.filter(transaction__created_at__date__lte=as_of)

    # Newest first; id breaks ties between entries with the same timestamp
    lines = list(
        window
        .order_by("-transaction__created_at", "-transaction_id", "-id")
        .values(
            "id",
            "transaction_id",
            "transaction__created_at",
            "transaction__reference_type",
            "transaction__reference_id",
            "debit",
            "credit",
            "narration",
        )
    )
    effects = [signed_effect(sign_type, row["debit"], row["credit"]) for row in lines]

    closing = opening + sum(effects, ZERO)

    total = len(lines)
    start, stop = (0, total) if page is None else ((page - 1) * limit, (page - 1) * limit + limit)

    balance = closing - sum(effects[:start], ZERO)

    entries = []
    for row, effect in zip(lines[start:stop], effects[start:stop]):
        entries.append({
            "entry_id": row["id"],
            "transaction_id": row["transaction_id"],
            "date": row["transaction__created_at"],
            "reference_type": row["transaction__reference_type"],
            "reference_id": row["transaction__reference_id"],
            "debit": row["debit"],
            "credit": row["credit"],
            "running_balance": balance,
            "narration": row["narration"],
        })
        balance -= effect

    return {
        "account_code": account.code,
        "account_name": account.name,
        "opening_balance": opening,
        "entries": entries,
        "closing_balance": closing,
        "meta": None if page is None else _meta(total, page, limit),
    }


def supplier_ledger(supplier_id, page=None, limit=None, as_of=None, date_from=None) -> Dict[str, Any]:
    """Supplier payable statement; credits increase the balance."""
    account = _account_for(f"{SUPPLIER_ACCOUNT_PREFIX}{supplier_id}", "supplier", supplier_id)
    return account_statement(
        account, Account.AccountType.LIABILITY,
        page=page, limit=limit, as_of=as_of, date_from=date_from,
    )


def customer_ledger(customer_id, page=None, limit=None, as_of=None, date_from=None) -> Dict[str, Any]:
    """Customer receivable statement; debits increase the balance."""
    account = _account_for(f"{CUSTOMER_ACCOUNT_PREFIX}{customer_id}", "customer", customer_id)
    return account_statement(
        account, Account.AccountType.ASSET,
        page=page, limit=limit, as_of=as_of, date_from=date_from,
    )


def cash_bank_ledger(code: str, page=None, limit=None, as_of=None, date_from=None) -> Dict[str, Any]:
    """
    Statement for a cash or bank account.

    Raises:
        NotFound: unknown code
        InvalidArgument: the account is neither cash nor bank
    """
    account = _account_for(code, "account")
    if not account.is_cash_or_bank:
        raise InvalidArgument(f"Account '{code}' is not a cash or bank account.", account_code=code)
    return account_statement(
        account, Account.AccountType.ASSET,
        page=page, limit=limit, as_of=as_of, date_from=date_from,
    )


def journal_report(
    page: int = 1,
    limit: int = 10,
    account_code: Optional[str] = None,
    reference_type: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Paginated journal: transactions newest first, each with its entries.

    Args:
        account_code: Only transactions touching this account
        reference_type: Only transactions with this reference type
    """
    page, limit = _page_params(page, limit)

    qs = LedgerTransaction.objects.all()
    if reference_type:
        qs = qs.filter(reference_type=reference_type)
    if account_code:
        qs = qs.filter(entries__account__code=account_code).distinct()

    total = qs.count()
    offset = (page - 1) * limit
    transactions = list(
        qs.order_by("-created_at", "-id")
        .prefetch_related("entries__account")[offset:offset + limit]
    )

    items: List[Dict[str, Any]] = []
    for tx in transactions:
        entries = list(tx.entries.all())
        items.append({
            "transaction_id": tx.pk,
            "reference_type": tx.reference_type,
            "reference_id": tx.reference_id,
            "date": tx.created_at,
            "total_debit": sum((e.debit for e in entries), ZERO),
            "total_credit": sum((e.credit for e in entries), ZERO),
            "entries": [
                {
                    "entry_id": e.pk,
                    "account_code": e.account.code,
                    "account_name": e.account.name,
                    "debit": e.debit,
                    "credit": e.credit,
                    "narration": e.narration,
                }
                for e in entries
            ],
        })

    return {"items": items, "meta": _meta(total, page, limit)}


def refund_transactions(page: int = 1, limit: int = 10) -> Dict[str, Any]:
    """Journal restricted to supplier refunds."""
    return journal_report(page=page, limit=limit, reference_type=SUPPLIER_REFUND)
