# reports/balances.py
"""
Balance calculator.

Aggregates entry debits and credits per account, optionally as of a
calendar date, and turns them into signed balances:

    asset, expense               balance = debit - credit
    liability, equity, income    balance = credit - debit

Every report here reads the entries table directly; nothing is cached.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from django.db.models import DecimalField, Sum, Value
from django.db.models.functions import Coalesce
from django.utils.dateparse import parse_date

from accounting.exceptions import InvalidArgument, NotFound
from accounting.filters import AccountFilter
from accounting.models import ZERO, Account, Entry
from accounting.policies import BALANCE_TOLERANCE


_AMOUNT = DecimalField(max_digits=14, decimal_places=2)


def coerce_date(value, field: str = "as_of") -> Optional[date]:
    """Accept a date, a datetime or an ISO "YYYY-MM-DD" string."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        parsed = parse_date(str(value))
    except ValueError:
        parsed = None
    if parsed is None:
        raise InvalidArgument(f"Invalid date for {field}: {value!r}", field=field)
    return parsed


def _sum(field: str):
    return Coalesce(Sum(field), Value(ZERO), output_field=_AMOUNT)


def _entries(as_of: Optional[date] = None, account_filter: Optional[AccountFilter] = None):
    qs = Entry.objects.all()
    if account_filter is not None:
        qs = qs.filter(account_filter.to_q(prefix="account__"))
    if as_of is not None:
        qs = qs.filter(transaction__created_at__date__lte=as_of)
    return qs


def _number_key(account_number: str):
    """Numeric account numbers sort numerically, ahead of anything else."""
    if account_number and account_number.isdigit():
        return (0, int(account_number), account_number)
    return (1, 0, account_number or "")


def account_balance(code: str, as_of=None) -> Dict[str, Any]:
    """
    Debit, credit and signed balance of one account.

    Raises:
        NotFound: unknown account code
    """
    as_of = coerce_date(as_of)
    try:
        account = Account.objects.get(code=code)
    except Account.DoesNotExist:
        raise NotFound(f"Account '{code}' not found.", account_code=code)

    totals = _entries(as_of).filter(account=account).aggregate(
        debit=_sum("debit"),
        credit=_sum("credit"),
    )
    debit, credit = totals["debit"], totals["credit"]

    return {
        "code": account.code,
        "name": account.name,
        "type": account.account_type,
        "debit": debit,
        "credit": credit,
        "balance": account.signed_balance(debit, credit),
        "as_of": as_of,
    }


def all_account_balances(as_of=None, account_filter: Optional[AccountFilter] = None) -> List[Dict[str, Any]]:
    """
    One balance row per account that has entries in range.

    The filter follows the directory's cash/bank truth table. Rows are
    ordered by account number.
    """
    as_of = coerce_date(as_of)
    rows = (
        _entries(as_of, account_filter)
        .order_by()
        .values(
            "account_id",
            "account__account_number",
            "account__code",
            "account__name",
            "account__account_type",
            "account__is_cash",
            "account__is_bank",
        )
        .annotate(debit=_sum("debit"), credit=_sum("credit"))
    )

    result = []
    for row in rows:
        account_type = row["account__account_type"]
        result.append({
            "account_id": row["account_id"],
            "account_number": row["account__account_number"],
            "code": row["account__code"],
            "name": row["account__name"],
            "type": account_type,
            "is_cash": row["account__is_cash"],
            "is_bank": row["account__is_bank"],
            "debit": row["debit"],
            "credit": row["credit"],
            "balance": Account.signed_balance_for(account_type, row["debit"], row["credit"]),
        })

    result.sort(key=lambda r: _number_key(r["account_number"]))
    return result


def trial_balance(as_of=None) -> Dict[str, Any]:
    """
    Trial balance.

    Totals are the raw debit and credit sums over every account (before
    netting). Each item also carries its net balance shown on the side it
    falls on:

        {
            "as_of": date | None,
            "items": [
                {"account_number", "code", "name", "type", "debit", "credit",
                 "balance", "normal_balance": {"side": "debit", "amount": ...}},
                ...
            ],
            "totals": {"total_debit", "total_credit", "difference", "is_balanced"},
        }
    """
    as_of = coerce_date(as_of)
    items = []
    total_debit = ZERO
    total_credit = ZERO

    for row in all_account_balances(as_of):
        normal_side = Account.NORMAL_BALANCE_MAP.get(row["type"], Account.NormalBalance.DEBIT)
        balance = row["balance"]

        # A negative balance shows on the opposite side
        if balance >= 0:
            side = normal_side
        elif normal_side == Account.NormalBalance.DEBIT:
            side = Account.NormalBalance.CREDIT
        else:
            side = Account.NormalBalance.DEBIT

        items.append({
            "account_number": row["account_number"],
            "code": row["code"],
            "name": row["name"],
            "type": row["type"],
            "debit": row["debit"],
            "credit": row["credit"],
            "balance": balance,
            "normal_balance": {"side": str(side), "amount": abs(balance)},
        })
        total_debit += row["debit"]
        total_credit += row["credit"]

    difference = total_debit - total_credit
    return {
        "as_of": as_of,
        "items": items,
        "totals": {
            "total_debit": total_debit,
            "total_credit": total_credit,
            "difference": difference,
            "is_balanced": abs(difference) < BALANCE_TOLERANCE,
        },
    }


def _bucket(rows, account_type: str) -> Dict[str, Any]:
    accounts = [
        {
            "account_number": r["account_number"],
            "code": r["code"],
            "name": r["name"],
            "balance": r["balance"],
        }
        for r in rows
        if r["type"] == account_type
    ]
    total = sum((a["balance"] for a in accounts), ZERO)
    return {"accounts": accounts, "total": total}


def balance_sheet(as_of=None) -> Dict[str, Any]:
    """
    Balance sheet.

    Assets = Liabilities + Equity + net income not yet closed to equity.
    """
    as_of = coerce_date(as_of)
    rows = all_account_balances(as_of)

    assets = _bucket(rows, Account.AccountType.ASSET)
    liabilities = _bucket(rows, Account.AccountType.LIABILITY)
    equity = _bucket(rows, Account.AccountType.EQUITY)

    net_income = (
        _bucket(rows, Account.AccountType.INCOME)["total"]
        - _bucket(rows, Account.AccountType.EXPENSE)["total"]
    )
    liabilities_and_equity = liabilities["total"] + equity["total"] + net_income
    difference = assets["total"] - liabilities_and_equity

    return {
        "as_of": as_of,
        "assets": assets,
        "liabilities": liabilities,
        "equity": equity,
        "net_income": net_income,
        "check": {
            "total_assets": assets["total"],
            "total_liabilities_and_equity": liabilities_and_equity,
            "difference": difference,
            "is_balanced": abs(difference) < BALANCE_TOLERANCE,
        },
    }


def profit_and_loss(as_of=None) -> Dict[str, Any]:
    """Income statement: net_profit = income - expense."""
    as_of = coerce_date(as_of)
    rows = all_account_balances(as_of)

    income = _bucket(rows, Account.AccountType.INCOME)
    expense = _bucket(rows, Account.AccountType.EXPENSE)
    net_profit = income["total"] - expense["total"]

    return {
        "as_of": as_of,
        "income": income,
        "expense": expense,
        "total_income": income["total"],
        "total_expense": expense["total"],
        "net_profit": net_profit,
        "net_loss": max(ZERO, expense["total"] - income["total"]),
    }


def signed_effect(account_type: str, debit: Decimal, credit: Decimal) -> Decimal:
    """Effect of one entry on a balance under the type's sign convention."""
    return Account.signed_balance_for(account_type, debit, credit)
