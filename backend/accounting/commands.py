# accounting/commands.py
"""
Command layer for ledger operations.

Commands are the single point where ledger state changes happen.
Callers (HTTP layer, management commands, other services) call commands;
commands enforce rules and write rows.

Pattern:
1. Resolve everything the operation references (NotFound)
2. Apply business policies (can_* / check_*)
3. Perform the operation inside transaction.atomic()
4. Log and record metrics
5. Return the model instance

Failures raise LedgerError subclasses (see accounting.exceptions) and leave
no partial writes behind.
"""

import logging
from decimal import Decimal, InvalidOperation

from django.db import IntegrityError, transaction

from accounting.exceptions import (
    Conflict,
    InvalidArgument,
    NotFound,
    Unbalanced,
)
from accounting.filters import AccountFilter
from accounting.models import (
    ZERO,
    Account,
    Entry,
    LedgerTransaction,
    ReferenceSequence,
    to_amount,
)
from accounting.policies import (
    can_delete_account,
    can_transfer_between,
    check_cash_bank_flags,
    check_positive_amount,
    resolve_cash_bank_flags,
)
from accounting.write_barrier import sequence_writes_allowed
from ops.metrics import record_posting

logger = logging.getLogger(__name__)


# Well-known account codes
CASH_ACCOUNT = "ASSET.CASH"
CAPITAL_ACCOUNT = "EQUITY.CAPITAL"
OPENING_BALANCE_ACCOUNT = "EQUITY.OPENING_BALANCE"
SUPPLIER_ACCOUNT_PREFIX = "LIABILITY.SUPPLIER."
CUSTOMER_ACCOUNT_PREFIX = "AR.CUSTOMER."

# Reference types
OPENING_BALANCE = "opening_balance"
CASH_ADDITION = "cash_addition"
BANK_BALANCE_ADDITION = "bank_balance_addition"
FUND_TRANSFER = "fund_transfer"
MANUAL_JOURNAL = "manual_journal"

# Cash and bank capital injections share one id sequence.
CAPITAL_SEQUENCE = "cash_addition"
CAPITAL_SEQUENCE_TYPES = (CASH_ADDITION, BANK_BALANCE_ADDITION)

MAX_ALLOCATION_ATTEMPTS = 5

# Entry amounts are DECIMAL(12, 2)
AMOUNT_LIMIT = Decimal(10) ** 10

BASIC_ACCOUNTS = (
    {"code": "ASSET.CASH", "name": "Cash", "account_type": "asset", "is_cash": True},
    {"code": "ASSET.BANK_IBBL", "name": "Bank Account", "account_type": "asset", "is_bank": True},
    {"code": "ASSET.INVENTORY", "name": "Inventory", "account_type": "asset"},
    {"code": "INCOME.SALES", "name": "Sales Revenue", "account_type": "income"},
    {"code": "EXPENSE.COGS", "name": "Cost of Goods Sold", "account_type": "expense"},
    {"code": "EXPENSE.SALES_DISCOUNT", "name": "Sales Discount Expense", "account_type": "expense"},
    {"code": "EQUITY.CAPITAL", "name": "Owner Capital", "account_type": "equity"},
    {"code": "LIABILITY.ACCOUNTS_PAYABLE", "name": "Accounts Payable", "account_type": "liability"},
)

UPDATABLE_ACCOUNT_FIELDS = {"code", "name", "account_number", "account_type", "is_cash", "is_bank"}


def _parse_amount(value, field: str = "amount") -> Decimal:
    try:
        amount = to_amount(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidArgument(f"{field} must be a number (got {value!r}).", field=field)
    if not amount.is_finite():
        raise InvalidArgument(f"{field} must be a finite number (got {value!r}).", field=field)
    if abs(amount) >= AMOUNT_LIMIT:
        raise InvalidArgument(f"{field} must be below {AMOUNT_LIMIT:,} (got {amount}).", field=field)
    return amount


def _require_positive(amount) -> Decimal:
    amount = _parse_amount(amount)
    allowed, reason = check_positive_amount(amount)
    if not allowed:
        raise InvalidArgument(reason, field="amount")
    return amount


def _next_reference_id(name: str, reference_types=()) -> int:
    """
    Allocate the next reference id for a named sequence.
    Uses select_for_update to avoid concurrent duplicates.

    A sequence row created for the first time starts after the highest
    reference_id already posted under `reference_types`.
    """
    with sequence_writes_allowed():
        try:
            seq = ReferenceSequence.objects.select_for_update().get(name=name)
        except ReferenceSequence.DoesNotExist:
            existing = (
                LedgerTransaction.objects
                .filter(reference_type__in=reference_types or (name,))
                .order_by("-reference_id")
                .values_list("reference_id", flat=True)
                .first()
            )
            try:
                with transaction.atomic():
                    seq = ReferenceSequence.objects.create(
                        name=name,
                        next_value=(existing or 0) + 1,
                    )
            except IntegrityError:
                seq = ReferenceSequence.objects.select_for_update().get(name=name)

        value = seq.next_value
        seq.next_value = value + 1
        seq.save(update_fields=["next_value", "updated_at"])
        return value


# =============================================================================
# Account Number Allocation
# =============================================================================

def _next_account_number(account_type: str, minimum: int | None = None) -> str:
    """
    Next free account number within the type's reserved range.

    Takes max + 1 over the numeric account numbers already in the range,
    never going below `minimum` (default: range start + 1).
    """
    first, last = Account.NUMBER_RANGES[account_type]
    floor = minimum if minimum is not None else first + 1

    highest = None
    numbers = Account.objects.filter(
        account_number__regex=r"^[0-9]+$",
    ).values_list("account_number", flat=True)
    for number in numbers:
        value = int(number)
        if first <= value <= last and (highest is None or value > highest):
            highest = value

    candidate = floor if highest is None else max(highest + 1, floor)
    if candidate > last:
        raise Conflict(
            f"No account numbers left in range {first}-{last} for {account_type} accounts.",
            account_type=account_type,
        )
    return str(candidate)


def _check_unique(code=None, name=None, account_number=None, exclude_id=None):
    qs = Account.objects.all()
    if exclude_id is not None:
        qs = qs.exclude(pk=exclude_id)
    if code is not None and qs.filter(code=code).exists():
        raise Conflict(f"Account code '{code}' already exists.", field="code")
    if name is not None and qs.filter(name=name).exists():
        raise Conflict(f"Account name '{name}' already exists.", field="name")
    if account_number is not None and qs.filter(account_number=account_number).exists():
        raise Conflict(
            f"Account number '{account_number}' already exists.",
            field="account_number",
        )


def _insert_account(
    code: str,
    name: str,
    account_type: str,
    is_cash: bool,
    is_bank: bool,
    account_number: str | None = None,
    minimum_number: int | None = None,
) -> Account:
    """
    Insert an account, allocating its number when none is given.

    Allocated numbers are inserted inside a savepoint; a racing insert of
    the same number is retried up to MAX_ALLOCATION_ATTEMPTS times.
    """
    explicit_number = account_number is not None
    attempts = 1 if explicit_number else MAX_ALLOCATION_ATTEMPTS

    for attempt in range(1, attempts + 1):
        number = account_number if explicit_number else _next_account_number(
            account_type, minimum_number,
        )
        try:
            with transaction.atomic():
                return Account.objects.create(
                    account_number=number,
                    code=code,
                    name=name,
                    account_type=account_type,
                    is_cash=is_cash,
                    is_bank=is_bank,
                )
        except IntegrityError:
            # A code/name clash is a real conflict; a number clash is a race.
            _check_unique(code=code, name=name)
            if explicit_number:
                _check_unique(account_number=number)
                raise
            logger.warning(
                "Account number collision, retrying",
                extra={"account_type": account_type, "account_number": number, "attempt": attempt},
            )

    raise Conflict(
        f"Could not allocate an account number for {account_type} after {attempts} attempts.",
        account_type=account_type,
    )


# =============================================================================
# Account Commands
# =============================================================================

@transaction.atomic
def create_account(
    code: str,
    name: str,
    account_type: str,
    account_number: str | None = None,
    is_cash: bool | None = None,
    is_bank: bool | None = None,
) -> Account:
    """
    Create a new account in the chart of accounts.

    Args:
        code: Account code, e.g. "ASSET.CASH" (unique)
        name: Display name (unique)
        account_type: One of Account.AccountType values
        account_number: Unique number; allocated from the type's range if omitted
        is_cash / is_bank: Cash/bank flags; inferred from the code when None

    Raises:
        Conflict: code, name or account_number already taken
        InvalidArgument: both flags requested, or unknown account type
    """
    if account_type not in Account.AccountType.values:
        raise InvalidArgument(f"Unknown account type: {account_type}", field="account_type")

    allowed, reason = check_cash_bank_flags(is_cash, is_bank)
    if not allowed:
        raise InvalidArgument(reason)

    _check_unique(code=code, name=name, account_number=account_number)

    is_cash, is_bank = resolve_cash_bank_flags(code, account_type, is_cash, is_bank)

    account = _insert_account(
        code=code,
        name=name,
        account_type=account_type,
        is_cash=is_cash,
        is_bank=is_bank,
        account_number=account_number,
    )
    logger.info(
        "Account created",
        extra={"account_code": code, "account_number": account.account_number},
    )
    return account


def find_by_code(code: str) -> Account | None:
    return Account.objects.filter(code=code).first()


def get_account(account_id: int) -> Account:
    try:
        return Account.objects.get(pk=account_id)
    except Account.DoesNotExist:
        raise NotFound(f"Account {account_id} not found.", account_id=account_id)


def get_account_by_code(code: str) -> Account:
    account = find_by_code(code)
    if account is None:
        raise NotFound(f"Account '{code}' not found.", account_code=code)
    return account


@transaction.atomic
def update_account(account_id: int, **patch) -> Account:
    """
    Update an account.

    Only code, name, account_number, account_type, is_cash and is_bank may
    change. Uniqueness and cash/bank exclusivity are checked against the
    resulting row.
    """
    unknown = set(patch) - UPDATABLE_ACCOUNT_FIELDS
    if unknown:
        raise InvalidArgument(
            f"Cannot update fields: {', '.join(sorted(unknown))}",
            fields=sorted(unknown),
        )

    try:
        account = Account.objects.select_for_update().get(pk=account_id)
    except Account.DoesNotExist:
        raise NotFound(f"Account {account_id} not found.", account_id=account_id)

    if "account_type" in patch and patch["account_type"] not in Account.AccountType.values:
        raise InvalidArgument(f"Unknown account type: {patch['account_type']}", field="account_type")

    is_cash = patch.get("is_cash", account.is_cash)
    is_bank = patch.get("is_bank", account.is_bank)
    allowed, reason = check_cash_bank_flags(is_cash, is_bank)
    if not allowed:
        raise InvalidArgument(reason)

    _check_unique(
        code=patch.get("code"),
        name=patch.get("name"),
        account_number=patch.get("account_number"),
        exclude_id=account.pk,
    )

    for field, value in patch.items():
        setattr(account, field, value)

    try:
        with transaction.atomic():
            account.save()
    except IntegrityError:
        raise Conflict("Account update violates a uniqueness constraint.", account_id=account_id)

    logger.info("Account updated", extra={"account_id": account.pk, "fields": sorted(patch)})
    return account


@transaction.atomic
def delete_account(account_id: int) -> dict:
    """
    Delete an account.

    Raises:
        NotFound: no such account
        Conflict: the account owns at least one entry
    """
    try:
        account = Account.objects.select_for_update().get(pk=account_id)
    except Account.DoesNotExist:
        raise NotFound(f"Account {account_id} not found.", account_id=account_id)

    allowed, reason = can_delete_account(account)
    if not allowed:
        raise Conflict(reason, account_id=account_id)

    code = account.code
    account.delete()
    logger.info("Account deleted", extra={"account_id": account_id, "account_code": code})
    return {"deleted": True, "id": account_id, "code": code}


def list_accounts(account_filter: AccountFilter | None = None):
    """Accounts matching the filter; see AccountFilter for the truth table."""
    account_filter = account_filter or AccountFilter()
    return Account.objects.filter(account_filter.to_q()).order_by(*account_filter.ordering)


def _get_or_create_system_account(
    code: str,
    name: str,
    account_type: str,
    minimum_number: int | None = None,
) -> Account:
    """Return the account with `code`, creating it on first use."""
    account = find_by_code(code)
    if account is not None:
        return account

    try:
        account = _insert_account(
            code=code,
            name=name,
            account_type=account_type,
            is_cash=False,
            is_bank=False,
            minimum_number=minimum_number,
        )
    except Conflict:
        # A concurrent caller created the same code first
        account = find_by_code(code)
        if account is None:
            raise
        return account

    logger.info(
        "Account auto-created",
        extra={"account_code": code, "account_number": account.account_number},
    )
    return account


@transaction.atomic
def auto_create_expense_account(code: str, name: str) -> Account:
    """Expense account for `code`, numbered from 5001 upwards."""
    return _get_or_create_system_account(code, name, Account.AccountType.EXPENSE, minimum_number=5001)


@transaction.atomic
def get_or_create_supplier_account(supplier_id: int, name: str) -> Account:
    """
    Payable account for a supplier.

    2001 is reserved for general payables, so supplier accounts start at 2002.
    """
    return _get_or_create_system_account(
        f"{SUPPLIER_ACCOUNT_PREFIX}{supplier_id}",
        f"Supplier - {name}",
        Account.AccountType.LIABILITY,
        minimum_number=2002,
    )


@transaction.atomic
def get_or_create_customer_account(customer_id: int, name: str) -> Account:
    """Receivable account for a customer."""
    return _get_or_create_system_account(
        f"{CUSTOMER_ACCOUNT_PREFIX}{customer_id}",
        f"{name} Receivable",
        Account.AccountType.ASSET,
    )


@transaction.atomic
def ensure_basic_accounts() -> dict:
    """
    Seed the foundational chart of accounts.

    Idempotent: accounts whose code already exists are left untouched.
    """
    created, existing = [], []
    for spec in BASIC_ACCOUNTS:
        if find_by_code(spec["code"]) is not None:
            existing.append(spec["code"])
            continue
        _insert_account(
            code=spec["code"],
            name=spec["name"],
            account_type=spec["account_type"],
            is_cash=spec.get("is_cash", False),
            is_bank=spec.get("is_bank", False),
        )
        created.append(spec["code"])

    logger.info(
        "Basic accounts ensured",
        extra={"created_codes": created, "existing_codes": existing},
    )
    return {"created": created, "existing": existing}


# =============================================================================
# Posting Commands
# =============================================================================

def _resolve_legs(legs) -> list[tuple[Account, Decimal, Decimal, str | None]]:
    """Resolve every leg's account before anything is written."""
    legs = list(legs or [])
    if not legs:
        raise InvalidArgument("A transaction needs at least one entry.")

    codes = {leg["account_code"] for leg in legs}
    accounts = {a.code: a for a in Account.objects.filter(code__in=codes)}

    resolved = []
    for leg in legs:
        code = leg["account_code"]
        account = accounts.get(code)
        if account is None:
            raise NotFound(f"Account '{code}' not found.", account_code=code)

        debit = _parse_amount(leg.get("debit"), "debit")
        credit = _parse_amount(leg.get("credit"), "credit")
        if debit < ZERO or credit < ZERO:
            raise InvalidArgument(
                f"Entry amounts must be non-negative (account {code}).",
                account_code=code,
            )
        resolved.append((account, debit, credit, leg.get("narration")))
    return resolved


@transaction.atomic
def post_transaction(
    reference_type: str,
    reference_id: int,
    legs,
    created_at=None,
) -> LedgerTransaction:
    """
    Post one transaction with one entry per leg.

    Args:
        reference_type: Tag of the business event ("sale", "fund_transfer", ...)
        reference_id: External record id, 0 when there is none
        legs: Iterable of {account_code, debit, credit, narration?}
        created_at: Override the timestamp (defaults to now)

    All legs are resolved first; the transaction and its entries are then
    written together or not at all. Debit/credit balance is the caller's
    responsibility.
    """
    resolved = _resolve_legs(legs)

    tx_kwargs = {"reference_type": reference_type, "reference_id": reference_id or 0}
    if created_at is not None:
        tx_kwargs["created_at"] = created_at
    tx = LedgerTransaction.objects.create(**tx_kwargs)

    Entry.objects.bulk_create([
        Entry(
            transaction=tx,
            account=account,
            debit=debit,
            credit=credit,
            narration=narration,
        )
        for account, debit, credit, narration in resolved
    ])

    transaction.on_commit(lambda: record_posting(reference_type))
    logger.info(
        "Transaction posted",
        extra={
            "transaction_id": tx.pk,
            "reference_type": reference_type,
            "reference_id": tx.reference_id,
            "legs": len(resolved),
        },
    )
    return tx


@transaction.atomic
def create_opening_balance(account_code: str, amount) -> LedgerTransaction:
    """Debit `account_code`, credit Opening Balance Equity."""
    amount = _require_positive(amount)
    get_account_by_code(account_code)
    _get_or_create_system_account(
        OPENING_BALANCE_ACCOUNT, "Opening Balance Equity", Account.AccountType.EQUITY,
    )

    return post_transaction(OPENING_BALANCE, 0, [
        {"account_code": account_code, "debit": amount, "credit": ZERO,
         "narration": "Opening balance"},
        {"account_code": OPENING_BALANCE_ACCOUNT, "debit": ZERO, "credit": amount,
         "narration": "Opening balance"},
    ])


def _post_capital(reference_type: str, asset_code: str, amount: Decimal, narration) -> LedgerTransaction:
    _get_or_create_system_account(CAPITAL_ACCOUNT, "Owner Capital", Account.AccountType.EQUITY)
    reference_id = _next_reference_id(CAPITAL_SEQUENCE, CAPITAL_SEQUENCE_TYPES)

    return post_transaction(reference_type, reference_id, [
        {"account_code": asset_code, "debit": amount, "credit": ZERO, "narration": narration},
        {"account_code": CAPITAL_ACCOUNT, "debit": ZERO, "credit": amount, "narration": narration},
    ])


@transaction.atomic
def add_cash(amount, narration: str | None = None) -> LedgerTransaction:
    """Owner capital injected as cash."""
    amount = _require_positive(amount)
    get_account_by_code(CASH_ACCOUNT)
    return _post_capital(CASH_ADDITION, CASH_ACCOUNT, amount, narration)


@transaction.atomic
def add_bank_balance(bank_account_code: str, amount, narration: str | None = None) -> LedgerTransaction:
    """Owner capital deposited into a bank account."""
    amount = _require_positive(amount)
    get_account_by_code(bank_account_code)
    return _post_capital(BANK_BALANCE_ADDITION, bank_account_code, amount, narration)


@transaction.atomic
def transfer_funds(from_code: str, to_code: str, amount, narration: str | None = None) -> LedgerTransaction:
    """
    Move money between two cash/bank accounts.

    Raises:
        InvalidArgument: same account, or either side is not cash/bank
        NotFound: unknown account code
    """
    amount = _require_positive(amount)
    if from_code == to_code:
        raise InvalidArgument("Cannot transfer to the same account.")

    from_account = get_account_by_code(from_code)
    to_account = get_account_by_code(to_code)

    allowed, reason = can_transfer_between(from_account, to_account)
    if not allowed:
        raise InvalidArgument(reason, from_code=from_code, to_code=to_code)

    return post_transaction(FUND_TRANSFER, 0, [
        {"account_code": to_code, "debit": amount, "credit": ZERO, "narration": narration},
        {"account_code": from_code, "debit": ZERO, "credit": amount, "narration": narration},
    ])


@transaction.atomic
def create_journal_voucher(
    lines,
    reference_type: str = MANUAL_JOURNAL,
    reference_id: int = 0,
) -> LedgerTransaction:
    """
    Post a manual journal voucher.

    Debits must equal credits exactly; this is checked before anything is
    resolved or written.
    """
    lines = list(lines or [])
    total_debit = sum((_parse_amount(line.get("debit"), "debit") for line in lines), ZERO)
    total_credit = sum((_parse_amount(line.get("credit"), "credit") for line in lines), ZERO)
    if total_debit != total_credit:
        raise Unbalanced(
            f"Journal voucher is not balanced: debit {total_debit} != credit {total_credit}.",
            total_debit=str(total_debit),
            total_credit=str(total_credit),
        )

    return post_transaction(reference_type, reference_id, lines)

