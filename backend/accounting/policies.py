# accounting/policies.py
"""
Business policy functions for ledger operations.

Policies answer: "Is this action allowed given the current state?"
They do NOT perform the action; that's the command's job.

Usage:
    from accounting.policies import can_delete_account

    allowed, reason = can_delete_account(account)
    if not allowed:
        raise Conflict(reason)

Design Principles:
1. Policies are pure functions (no side effects)
2. Policies return (bool, str) tuples for clear error messages
3. Policies check ONE thing conceptually
4. Commands compose policies as needed
"""

from decimal import Decimal
from enum import Enum


# All imbalance checks except the journal-voucher pre-check use this.
BALANCE_TOLERANCE = Decimal("0.01")


class AccountKind(str, Enum):
    CASH = "cash"
    BANK = "bank"
    OTHER = "other"


# =============================================================================
# Classification
# =============================================================================

def _names(segment: str, word: str) -> bool:
    return segment == word or segment.startswith(word + "_") or segment.endswith("_" + word)


def classify_account(code: str, account_type: str) -> AccountKind:
    """
    Classify an account as cash, bank or other from its code.

    Only asset accounts can be cash or bank. The code is split on "." and
    the segments after the type prefix are checked in order. The first
    segment that is CASH or BANK, or carries it as an underscore-separated
    prefix or suffix (CASH_DRAWER, PETTY_CASH), decides.

        ASSET.CASH          -> CASH
        ASSET.BANK_IBBL     -> BANK
        ASSET.PETTY_CASH    -> CASH
        LIABILITY.BANK_LOAN -> OTHER (not an asset)
        ASSET.CASHBACK      -> OTHER
    """
    if account_type != "asset":
        return AccountKind.OTHER

    segments = [s.strip().upper() for s in (code or "").split(".") if s.strip()]
    for segment in segments[1:] if len(segments) > 1 else segments:
        if _names(segment, "CASH"):
            return AccountKind.CASH
        if _names(segment, "BANK"):
            return AccountKind.BANK
    return AccountKind.OTHER


def resolve_cash_bank_flags(
    code: str,
    account_type: str,
    is_cash: bool | None,
    is_bank: bool | None,
) -> tuple[bool, bool]:
    """
    Fill unset (None) flags from classify_account().

    Explicit values always win. An inferred flag is never set when the
    other flag was explicitly requested true.
    """
    kind = classify_account(code, account_type)
    if is_cash is None:
        is_cash = kind == AccountKind.CASH and is_bank is not True
    if is_bank is None:
        is_bank = kind == AccountKind.BANK and is_cash is not True
    return bool(is_cash), bool(is_bank)


def check_cash_bank_flags(is_cash, is_bank) -> tuple[bool, str]:
    if is_cash and is_bank:
        return False, "An account cannot be both cash and bank at the same time."
    return True, ""


# =============================================================================
# Account Policies
# =============================================================================

def can_delete_account(account) -> tuple[bool, str]:
    """
    Check if an account can be deleted.

    Rules:
    - Cannot own any ledger entry
    """
    if account.entries.exists():
        return False, "Cannot delete account with existing journal entries."
    return True, ""


# =============================================================================
# Posting Policies
# =============================================================================

def check_positive_amount(amount: Decimal) -> tuple[bool, str]:
    if amount <= 0:
        return False, f"Amount must be greater than zero (got {amount})."
    return True, ""


def can_transfer_between(from_account, to_account) -> tuple[bool, str]:
    """
    Check if funds can move from one account to another.

    Rules:
    - Source and destination must differ
    - Both must be cash or bank accounts
    """
    if from_account.code == to_account.code:
        return False, "Cannot transfer to the same account."
    if not from_account.is_cash_or_bank:
        return False, "From Account must be Cash or Bank."
    if not to_account.is_cash_or_bank:
        return False, "To Account must be Cash or Bank."
    return True, ""


def is_material_imbalance(difference: Decimal) -> bool:
    """True when a debit/credit difference exceeds the 0.01 tolerance."""
    return abs(difference) > BALANCE_TOLERANCE


def is_balanced(total_debit: Decimal, total_credit: Decimal) -> bool:
    return abs(total_debit - total_credit) < BALANCE_TOLERANCE
