# accounting/filters.py
"""
Account filter shared by the directory listing and the balance reports.

Truth table for the cash/bank flags (None = not filtered):

    is_cash | is_bank | accounts returned              | ordering
    --------+---------+--------------------------------+---------------
    None    | None    | all                            | account_number
    True    | None    | cash                           | account_number
    False   | None    | not cash                       | account_number
    None    | True    | bank                           | account_number
    None    | False   | not bank                       | account_number
    True    | True    | cash OR bank                   | code
    True    | False   | cash AND not bank              | account_number
    False   | True    | not cash AND bank              | account_number
    False   | False   | neither cash nor bank          | account_number

account_type, when set, is always ANDed with the row above.
"""

from dataclasses import dataclass

from django.db.models import Q


@dataclass(frozen=True)
class AccountFilter:
    account_type: str | None = None
    is_cash: bool | None = None
    is_bank: bool | None = None

    @property
    def cash_or_bank(self) -> bool:
        """True for the one combination that ORs the flags."""
        return self.is_cash is True and self.is_bank is True

    def to_q(self, prefix: str = "") -> Q:
        """
        Build the Q object for this filter.

        Args:
            prefix: Lookup prefix when filtering a related model,
                    e.g. "account__" from Entry.
        """
        q = Q()
        if self.account_type:
            q &= Q(**{f"{prefix}account_type": self.account_type})

        if self.cash_or_bank:
            q &= Q(**{f"{prefix}is_cash": True}) | Q(**{f"{prefix}is_bank": True})
            return q

        if self.is_cash is not None:
            q &= Q(**{f"{prefix}is_cash": self.is_cash})
        if self.is_bank is not None:
            q &= Q(**{f"{prefix}is_bank": self.is_bank})
        return q

    @property
    def ordering(self) -> list[str]:
        if self.cash_or_bank:
            return ["code"]
        return ["account_number"]
