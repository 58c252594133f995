# accounting/exceptions.py
"""
Error taxonomy for the ledger core.

Every failure raised by the directory, the posting engine, the reports and
the reconciliation diagnostics is a LedgerError subclass. Callers (HTTP
layer, management commands, other services) decide how to surface them;
the `code` attribute is stable and safe to put on the wire.

Nothing here is retried automatically.
"""


class LedgerError(Exception):
    """Base class for all ledger failures."""

    code = "ledger_error"

    def __init__(self, message: str = "", **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {"code": self.code, "detail": self.message, **self.details}


class NotFound(LedgerError):
    """Referenced account, transaction or entity does not exist."""

    code = "not_found"


class Conflict(LedgerError):
    """Duplicate code/name/account number, or delete of an account in use."""

    code = "conflict"


class InvalidArgument(LedgerError):
    """Contradictory flags, self-transfer, non-cash/bank transfer, bad amounts."""

    code = "invalid_argument"


class Unbalanced(LedgerError):
    """Journal voucher lines do not net to zero."""

    code = "unbalanced"


class AlreadyBalanced(LedgerError):
    """Repair requested on a transaction with no material imbalance."""

    code = "already_balanced"


class UnsupportedRepair(LedgerError):
    """No reconciler knows how to repair this transaction."""

    code = "unsupported_repair"
