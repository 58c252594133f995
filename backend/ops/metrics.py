"""
Prometheus metrics for the ledger.

Metrics exposed:
- ledger_transactions_posted_total: Transactions posted, by reference type
- ledger_repairs_total: Repair attempts, by reference type and outcome
- ledger_unbalanced_transactions: Transactions with |debit - credit| > 0.01
- ledger_accounts: Accounts in the chart of accounts
- ledger_transactions: Transactions in the journal

Counters are updated inline by the posting engine and the reconciliation
path. Gauges are refreshed from the database by collect_metrics().
"""
import logging

from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest
from prometheus_client import CONTENT_TYPE_LATEST

logger = logging.getLogger(__name__)

CONTENT_TYPE = CONTENT_TYPE_LATEST

# Ledger metrics live in their own registry so exposition only carries them.
REGISTRY = CollectorRegistry()

_metrics_initialized = False

# Metric references (initialized lazily)
_transactions_posted = None
_repairs_total = None
_unbalanced_transactions = None
_accounts_total = None
_transactions_total = None


def _init_prometheus():
    """Initialize Prometheus metrics (lazy)."""
    global _metrics_initialized
    global _transactions_posted, _repairs_total
    global _unbalanced_transactions, _accounts_total, _transactions_total

    if _metrics_initialized:
        return

    _transactions_posted = Counter(
        "ledger_transactions_posted",
        "Number of ledger transactions posted",
        ["reference_type"],
        registry=REGISTRY,
    )

    _repairs_total = Counter(
        "ledger_repairs",
        "Reconciliation repair attempts",
        ["reference_type", "outcome"],
        registry=REGISTRY,
    )

    _unbalanced_transactions = Gauge(
        "ledger_unbalanced_transactions",
        "Transactions whose debits and credits differ by more than 0.01",
        registry=REGISTRY,
    )

    _accounts_total = Gauge(
        "ledger_accounts",
        "Accounts in the chart of accounts",
        registry=REGISTRY,
    )

    _transactions_total = Gauge(
        "ledger_transactions",
        "Transactions in the journal",
        registry=REGISTRY,
    )

    _metrics_initialized = True
    logger.info("Prometheus metrics initialized")


def record_posting(reference_type: str) -> None:
    _init_prometheus()
    _transactions_posted.labels(reference_type=reference_type).inc()


def record_repair(reference_type: str, outcome: str) -> None:
    _init_prometheus()
    _repairs_total.labels(reference_type=reference_type, outcome=outcome).inc()


def collect_metrics() -> dict:
    """
    Refresh gauges from the database.

    Returns the values that were set, so callers (the ledger_metrics
    management command, tests) can use them without scraping.
    """
    _init_prometheus()

    from accounting.models import Account, LedgerTransaction
    from accounting.reconciliation import find_unbalanced_transactions

    accounts = Account.objects.count()
    transactions = LedgerTransaction.objects.count()
    unbalanced = find_unbalanced_transactions()["unbalanced_count"]

    _accounts_total.set(accounts)
    _transactions_total.set(transactions)
    _unbalanced_transactions.set(unbalanced)

    return {
        "accounts": accounts,
        "transactions": transactions,
        "unbalanced_transactions": unbalanced,
    }


def render_metrics() -> bytes:
    """Collect current values and return Prometheus exposition bytes."""
    collect_metrics()
    return generate_latest(REGISTRY)


def get_sample_value(name: str, labels: dict | None = None):
    """Read one sample from the ledger registry (None if never observed)."""
    _init_prometheus()
    return REGISTRY.get_sample_value(name, labels or {})
