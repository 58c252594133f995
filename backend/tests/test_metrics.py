# tests/test_metrics.py
"""
Tests for Prometheus metrics and structured logging.
"""

import json
import logging

import pytest

from accounting import commands
from ops import metrics
from ops.logging_config import JsonFormatter, get_logging_config


@pytest.mark.django_db
class TestCollectMetrics:

    def test_gauges_follow_database(self, basic_accounts, post_unbalanced):
        commands.add_cash(100, "seed")
        post_unbalanced("sale", [("ASSET.CASH", "10", "0")])

        values = metrics.collect_metrics()

        assert values == {"accounts": 8, "transactions": 2, "unbalanced_transactions": 1}
        assert metrics.get_sample_value("ledger_accounts") == 8
        assert metrics.get_sample_value("ledger_unbalanced_transactions") == 1

    def test_render_metrics(self, basic_accounts):
        text = metrics.render_metrics().decode()

        assert "# TYPE ledger_accounts gauge" in text
        assert "ledger_accounts 8.0" in text
        assert "ledger_transactions_posted" in text


def test_record_repair_counter():
    labels = {"reference_type": "probe", "outcome": "fixed"}
    before = metrics.get_sample_value("ledger_repairs_total", labels) or 0

    metrics.record_repair("probe", "fixed")

    assert metrics.get_sample_value("ledger_repairs_total", labels) == before + 1


class TestLogging:

    def test_json_formatter_includes_extra(self):
        record = logging.LogRecord(
            name="accounting.commands", level=logging.INFO, pathname=__file__, lineno=1,
            msg="Transaction posted", args=(), exc_info=None,
        )
        record.reference_type = "sale"
        record.legs = 2

        payload = json.loads(JsonFormatter().format(record))

        assert payload["level"] == "INFO"
        assert payload["logger"] == "accounting.commands"
        assert payload["message"] == "Transaction posted"
        assert payload["extra"] == {"reference_type": "sale", "legs": 2}
        assert payload["timestamp"].endswith("+00:00")

    def test_config_has_app_loggers(self, monkeypatch):
        monkeypatch.delenv("LOG_FORMAT", raising=False)
        monkeypatch.delenv("LOG_LEVEL", raising=False)

        config = get_logging_config(debug=False)

        assert config["handlers"]["console"]["formatter"] == "json"
        for name in ("accounting", "reports", "ops"):
            assert config["loggers"][name]["level"] == "INFO"

    def test_console_format_in_debug(self, monkeypatch):
        monkeypatch.delenv("LOG_FORMAT", raising=False)
        monkeypatch.setenv("LOG_LEVEL", "WARNING")

        config = get_logging_config(debug=True)

        assert config["handlers"]["console"]["formatter"] == "verbose"
        assert config["loggers"]["accounting"]["level"] == "WARNING"
