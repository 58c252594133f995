# accounting/management/commands/ledger_metrics.py
"""
Print ledger metrics in Prometheus exposition format.

Suitable for the node_exporter textfile collector:

    python manage.py ledger_metrics > /var/lib/node_exporter/ledger.prom
"""

from django.core.management.base import BaseCommand

from ops.metrics import render_metrics


class Command(BaseCommand):
    help = "Print ledger metrics in Prometheus text format"

    def handle(self, *args, **options):
        self.stdout.write(render_metrics().decode("utf-8"), ending="")
