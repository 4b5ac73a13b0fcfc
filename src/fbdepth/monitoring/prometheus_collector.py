"""
Prometheus metrics for fbdepth runs.

fbdepth is a one-shot tool, so instead of serving metrics over HTTP it can
write them out for node-exporter's textfile collector at the end of a run.
"""

import logging
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, write_to_textfile

logger = logging.getLogger(__name__)


class ReconcileMetrics:
    """Collects metrics for a single reconciliation run."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize the metrics on a private registry."""
        self.registry = registry or CollectorRegistry()

        self.reconcile_total = Counter(
            'fbdepth_reconcile_total',
            'Reconciliation passes by outcome',
            ['outcome'],
            registry=self.registry
        )

        self.changes_total = Counter(
            'fbdepth_changes_total',
            'Framebuffer mode changes by kind',
            ['kind'],
            registry=self.registry
        )

        self.apply_duration = Histogram(
            'fbdepth_apply_duration_seconds',
            'Time taken to switch the framebuffer mode',
            buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, float('inf')),
            registry=self.registry
        )

        self.bitdepth = Gauge(
            'fbdepth_bitdepth_bits',
            'Framebuffer bitdepth after the run',
            registry=self.registry
        )

        self.rotation = Gauge(
            'fbdepth_rotation_native',
            'Native framebuffer rotation after the run',
            registry=self.registry
        )

        self.grayscale = Gauge(
            'fbdepth_grayscale_flag',
            'Framebuffer grayscale flag after the run',
            registry=self.registry
        )

    def record_outcome(self, outcome: str):
        """Record how a pass ended (noop, applied or failed)."""
        self.reconcile_total.labels(outcome=outcome).inc()
        logger.debug(f"Recorded reconcile outcome: {outcome}")

    def record_changes(self, verdict):
        """Record which parts of the mode were changed."""
        for kind in verdict.changed_kinds():
            self.changes_total.labels(kind=kind).inc()

    def record_apply_duration(self, seconds: float):
        """Record how long the mode switch took."""
        self.apply_duration.observe(seconds)

    def record_snapshot(self, snapshot):
        """Record the final framebuffer state."""
        if snapshot is None:
            return
        self.bitdepth.set(snapshot.bitdepth)
        self.rotation.set(snapshot.current_rotation)
        self.grayscale.set(snapshot.grayscale)

    def write_textfile(self, path: str) -> bool:
        """Write the metrics to path. Failures are logged, never raised."""
        try:
            write_to_textfile(path, self.registry)
            logger.debug(f"Wrote metrics to {path}")
            return True
        except OSError as e:
            logger.warning(f"Failed to write metrics to {path}: {e}")
            return False
