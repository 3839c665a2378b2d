"""
Prometheus-compatible counters for the review core.

Tracks:
- Aggregate cache lookups (by field and hit/miss/error)
- Cache invalidations (ok/error)
- Review writes (by kind and insert/update/upsert)
- Review store failures (by error class)

Usage:
    from ratekeeper.lib.metrics import get_metrics_collector

    metrics = get_metrics_collector()
    metrics.increment_cache_lookup(field="rating", result="hit")
    prometheus_output = metrics.export_prometheus()
"""

from typing import Dict, Tuple
from threading import Lock


class MetricsCollector:
    """
    Prometheus-style counter collector.

    Counters:
    - cache_requests_total: Cache lookups (labels: field, result)
    - cache_invalidations_total: Invalidation attempts (labels: result)
    - review_writes_total: Persisted reviews (labels: kind, operation)
    - store_errors_total: Failed store calls (labels: error)

    Thread-safe for concurrent increments.
    """

    def __init__(self):
        self._lock = Lock()

        # Counters: key = (metric_name, labels_tuple), value = count
        self._counters: Dict[Tuple[str, Tuple[Tuple[str, str], ...]], int] = {}

    def _get_counter_key(self, metric_name: str, labels: Dict[str, str]) -> Tuple[str, Tuple[Tuple[str, str], ...]]:
        """Generate unique key for counter with sorted labels."""
        sorted_labels = tuple(sorted(labels.items()))
        return (metric_name, sorted_labels)

    def _increment(self, metric_name: str, labels: Dict[str, str], amount: int = 1):
        key = self._get_counter_key(metric_name, labels)
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + amount

    def _get_value(self, metric_name: str, labels: Dict[str, str]) -> int:
        key = self._get_counter_key(metric_name, labels)
        with self._lock:
            return self._counters.get(key, 0)

    # ===== Cache Metrics =====

    def increment_cache_lookup(self, field: str, result: str, amount: int = 1):
        """
        Increment cache lookup counter.

        Args:
            field: Cached field (rating, count)
            result: Lookup outcome (hit, miss, error)
            amount: Increment amount (default 1)
        """
        labels = {
            "field": field.lower(),
            "result": result.lower(),
        }
        self._increment("cache_requests_total", labels, amount)

    def increment_cache_invalidation(self, result: str = "ok", amount: int = 1):
        self._increment("cache_invalidations_total", {"result": result.lower()}, amount)

    # ===== Store Metrics =====

    def increment_review_writes(self, kind: str, operation: str, amount: int = 1):
        """
        Increment persisted review counter.

        Args:
            kind: Review kind (user, server)
            operation: Write path taken (insert, update, upsert)
            amount: Increment amount
        """
        labels = {
            "kind": kind.lower(),
            "operation": operation.lower(),
        }
        self._increment("review_writes_total", labels, amount)

    def increment_store_errors(self, error: str, amount: int = 1):
        self._increment("store_errors_total", {"error": error}, amount)

    # ===== Export =====

    def export_prometheus(self) -> str:
        """
        Export all metrics in Prometheus text format.

        Returns:
            Prometheus-compatible text output
        """
        output_lines = []

        # Group counters by metric name
        metrics_by_name: Dict[str, list] = {}
        with self._lock:
            for (metric_name, labels_tuple), value in self._counters.items():
                metrics_by_name.setdefault(metric_name, []).append((dict(labels_tuple), value))

        for metric_name in sorted(metrics_by_name.keys()):
            help_text = self._get_help_text(metric_name)
            output_lines.append(f"# HELP {metric_name} {help_text}")
            output_lines.append(f"# TYPE {metric_name} counter")

            for labels_dict, value in sorted(metrics_by_name[metric_name], key=lambda x: str(x[0])):
                labels_str = ",".join([f'{k}="{v}"' for k, v in sorted(labels_dict.items())])
                output_lines.append(f"{metric_name}{{{labels_str}}} {value}")

            output_lines.append("")  # Blank line between metrics

        return "\n".join(output_lines)

    def _get_help_text(self, metric_name: str) -> str:
        help_texts = {
            "cache_requests_total": "Total number of aggregate cache lookups",
            "cache_invalidations_total": "Total number of aggregate cache invalidations",
            "review_writes_total": "Total number of reviews written to the store",
            "store_errors_total": "Total number of failed review store calls",
        }
        return help_texts.get(metric_name, "Counter metric")

    def get_counter_value(self, metric_name: str, labels: Dict[str, str]) -> int:
        """Get current value of a specific counter."""
        return self._get_value(metric_name, labels)

    def reset_all(self):
        """Reset all counters (for testing)."""
        with self._lock:
            self._counters.clear()


# Global singleton instance
_metrics_collector: MetricsCollector | None = None
_metrics_lock = Lock()


def get_metrics_collector() -> MetricsCollector:
    """
    Get global metrics collector singleton.

    Returns:
        MetricsCollector instance
    """
    global _metrics_collector
    if _metrics_collector is None:
        with _metrics_lock:
            if _metrics_collector is None:
                _metrics_collector = MetricsCollector()
    return _metrics_collector


def reset_metrics():
    """Reset global metrics collector (for testing)."""
    with _metrics_lock:
        if _metrics_collector is not None:
            _metrics_collector.reset_all()
