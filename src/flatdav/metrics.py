"""Prometheus metrics definitions for flatdav.

All custom flatdav metrics use the ``flatdav_`` prefix for namespace
isolation. These are *application-level* DAV operation metrics; the
``prometheus-fastapi-instrumentator`` package provides automatic HTTP-level
metrics (request count, duration, sizes).

Counters reset to zero on restart. Prometheus handles gaps via ``rate()``.
"""

from __future__ import annotations

from prometheus_client import Counter

# Flag indicating whether metrics have been initialised via init_metrics().
_initialized: bool = False

# ---------------------------------------------------------------------------
# DAV operation counter  (labels: method, status)
# ---------------------------------------------------------------------------
dav_operations_total: Counter | None = None

# ---------------------------------------------------------------------------
# Byte counters
# ---------------------------------------------------------------------------
bytes_received_total: Counter | None = None
bytes_sent_total: Counter | None = None


def init_metrics() -> None:
    """Create and register all Prometheus metrics.

    This must be called once when metrics are enabled. When metrics are
    disabled in config the module-level references stay ``None`` and no
    collectors are registered in the global registry.
    """
    global _initialized
    global dav_operations_total, bytes_received_total, bytes_sent_total

    if _initialized:
        return

    dav_operations_total = Counter(
        "flatdav_dav_operations_total",
        "Total DAV operations by method and response status",
        ["method", "status"],
    )

    bytes_received_total = Counter(
        "flatdav_bytes_received_total",
        "Total bytes received in request bodies",
    )

    bytes_sent_total = Counter(
        "flatdav_bytes_sent_total",
        "Total bytes sent in response bodies",
    )

    _initialized = True


def record_operation(method: str, status: int) -> None:
    """Count one DAV operation. No-op when metrics are disabled."""
    if dav_operations_total is not None:
        dav_operations_total.labels(method=method, status=str(status)).inc()
