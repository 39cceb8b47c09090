"""Prometheus metrics for kubeident.

Usage::

    from kubeident.observability.metrics import resolutions_total

    resolutions_total.labels(side="source", outcome="resolved").inc()
"""

from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, Counter, Gauge, generate_latest

# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

resolutions_total = Counter(
    "kubeident_resolutions_total",
    "Per-side lookups by outcome (resolved, not_found, malformed, skipped).",
    labelnames=["side", "outcome"],
    registry=REGISTRY,
)

# ---------------------------------------------------------------------------
# Workload cache
# ---------------------------------------------------------------------------

cache_events_total = Counter(
    "kubeident_cache_events_total",
    "Workload feed events applied to the cache, by event type.",
    labelnames=["type"],
    registry=REGISTRY,
)

cache_workloads = Gauge(
    "kubeident_cache_workloads",
    "Number of workload records currently held in the cache.",
    registry=REGISTRY,
)

cache_synced = Gauge(
    "kubeident_cache_synced",
    "1 once the initial workload listing has been applied, 0 otherwise.",
    registry=REGISTRY,
)

cache_sync_restarts_total = Counter(
    "kubeident_cache_sync_restarts_total",
    "Times the sync loop had to relist or re-watch, by reason.",
    labelnames=["reason"],
    registry=REGISTRY,
)


def render_latest() -> tuple[bytes, str]:
    """Return the exposition payload and its content type."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
