# ─────────────────────────────────────────────────────────────────────────────
# Prometheus Metrics Endpoint — text exposition format
# ─────────────────────────────────────────────────────────────────────────────
# GET /metrics/prometheus → text/plain Prometheus format
# Bridges EdgeMetrics → prometheus-client gauges.
# ─────────────────────────────────────────────────────────────────────────────

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from prometheus_client import CollectorRegistry, Gauge, generate_latest

from letter_edge.dependencies import get_metrics
from letter_edge.rate_limit import RateLimiter, get_rate_limiter
from letter_edge.services.metrics import EdgeMetrics

router = APIRouter()

# ── Prometheus metrics (custom registry to avoid default process metrics) ─────

_registry = CollectorRegistry()

_redirects = Gauge(
    "letter_edge_geo_redirects",
    "Geo redirects issued since start",
    ["country", "source"],
    registry=_registry,
)

_passthrough = Gauge(
    "letter_edge_geo_passthrough",
    "Requests served without a geo redirect since start",
    registry=_registry,
)

_admissions = Gauge(
    "letter_edge_admissions",
    "Rate-limit decisions since start",
    ["outcome"],
    registry=_registry,
)

_security_rejections = Gauge(
    "letter_edge_security_rejections",
    "Requests rejected by origin/bot/abuse checks",
    ["reason"],
    registry=_registry,
)

_store_entries = Gauge(
    "letter_edge_rate_limit_store_entries",
    "Identifiers currently tracked by the rate limiter",
    registry=_registry,
)


def _sync_metrics(metrics: EdgeMetrics, rate_limiter: RateLimiter) -> None:
    """Sync EdgeMetrics data into Prometheus gauges."""
    data = metrics.to_dict()

    for source, count in data["redirects_by_source"].items():
        _redirects.labels(country="all", source=source).set(count)
    for country, count in data["redirects_by_country"].items():
        _redirects.labels(country=country, source="all").set(count)

    _passthrough.set(data["passthrough_total"])
    _admissions.labels(outcome="allowed").set(data["admissions_allowed"])
    _admissions.labels(outcome="rejected").set(data["admissions_rejected"])
    for reason, count in data["security_rejections"].items():
        _security_rejections.labels(reason=reason).set(count)
    _store_entries.set(len(rate_limiter.store))


@router.get("/metrics/prometheus")
async def prometheus_metrics(
    metrics: EdgeMetrics = Depends(get_metrics),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
) -> Response:
    """Prometheus text exposition format metrics endpoint."""
    _sync_metrics(metrics, rate_limiter)
    return Response(
        content=generate_latest(_registry),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
