# ─────────────────────────────────────────────────────────────────────────────
# Health Check Routes — liveness, readiness, metrics
# ─────────────────────────────────────────────────────────────────────────────
#   /health        → Liveness probe. Near-zero cost, always 200.
#   /health/ready  → Readiness. 503 until lifespan state is in place.
#   /metrics       → Routing and admission counters (JSON).
# ─────────────────────────────────────────────────────────────────────────────

from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from letter_edge.dependencies import get_metrics
from letter_edge.schemas import LivenessResponse, ReadinessResponse
from letter_edge.services.metrics import EdgeMetrics

router = APIRouter()


@router.get("/health", response_model=LivenessResponse)
async def liveness() -> LivenessResponse:
    """Liveness probe — is the process alive? No deps, no I/O."""
    return LivenessResponse(status="ok")


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness(request: Request) -> JSONResponse:
    """Readiness probe — are the limiter and router wired up?"""
    state = request.app.state
    rate_limiter_ready = getattr(state, "rate_limiter", None) is not None
    geo_router_ready = getattr(state, "geo_router", None) is not None
    ready = rate_limiter_ready and geo_router_ready

    response = ReadinessResponse(
        status="ready" if ready else "not_ready",
        rate_limiter_ready=rate_limiter_ready,
        geo_router_ready=geo_router_ready,
    )
    return JSONResponse(status_code=200 if ready else 503, content=response.model_dump())


@router.get("/metrics")
async def metrics_endpoint(metrics: EdgeMetrics = Depends(get_metrics)) -> dict[str, Any]:
    return metrics.to_dict()
