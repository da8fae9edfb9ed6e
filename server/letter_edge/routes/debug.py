# ─────────────────────────────────────────────────────────────────────────────
# Debug Routes — inspect routing and admission state
# ─────────────────────────────────────────────────────────────────────────────
# Only mounted when settings.enable_debug_routes is True.
# ─────────────────────────────────────────────────────────────────────────────

from typing import Any

from fastapi import APIRouter, Depends, Request

from letter_edge.dependencies import get_geo_router
from letter_edge.geo_router import GeoRouter
from letter_edge.rate_limit import RateLimiter, get_client_ip, get_rate_limiter
from letter_edge.schemas import RoutingDecisionResponse

router = APIRouter()


@router.get("/routing", response_model=RoutingDecisionResponse)
async def routing_decision(
    request: Request,
    path: str = "/",
    geo_router: GeoRouter = Depends(get_geo_router),
) -> RoutingDecisionResponse:
    """What the geo router would do for `path` given this request's cookies and headers.

    Mounted at /debug/routing, which is itself excluded from routing.
    """
    decision = geo_router.decide(path, request.cookies, request.headers)
    if decision is None:
        return RoutingDecisionResponse(
            path=path,
            excluded=geo_router.is_excluded(path),
            country_path=geo_router.is_country_path(path),
        )
    return RoutingDecisionResponse(
        path=path,
        excluded=False,
        country_path=False,
        target_country=decision.target_country,
        source=decision.source,
        detected_country=decision.detected_country,
        redirect_to=geo_router.redirect_path(path, decision.target_country),
    )


@router.get("/rate-limit")
async def rate_limit_state(
    request: Request,
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
) -> dict[str, Any]:
    """Store size and the caller's own entry, without consuming quota."""
    client_ip = get_client_ip(request.headers)
    entry = rate_limiter.store.get(client_ip)
    config = rate_limiter.default_config
    return {
        "client_ip": client_ip,
        "store_entries": len(rate_limiter.store),
        "high_water_mark": rate_limiter.store.high_water_mark,
        "max_requests": config.max_requests,
        "window_seconds": config.window_seconds,
        "count": entry.count if entry else 0,
    }
