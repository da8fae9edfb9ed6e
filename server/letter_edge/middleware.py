# ─────────────────────────────────────────────────────────────────────────────
# Request Middleware — request ID + timing, geo routing into country subtrees
# ─────────────────────────────────────────────────────────────────────────────


import time
import uuid
from typing import Any

import structlog
from starlette.datastructures import URL
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from letter_edge.geo_router import GeoRouter, RoutingDecision
from letter_edge.rate_limit import get_client_ip

logger = structlog.get_logger()


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tags every log line of a request with its id and client address.

    Probe traffic (/health) is not logged; the platform polls it constantly.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = uuid.uuid4().hex[:8]
        request.state.request_id = request_id
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            client_ip=get_client_ip(request.headers),
        )
        try:
            started = time.perf_counter()
            response: Response = await call_next(request)
            elapsed_ms = round((time.perf_counter() - started) * 1000, 1)

            if not request.url.path.startswith("/health"):
                logger.info(
                    "request_completed",
                    method=request.method,
                    path=request.url.path,
                    status=response.status_code,
                    duration_ms=elapsed_ms,
                )
        finally:
            structlog.contextvars.unbind_contextvars("request_id", "client_ip")

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time-Ms"] = str(elapsed_ms)
        return response


class GeoRoutingMiddleware(BaseHTTPMiddleware):
    """Redirects requests outside a country subtree to /{country}{path}.

    Never fails a request: every unknown input degrades to the default
    country inside GeoRouter.
    """

    def __init__(self, app: Any, *, router: GeoRouter) -> None:
        super().__init__(app)
        self._router = router

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        decision = self._router.decide(path, request.cookies, request.headers)
        metrics = getattr(request.app.state, "metrics", None)

        if decision is None:
            if metrics is not None:
                metrics.record_passthrough()
            return await call_next(request)

        target = self._redirect_url(request.url, decision)
        logger.info(
            "geo_redirect",
            path=path,
            target=target,
            source=decision.source,
            detected_country=decision.detected_country,
        )
        if metrics is not None:
            metrics.record_redirect(decision.target_country.value, decision.source)

        config = self._router.config
        response = RedirectResponse(target, status_code=config.redirect_status_code)
        if decision.source == "detected":
            # Readable by the client-side country switcher, which may override it
            response.set_cookie(
                config.detected_country_cookie,
                decision.target_country.value,
                max_age=config.detected_country_max_age,
                path="/",
                httponly=False,
                samesite="lax",
            )
        return response

    def _redirect_url(self, url: URL, decision: RoutingDecision) -> str:
        """Relative redirect target, query string preserved."""
        target = self._router.redirect_path(url.path, decision.target_country)
        return f"{target}?{url.query}" if url.query else target
