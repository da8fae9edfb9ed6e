# ─────────────────────────────────────────────────────────────────────────────
# Dependency Injection — FastAPI Depends() providers
# ─────────────────────────────────────────────────────────────────────────────
# State flows: lifespan creates → app.state stores → Depends() injects.
# The rate limiter's own provider lives in rate_limit.py next to
# enforce_rate_limit.
# ─────────────────────────────────────────────────────────────────────────────


from fastapi import Request

from letter_edge.geo_router import GeoRouter
from letter_edge.services.letters import LetterIntakeService
from letter_edge.services.metrics import EdgeMetrics


def get_geo_router(request: Request) -> GeoRouter:
    """Inject GeoRouter into endpoints via Depends()."""
    return request.app.state.geo_router  # type: ignore[no-any-return]


def get_metrics(request: Request) -> EdgeMetrics:
    """Inject EdgeMetrics into endpoints via Depends()."""
    return request.app.state.metrics  # type: ignore[no-any-return]


def get_letter_intake(request: Request) -> LetterIntakeService:
    """Inject LetterIntakeService into endpoints via Depends()."""
    return request.app.state.letter_intake  # type: ignore[no-any-return]
