# ─────────────────────────────────────────────────────────────────────────────
# POST /api/generate-letter — public letter endpoint (THIN)
# ─────────────────────────────────────────────────────────────────────────────


from fastapi import APIRouter, Depends, Request, Response

from letter_edge.dependencies import get_letter_intake
from letter_edge.rate_limit import RateLimitResult, enforce_http_limit, enforce_rate_limit
from letter_edge.schemas import LetterRequest, LetterResponse
from letter_edge.security import generate_fingerprint, screen_request
from letter_edge.services.letters import LetterIntakeService

router = APIRouter()


@router.post(
    "/api/generate-letter",
    response_model=LetterResponse,
    # Route dependencies resolve before the endpoint's own, in this order
    dependencies=[Depends(screen_request), Depends(enforce_http_limit)],
)
async def generate_letter(
    request: Request,
    response: Response,
    body: LetterRequest,
    quota: RateLimitResult = Depends(enforce_rate_limit),
    intake: LetterIntakeService = Depends(get_letter_intake),
) -> LetterResponse:
    """Compose a letter for the visitor's representative.

    Order of checks: screen_request (kill switch, size, origin, bot) →
    HTTP ceiling → per-IP quota → abuse patterns → duplicate content →
    compose. This endpoint is just wiring.
    """
    letter = intake.submit(body, generate_fingerprint(request.headers))
    response.headers.update(quota.to_headers())
    return LetterResponse(letter=letter, country=body.country, remaining=quota.remaining)
