# ─────────────────────────────────────────────────────────────────────────────
# Custom Exceptions + FastAPI Exception Handlers
# ─────────────────────────────────────────────────────────────────────────────


import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)


# ── Exception hierarchy ──────────────────────────────────────────────────────


class LetterToolError(Exception):
    """Base exception for all letter-edge errors."""

    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ServiceDisabledError(LetterToolError):
    """Raised when the API kill switch is on."""

    def __init__(self) -> None:
        super().__init__("The service is temporarily unavailable.", status_code=503)


class PayloadTooLargeError(LetterToolError):
    def __init__(self, size: int, limit: int):
        super().__init__(f"Request body of {size} bytes exceeds {limit} bytes", status_code=413)


class ForbiddenRequestError(LetterToolError):
    """Raised when origin, bot, or abuse checks reject a request.

    `reason` is logged but never returned to the client.
    """

    def __init__(self, message: str, reason: str):
        self.reason = reason
        super().__init__(message, status_code=403)


class DuplicateContentError(LetterToolError):
    def __init__(self) -> None:
        super().__init__(
            "This letter was already generated several times. Please personalise it.",
            status_code=429,
        )


class RateLimitExceededError(LetterToolError):
    """Raised when a client exhausts its admission quota.

    Carries the limiter headers so the handler can tell the client exactly
    when to retry.
    """

    def __init__(self, reset_in: int, headers: dict[str, str]):
        self.reset_in = reset_in
        self.headers = headers
        super().__init__(
            f"Too many requests. Please wait {reset_in} seconds.",
            status_code=429,
        )


# ── Handler registration ────────────────────────────────────────────────────


def register_exception_handlers(app: FastAPI) -> None:
    """Register all custom exception handlers on the FastAPI app.

    Endpoints raise LetterToolError subclasses; these handlers catch them
    and return structured JSON -- no inline try/except in endpoints.
    """

    @app.exception_handler(RateLimitExceededError)
    async def rate_limit_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
        """429 with Retry-After and X-RateLimit-* headers."""
        logger.warning(
            "rate_limited_response",
            path=request.url.path,
            retry_after=exc.reset_in,
        )
        return JSONResponse(
            status_code=429,
            content={"error": exc.message, "type": "RateLimitExceededError"},
            headers=exc.headers,
        )

    @app.exception_handler(ForbiddenRequestError)
    async def forbidden_handler(request: Request, exc: ForbiddenRequestError) -> JSONResponse:
        logger.warning("request_rejected", path=request.url.path, reason=exc.reason)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "type": type(exc).__name__},
        )

    @app.exception_handler(LetterToolError)
    async def letter_tool_error_handler(request: Request, exc: LetterToolError) -> JSONResponse:
        logger.error("letter_tool_error", error=exc.message, error_type=type(exc).__name__)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "type": type(exc).__name__},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled_error", error=str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "type": "UnhandledError"},
        )
