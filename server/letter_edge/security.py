# ─────────────────────────────────────────────────────────────────────────────
# Request Security — origin checks, bot heuristics, abuse patterns
# ─────────────────────────────────────────────────────────────────────────────
# Cheap header/body heuristics run before any letter work. None of them is a
# security boundary on its own; together with the rate limiter they keep
# casual scripting and spam off the public write endpoint.
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import hashlib
import re
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

import structlog
from fastapi import Request

from letter_edge.config import Settings
from letter_edge.exceptions import (
    ForbiddenRequestError,
    PayloadTooLargeError,
    ServiceDisabledError,
)
from letter_edge.rate_limit import (
    RateLimitConfig,
    RateLimiter,
    RateLimitStore,
    get_client_ip,
)

logger = structlog.get_logger(__name__)

_DEV_ORIGINS: tuple[str, ...] = ("http://localhost:3000", "http://127.0.0.1:3000")

_BOT_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"bot",
        r"crawl",
        r"spider",
        r"scrape",
        r"headless",
        r"phantom",
        r"selenium",
        r"puppeteer",
        r"playwright",
        r"wget",
        r"curl",
        r"httpie",
        r"python-requests",
        r"axios",
        r"node-fetch",
        r"go-http-client",
        r"java/",
        r"libwww",
        r"mechanize",
    )
)

_MIN_USER_AGENT_LENGTH = 20
_MAX_PERSONAL_NOTE = 5000
_MAX_DEMANDS = 20
_REPEATED_CHARS = re.compile(r"(.)\1{20,}")
_HTML_INJECTION = re.compile(r"<(script|iframe|object|embed|form|input)", re.IGNORECASE)


@dataclass(frozen=True)
class OriginCheck:
    valid: bool
    origin: str | None


@dataclass(frozen=True)
class BotCheck:
    is_bot: bool
    reason: str | None = None


@dataclass(frozen=True)
class AbuseCheck:
    suspicious: bool
    reason: str | None = None


def validate_origin(
    headers: Mapping[str, str],
    allowed_origins: Iterable[str],
    production: bool,
) -> OriginCheck:
    """CSRF guard: Origin (or Referer's origin) must match an allowed prefix.

    Requests carrying neither header pass outside production only.
    """
    allowed = [origin for origin in allowed_origins if origin]
    if not production:
        allowed.extend(_DEV_ORIGINS)

    origin = headers.get("origin")
    if not origin:
        referer = headers.get("referer")
        if referer:
            parts = urlsplit(referer)
            origin = f"{parts.scheme}://{parts.netloc}" if parts.scheme and parts.netloc else referer

    if origin:
        return OriginCheck(valid=any(origin.startswith(a) for a in allowed), origin=origin)
    return OriginCheck(valid=not production, origin=None)


def detect_bot(headers: Mapping[str, str]) -> BotCheck:
    user_agent = headers.get("user-agent") or ""
    if not user_agent:
        return BotCheck(is_bot=True, reason="missing-user-agent")

    for pattern in _BOT_PATTERNS:
        if pattern.search(user_agent):
            return BotCheck(is_bot=True, reason=f"bot-pattern: {pattern.pattern}")

    # Real browsers always send Accept-Language
    if not headers.get("accept-language"):
        return BotCheck(is_bot=True, reason="missing-accept-language")

    if len(user_agent) < _MIN_USER_AGENT_LENGTH:
        return BotCheck(is_bot=True, reason="short-user-agent")

    return BotCheck(is_bot=False)


def generate_fingerprint(headers: Mapping[str, str]) -> str:
    """Short stable hash for abuse detection. Not used for tracking."""
    ip = get_client_ip(headers)
    user_agent = (headers.get("user-agent") or "")[:50]
    accept_language = (headers.get("accept-language") or "")[:20]
    data = f"{ip}:{user_agent}:{accept_language}"
    return hashlib.sha256(data.encode()).hexdigest()[:16]


def detect_abuse_patterns(body: Mapping[str, Any]) -> AbuseCheck:
    """Heuristics over a raw request body.

    The length and count limits repeat LetterRequest's field constraints, so
    through the endpoint only the pattern checks can fire; the limits still
    hold for bodies that never went through the model.
    """
    personal_note = body.get("personal_note")
    if isinstance(personal_note, str):
        if len(personal_note) > _MAX_PERSONAL_NOTE:
            return AbuseCheck(suspicious=True, reason="excessive-input-length")
        if _REPEATED_CHARS.search(personal_note):
            return AbuseCheck(suspicious=True, reason="repeated-characters")

    demands = body.get("demands")
    if isinstance(demands, list) and len(demands) > _MAX_DEMANDS:
        return AbuseCheck(suspicious=True, reason="excessive-demands")

    for key, value in body.items():
        values = value if isinstance(value, list) else [value]
        if any(isinstance(v, str) and _HTML_INJECTION.search(v) for v in values):
            return AbuseCheck(suspicious=True, reason=f"html-injection-in-{key}")

    return AbuseCheck(suspicious=False)


def content_hash(text: str) -> str:
    normalized = " ".join(text.lower().split())
    return hashlib.sha256(normalized.encode()).hexdigest()[:16]


class ContentSimilarityGuard:
    """Caps identical letters per fingerprint (default 3 per hour).

    A second windowed counter over its own store, keyed by
    fingerprint + content hash.
    """

    def __init__(
        self,
        max_duplicates: int = 3,
        window_seconds: int = 3600,
        store: RateLimitStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        config = RateLimitConfig(max_requests=max_duplicates, window_seconds=window_seconds)
        self._limiter = RateLimiter(store, default_config=config, clock=clock)

    @property
    def store(self) -> RateLimitStore:
        return self._limiter.store

    def allow(self, fingerprint: str, text: str) -> bool:
        return self._limiter.check(f"{fingerprint}:{content_hash(text)}").success


# ── FastAPI dependency ───────────────────────────────────────────────────────


def screen_request(request: Request) -> None:
    """Reject disabled, oversized, cross-origin and automated requests.

    Runs before the rate limiter so rejected traffic does not consume quota.
    """
    settings: Settings = request.app.state.settings
    client_ip = get_client_ip(request.headers)

    if settings.api_disabled:
        logger.warning("api_disabled_rejected", client_ip=client_ip)
        raise ServiceDisabledError()

    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > settings.max_body_size:
        logger.warning("oversized_request", client_ip=client_ip, size=int(content_length))
        raise PayloadTooLargeError(int(content_length), settings.max_body_size)

    origin_check = validate_origin(request.headers, settings.origin_list, settings.is_production)
    if not origin_check.valid:
        _record_rejection(request, "invalid-origin")
        raise ForbiddenRequestError(
            "Invalid request origin", reason=f"invalid-origin: {origin_check.origin}"
        )

    bot_check = detect_bot(request.headers)
    if bot_check.is_bot:
        _record_rejection(request, "bot")
        raise ForbiddenRequestError(
            "Automated requests are not allowed", reason=bot_check.reason or "bot"
        )


def _record_rejection(request: Request, reason: str) -> None:
    metrics = getattr(request.app.state, "metrics", None)
    if metrics is not None:
        metrics.record_security_rejection(reason)
