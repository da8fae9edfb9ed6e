# ─────────────────────────────────────────────────────────────────────────────
# Rate Limiting — per-identifier fixed-window admission control
# ─────────────────────────────────────────────────────────────────────────────
# Two layers, like any public write endpoint here:
#   outer: shared slowapi Limiter, coarse per-IP HTTP ceiling (DoS guard),
#          charged first so rejected requests never touch the inner quota
#   inner: RateLimiter over an injectable RateLimitStore, the configurable
#          quota checked before doing any work (RATE_LIMIT_MAX per window)
#
# Stores are per process. Multiple instances each keep their own counts, so
# the guarantee is best-effort per instance, fine for abuse mitigation.
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import math
import threading
import time
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass

import structlog
from fastapi import Depends, Request
from limits import parse_many
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.wrappers import Limit

from letter_edge.config import Settings
from letter_edge.exceptions import RateLimitExceededError

logger = structlog.get_logger(__name__)

DEFAULT_HIGH_WATER_MARK = 10_000

# Checked in order; the first present header wins.
_CLIENT_IP_HEADERS: tuple[tuple[str, bool], ...] = (
    ("x-forwarded-for", True),  # (header, take first comma-separated token)
    ("x-real-ip", False),
    ("x-vercel-forwarded-for", True),
)


def get_client_ip(headers: Mapping[str, str]) -> str:
    """Best-effort client address from proxy headers, or "unknown".

    Advisory only: the value is not validated as an IP address.
    """
    for name, chained in _CLIENT_IP_HEADERS:
        value = headers.get(name)
        if value:
            return value.split(",")[0].strip() if chained else value
    return "unknown"


def _request_client_ip(request: Request) -> str:
    return get_client_ip(request.headers)


# Outer HTTP limiter; keyed like the inner one so both agree on "client".
limiter = Limiter(key_func=_request_client_ip)


@dataclass(frozen=True)
class RateLimitConfig:
    max_requests: int = 10
    window_seconds: int = 60

    def __post_init__(self) -> None:
        if self.max_requests <= 0:
            raise ValueError(f"max_requests must be > 0, got {self.max_requests}")
        if self.window_seconds <= 0:
            raise ValueError(f"window_seconds must be > 0, got {self.window_seconds}")

    @classmethod
    def from_settings(cls, settings: Settings) -> RateLimitConfig:
        return cls(
            max_requests=settings.rate_limit_max,
            window_seconds=settings.rate_limit_window_seconds,
        )


@dataclass
class RateLimitEntry:
    count: int
    reset_time: float  # absolute, same clock as the limiter

    def expired(self, now: float) -> bool:
        return self.reset_time <= now


@dataclass(frozen=True)
class RateLimitResult:
    success: bool
    remaining: int
    reset_in: int  # seconds, always rounded up

    def to_headers(self) -> dict[str, str]:
        """Response headers advertising the quota state."""
        headers = {
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_in),
        }
        if not self.success:
            headers["Retry-After"] = str(self.reset_in)
        return headers


class RateLimitStore:
    """In-memory identifier → RateLimitEntry map.

    Constructed explicitly and handed to a RateLimiter, so tests get an
    isolated store and a shared backend can replace it later. Once the
    store grows past `high_water_mark`, the limiter purges every expired
    entry (amortized cleanup, not LRU).

    Dependencies run in the threadpool, so every access goes through
    `_lock`; iteration works on a snapshot.
    """

    def __init__(self, high_water_mark: int = DEFAULT_HIGH_WATER_MARK) -> None:
        self.high_water_mark = high_water_mark
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    def get(self, identifier: str) -> RateLimitEntry | None:
        with self._lock:
            return self._entries.get(identifier)

    def set(self, identifier: str, entry: RateLimitEntry) -> None:
        with self._lock:
            self._entries[identifier] = entry

    def needs_cleanup(self) -> bool:
        with self._lock:
            return len(self._entries) > self.high_water_mark

    def purge_expired(self, now: float) -> int:
        """Delete all entries whose window has elapsed. Returns the count removed."""
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.expired(now)]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, identifier: object) -> bool:
        with self._lock:
            return identifier in self._entries

    def __iter__(self) -> Iterator[str]:
        with self._lock:
            return iter(list(self._entries))


class RateLimiter:
    """Fixed-window counter per identifier.

    Rejections never mutate the entry, so a saturated client keeps failing
    until the window rolls over instead of extending it.
    """

    def __init__(
        self,
        store: RateLimitStore | None = None,
        default_config: RateLimitConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store if store is not None else RateLimitStore()
        self.default_config = default_config or RateLimitConfig()
        self._clock = clock
        # Serializes purge + read-modify-write across threadpool workers
        self._lock = threading.Lock()

    def check(self, identifier: str, config: RateLimitConfig | None = None) -> RateLimitResult:
        config = config or self.default_config
        with self._lock:
            return self._check(identifier, config, self._clock())

    def _check(self, identifier: str, config: RateLimitConfig, now: float) -> RateLimitResult:
        if self.store.needs_cleanup():
            removed = self.store.purge_expired(now)
            logger.info("rate_limit_store_purged", removed=removed, remaining=len(self.store))

        entry = self.store.get(identifier)

        if entry is None or entry.expired(now):
            self.store.set(
                identifier,
                RateLimitEntry(count=1, reset_time=now + config.window_seconds),
            )
            return RateLimitResult(
                success=True,
                remaining=config.max_requests - 1,
                reset_in=config.window_seconds,
            )

        reset_in = math.ceil(entry.reset_time - now)

        if entry.count >= config.max_requests:
            return RateLimitResult(success=False, remaining=0, reset_in=reset_in)

        entry.count += 1
        return RateLimitResult(
            success=True,
            remaining=config.max_requests - entry.count,
            reset_in=reset_in,
        )


def check_rate_limit(
    identifier: str,
    config: RateLimitConfig | None = None,
    *,
    rate_limiter: RateLimiter,
) -> RateLimitResult:
    """Functional form of RateLimiter.check."""
    return rate_limiter.check(identifier, config)


# ── FastAPI dependency ───────────────────────────────────────────────────────


def get_rate_limiter(request: Request) -> RateLimiter:
    """Inject the process-wide RateLimiter created in lifespan."""
    return request.app.state.rate_limiter  # type: ignore[no-any-return]


def enforce_rate_limit(
    request: Request,
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
) -> RateLimitResult:
    """Admission check keyed by client IP. Raises RateLimitExceededError (429)."""
    client_ip = get_client_ip(request.headers)
    result = rate_limiter.check(client_ip)

    metrics = getattr(request.app.state, "metrics", None)
    if metrics is not None:
        metrics.record_admission(allowed=result.success)

    if not result.success:
        logger.warning("rate_limit_exceeded", client_ip=client_ip, reset_in=result.reset_in)
        raise RateLimitExceededError(result.reset_in, result.to_headers())
    return result


def enforce_http_limit(request: Request) -> None:
    """Outer per-IP ceiling (HTTP_RATE_LIMIT) on the shared slowapi limiter.

    Declared ahead of enforce_rate_limit so a request turned away here never
    spends inner quota. Raises slowapi's RateLimitExceeded (429).
    """
    if not limiter.enabled:
        return
    settings: Settings = request.app.state.settings
    client_ip = get_client_ip(request.headers)

    for item in parse_many(settings.http_rate_limit):
        if not limiter.limiter.hit(item, client_ip, request.url.path):
            logger.warning("http_rate_limit_hit", client_ip=client_ip, limit=str(item))
            raise RateLimitExceeded(
                Limit(item, _request_client_ip, None, False, None, None, None, 1, False)
            )
