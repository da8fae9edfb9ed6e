# ─────────────────────────────────────────────────────────────────────────────
# Test Fixtures — shared across all tests
# ─────────────────────────────────────────────────────────────────────────────

import os
from collections.abc import Callable

import pytest
from fastapi.testclient import TestClient

from letter_edge.config import Settings
from letter_edge.main import create_app, init_state
from letter_edge.rate_limit import RateLimitConfig, RateLimiter, RateLimitStore, limiter


class FakeClock:
    """Manually advanced clock for window tests."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> RateLimitStore:
    return RateLimitStore()


@pytest.fixture
def rate_limiter(store: RateLimitStore, clock: FakeClock) -> RateLimiter:
    """Limiter with the {3 requests / 60 s} quota used throughout the tests."""
    return RateLimiter(store, RateLimitConfig(max_requests=3, window_seconds=60), clock=clock)


@pytest.fixture
def test_settings() -> Settings:
    """Settings configured for testing — console logs, debug routes on."""
    return Settings(
        enable_debug_routes=True,
        log_json=False,
        log_level="DEBUG",
    )


@pytest.fixture
def make_client(clock: FakeClock) -> Callable[..., TestClient]:
    """Build a TestClient with setting overrides.

    Env vars feed create_app() (router config, debug routes); the same
    overrides build the Settings placed on app.state, where the request
    handlers read them. The rate limiter runs on the fake clock.
    """
    from letter_edge.config import get_settings

    def _make(**overrides: object) -> TestClient:
        get_settings.cache_clear()
        limiter.reset()

        env_overrides = {
            "LOG_JSON": "false",
            "LOG_LEVEL": "DEBUG",
            "ENABLE_DEBUG_ROUTES": "true",
            "ALLOWED_ORIGINS": "https://letters.example.org",
        }
        for k, v in env_overrides.items():
            os.environ[k] = v

        try:
            app = create_app()
            client = TestClient(app)

            settings = Settings(**{k.lower(): v for k, v in env_overrides.items()}, **overrides)
            init_state(app, settings)
            app.state.rate_limiter = RateLimiter(
                RateLimitStore(high_water_mark=settings.rate_limit_store_high_water),
                RateLimitConfig.from_settings(settings),
                clock=clock,
            )
            return client
        finally:
            for k in env_overrides:
                os.environ.pop(k, None)
            get_settings.cache_clear()

    return _make


@pytest.fixture
def client(make_client: Callable[..., TestClient]) -> TestClient:
    return make_client()
