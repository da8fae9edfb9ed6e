# ─────────────────────────────────────────────────────────────────────────────
# Settings — Pydantic v2 BaseSettings
# ─────────────────────────────────────────────────────────────────────────────


from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Edge configuration sourced from environment variables.

    Uses pydantic-settings v2 (separate package from pydantic).
    List fields accept JSON arrays, e.g. GEO_EXCLUDED_PATHS='["/api", "/og"]'.
    """

    model_config = SettingsConfigDict(env_prefix="", env_file=".env")

    # ── Deployment ───────────────────────────────────────────────────────────
    environment: str = "development"  # "production" tightens origin checks
    port: int = 8080

    # ── Geo routing ──────────────────────────────────────────────────────────
    # Hosting edge header carrying the visitor's ISO country code.
    geo_header: str = "x-vercel-ip-country"
    # Used when the header is absent (local dev never sees it).
    geo_fallback_code: str = "DE"
    default_country: str = "de"
    country_cookie: str = "country"
    detected_country_cookie: str = "detected_country"
    detected_country_max_age: int = 60 * 60 * 24 * 30
    redirect_status_code: int = 307
    geo_excluded_paths: list[str] = [
        "/api",
        "/favicon.ico",
        "/_next",
        "/og",
        "/robots.txt",
        "/sitemap.xml",
        "/admin",
        "/auth",
        "/campaigns",
        "/embed",
        "/c",
        "/qr",
        "/health",
        "/metrics",
        "/debug",
        "/docs",
        "/redoc",
        "/openapi.json",
    ]
    # Static assets and framework internals never reach the router.
    geo_static_pattern: str = (
        r"^/(?:_next/static|_next/image|favicon\.ico)"
        r"|\.(?:svg|png|jpg|jpeg|gif|webp)$"
    )

    # ── Admission control ────────────────────────────────────────────────────
    # Per-IP quota on public write endpoints. Adjustable during attacks.
    rate_limit_max: int = 10
    rate_limit_window_seconds: int = 60
    rate_limit_store_high_water: int = 10_000

    # Coarse outer HTTP limit (slowapi format, e.g. "300/minute").
    http_rate_limit: str = "300/minute"

    # Identical letters allowed per fingerprint per window.
    duplicate_content_max: int = 3
    duplicate_content_window_seconds: int = 3600

    # ── Security ─────────────────────────────────────────────────────────────
    # Comma-separated origins for CORS and CSRF origin checks.
    # Empty string = deny all cross-origin requests (secure default).
    allowed_origins: str = ""
    api_disabled: bool = False  # Kill switch for the letter endpoint
    max_body_size: int = 50_000  # bytes

    # ── Feature flags ────────────────────────────────────────────────────────
    enable_debug_routes: bool = False  # Set ENABLE_DEBUG_ROUTES=true for local dev

    # ── Logging ──────────────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool = True

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def origin_list(self) -> list[str]:
        """Allowed origins as a list, empty entries dropped."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
