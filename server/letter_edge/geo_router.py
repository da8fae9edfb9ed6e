# ─────────────────────────────────────────────────────────────────────────────
# Geo Router — sends visitors on ambiguous paths into a country subtree
# ─────────────────────────────────────────────────────────────────────────────
# Precedence is an explicit resolver chain: override cookie → geo header.
# Detection always resolves (unmapped and missing codes → default country),
# so routing can never block a request.
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Literal

from letter_edge.config import Settings
from letter_edge.countries import Country

DecisionSource = Literal["override", "detected"]

_COUNTRY_CODES: frozenset[str] = frozenset(country.value for country in Country)

# Order matters: a code listed twice resolves to the first group.
DEFAULT_MEMBERSHIP: tuple[tuple[Country, frozenset[str]], ...] = (
    (Country.us, frozenset({"US"})),
    (Country.ca, frozenset({"CA"})),
    (Country.uk, frozenset({"GB", "UK"})),
    (Country.fr, frozenset({"FR"})),
)


@dataclass(frozen=True)
class RoutingDecision:
    """Where a single request should go. Never persisted."""

    target_country: Country
    source: DecisionSource
    detected_country: str
    override_country: Country | None = None


@dataclass(frozen=True)
class GeoRoutingConfig:
    geo_header: str = "x-vercel-ip-country"
    fallback_code: str = "DE"
    default_country: Country = Country.de
    country_cookie: str = "country"
    detected_country_cookie: str = "detected_country"
    detected_country_max_age: int = 60 * 60 * 24 * 30
    redirect_status_code: int = 307
    excluded_paths: tuple[str, ...] = ("/api",)
    static_pattern: str = ""
    membership: tuple[tuple[Country, frozenset[str]], ...] = DEFAULT_MEMBERSHIP
    _static_re: re.Pattern[str] | None = field(init=False, repr=False, compare=False, default=None)

    def __post_init__(self) -> None:
        if self.static_pattern:
            object.__setattr__(self, "_static_re", re.compile(self.static_pattern))

    @classmethod
    def from_settings(cls, settings: Settings) -> GeoRoutingConfig:
        return cls(
            geo_header=settings.geo_header.lower(),
            fallback_code=settings.geo_fallback_code,
            default_country=Country(settings.default_country),
            country_cookie=settings.country_cookie,
            detected_country_cookie=settings.detected_country_cookie,
            detected_country_max_age=settings.detected_country_max_age,
            redirect_status_code=settings.redirect_status_code,
            excluded_paths=tuple(settings.geo_excluded_paths),
            static_pattern=settings.geo_static_pattern,
        )


Resolver = Callable[[Mapping[str, str], Mapping[str, str]], RoutingDecision | None]


class GeoRouter:
    """Decides which country subtree serves a request.

    Pure and synchronous: takes the path, cookies and headers of a request,
    returns a RoutingDecision or None (pass through). The HTTP side lives in
    GeoRoutingMiddleware.
    """

    def __init__(self, config: GeoRoutingConfig | None = None) -> None:
        self._config = config or GeoRoutingConfig()
        self._resolvers: list[Resolver] = [self.resolve_override, self.resolve_detected]

    @property
    def config(self) -> GeoRoutingConfig:
        return self._config

    # ── Path checks ─────────────────────────────────────────────────────────

    def is_excluded(self, path: str) -> bool:
        """True for API routes, service endpoints and static assets."""
        for prefix in self._config.excluded_paths:
            if path == prefix or path.startswith(f"{prefix}/"):
                return True
        static_re = self._config._static_re
        return static_re is not None and static_re.search(path) is not None

    @staticmethod
    def is_country_path(path: str) -> bool:
        """True for /{code} and /{code}/... with a supported code."""
        segment = path.lstrip("/").split("/", 1)[0]
        return path.startswith("/") and segment in _COUNTRY_CODES

    # ── Resolvers ───────────────────────────────────────────────────────────

    def detected_code(self, headers: Mapping[str, str]) -> str:
        # Empty header counts as missing
        value = (headers.get(self._config.geo_header) or "").strip()
        return value or self._config.fallback_code

    def country_for_code(self, code: str) -> Country:
        for country, codes in self._config.membership:
            if code in codes:
                return country
        return self._config.default_country

    def resolve_override(
        self, cookies: Mapping[str, str], headers: Mapping[str, str]
    ) -> RoutingDecision | None:
        """Explicit user choice. Anything but an exact supported code is ignored."""
        value = cookies.get(self._config.country_cookie)
        if not value or value not in _COUNTRY_CODES:
            return None
        country = Country(value)
        return RoutingDecision(
            target_country=country,
            source="override",
            detected_country=self.detected_code(headers),
            override_country=country,
        )

    def resolve_detected(
        self, cookies: Mapping[str, str], headers: Mapping[str, str]
    ) -> RoutingDecision:
        code = self.detected_code(headers)
        return RoutingDecision(
            target_country=self.country_for_code(code),
            source="detected",
            detected_country=code,
        )

    # ── Entry point ─────────────────────────────────────────────────────────

    def resolve(
        self, cookies: Mapping[str, str], headers: Mapping[str, str]
    ) -> RoutingDecision:
        """Run the resolver chain; the last resolver always answers."""
        for resolver in self._resolvers:
            decision = resolver(cookies, headers)
            if decision is not None:
                return decision
        # Chains without a total resolver fall back to detection
        return self.resolve_detected(cookies, headers)

    def decide(
        self,
        path: str,
        cookies: Mapping[str, str],
        headers: Mapping[str, str],
    ) -> RoutingDecision | None:
        """None means serve the request unchanged."""
        if self.is_excluded(path) or self.is_country_path(path):
            return None
        return self.resolve(cookies, headers)

    @staticmethod
    def redirect_path(path: str, target: Country) -> str:
        """/{target}{path}; the root maps to /{target} with no trailing slash."""
        if path in ("", "/"):
            return f"/{target.value}"
        return f"/{target.value}{path}"
