# ─────────────────────────────────────────────────────────────────────────────
# Tests — GeoRouter decisions (pure, no HTTP)
# ─────────────────────────────────────────────────────────────────────────────

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from letter_edge.config import Settings
from letter_edge.countries import Country
from letter_edge.geo_router import GeoRouter, GeoRoutingConfig

GEO = "x-vercel-ip-country"


@pytest.fixture
def router() -> GeoRouter:
    return GeoRouter(GeoRoutingConfig.from_settings(Settings()))


# ── Strategies ──────────────────────────────────────────────────────────────

country_codes = st.sampled_from([c.value for c in Country])
path_tails = st.from_regex(r"(/[a-z0-9-]{1,12}){0,3}", fullmatch=True)
geo_values = st.one_of(st.none(), st.from_regex(r"[A-Z]{2}", fullmatch=True))


def _headers(geo: str | None) -> dict[str, str]:
    return {} if geo is None else {GEO: geo}


class TestMembershipMapping:
    @pytest.mark.parametrize(
        ("geo", "expected"),
        [
            ("US", Country.us),
            ("CA", Country.ca),
            ("GB", Country.uk),
            ("UK", Country.uk),
            ("FR", Country.fr),
            ("DE", Country.de),
            ("JP", Country.de),
            ("AT", Country.de),
        ],
    )
    def test_header_maps_to_country(self, router: GeoRouter, geo: str, expected: Country):
        decision = router.decide("/", {}, {GEO: geo})
        assert decision is not None
        assert decision.target_country == expected
        assert decision.source == "detected"
        assert decision.detected_country == geo

    def test_missing_header_uses_fallback(self, router: GeoRouter):
        decision = router.decide("/", {}, {})
        assert decision is not None
        assert decision.target_country == Country.de
        assert decision.detected_country == "DE"

    def test_empty_header_counts_as_missing(self, router: GeoRouter):
        decision = router.decide("/", {}, {GEO: ""})
        assert decision is not None
        assert decision.detected_country == "DE"

    def test_first_listed_group_wins(self):
        """A code present in two groups resolves to the earlier one."""
        config = GeoRoutingConfig(
            membership=(
                (Country.us, frozenset({"XX"})),
                (Country.ca, frozenset({"XX"})),
            )
        )
        assert GeoRouter(config).country_for_code("XX") == Country.us


class TestOverrideCookie:
    def test_valid_override_wins_over_header(self, router: GeoRouter):
        decision = router.decide("/", {"country": "fr"}, {GEO: "US"})
        assert decision is not None
        assert decision.target_country == Country.fr
        assert decision.source == "override"
        assert decision.override_country == Country.fr
        assert decision.detected_country == "US"

    @pytest.mark.parametrize("value", ["", "FR", "es", "de ", "germany"])
    def test_invalid_override_is_ignored(self, router: GeoRouter, value: str):
        decision = router.decide("/", {"country": value}, {GEO: "CA"})
        assert decision is not None
        assert decision.source == "detected"
        assert decision.target_country == Country.ca


class TestPassThrough:
    @pytest.mark.parametrize(
        "path",
        [
            "/api",
            "/api/stats",
            "/api/generate-letter",
            "/favicon.ico",
            "/_next/static/chunk.js",
            "/robots.txt",
            "/sitemap.xml",
            "/admin/campaigns",
            "/campaigns",
            "/c/some-slug",
            "/qr/abc",
            "/health",
            "/metrics/prometheus",
            "/images/logo.png",
            "/hero.webp",
        ],
    )
    def test_excluded_paths(self, router: GeoRouter, path: str):
        assert router.decide(path, {"country": "us"}, {GEO: "FR"}) is None

    @pytest.mark.parametrize("path", ["/de", "/ca/", "/uk/privacy", "/fr/success", "/us/a/b"])
    def test_country_paths(self, router: GeoRouter, path: str):
        assert router.decide(path, {"country": "fr"}, {GEO: "US"}) is None

    def test_exclusion_is_segment_aware(self, router: GeoRouter):
        """/c is excluded, /ca is a country, /cat is neither."""
        assert router.is_excluded("/c")
        assert not router.is_excluded("/ca")
        assert not router.is_excluded("/cat")
        assert router.decide("/cat", {}, {}) is not None

    def test_path_starting_with_country_letters_is_routed(self, router: GeoRouter):
        assert not router.is_country_path("/design")
        assert router.redirect_path("/design", Country.de) == "/de/design"


class TestRedirectPath:
    def test_root_has_no_trailing_segment(self):
        assert GeoRouter.redirect_path("/", Country.uk) == "/uk"

    def test_sub_path_is_preserved(self):
        assert GeoRouter.redirect_path("/success", Country.us) == "/us/success"


class TestRouterProperties:
    """Invariants that must hold for any input."""

    @given(country=country_codes, tail=path_tails, geo=geo_values, cookie=st.text(max_size=5))
    @settings(max_examples=200)
    def test_never_reroutes_country_paths(self, country, tail, geo, cookie):
        router = GeoRouter()
        assert router.decide(f"/{country}{tail}", {"country": cookie}, _headers(geo)) is None

    @given(country=country_codes, tail=path_tails, geo=geo_values)
    @settings(max_examples=200)
    def test_override_always_wins(self, country, tail, geo):
        router = GeoRouter()
        path = f"/x{tail}"
        decision = router.decide(path, {"country": country}, _headers(geo))
        assert decision is not None
        assert router.redirect_path(path, decision.target_country).startswith(f"/{country}/")

    @given(tail=path_tails, geo=geo_values)
    @settings(max_examples=200)
    def test_redirect_target_is_itself_a_country_path(self, tail, geo):
        router = GeoRouter()
        path = f"/page{tail}"
        decision = router.decide(path, {}, _headers(geo))
        assert decision is not None
        target = router.redirect_path(path, decision.target_country)
        assert router.decide(target, {}, _headers(geo)) is None
