# ─────────────────────────────────────────────────────────────────────────────
# Tests — GeoRoutingMiddleware over HTTP
# ─────────────────────────────────────────────────────────────────────────────

import pytest
from dirty_equals import IsStr


def _get(client, path: str, **headers: str):
    return client.get(path, headers=headers, follow_redirects=False)


class TestRedirects:
    def test_root_redirects_to_default_country(self, client):
        response = _get(client, "/")
        assert response.status_code == 307
        assert response.headers["location"] == "/de"

    @pytest.mark.parametrize(
        ("geo", "expected"),
        [("US", "/us"), ("CA", "/ca"), ("GB", "/uk"), ("UK", "/uk"), ("FR", "/fr"), ("JP", "/de")],
    )
    def test_geo_header_selects_country(self, client, geo: str, expected: str):
        response = _get(client, "/", **{"x-vercel-ip-country": geo})
        assert response.headers["location"] == expected

    def test_sub_path_and_query_preserved(self, client):
        response = _get(client, "/success?utm_source=qr", **{"x-vercel-ip-country": "US"})
        assert response.headers["location"] == "/us/success?utm_source=qr"

    def test_override_cookie_wins(self, client):
        response = _get(client, "/preview", cookie="country=fr", **{"x-vercel-ip-country": "US"})
        assert response.status_code == 307
        assert response.headers["location"] == "/fr/preview"

    @pytest.mark.parametrize("path", ["/design", "/deals", "/usage"])
    def test_word_sharing_a_country_prefix_is_redirected(self, client, path: str):
        response = _get(client, path)
        assert response.status_code == 307
        assert response.headers["location"] == f"/de{path}"

    def test_unknown_override_falls_through_to_detection(self, client):
        response = _get(client, "/", cookie="country=es", **{"x-vercel-ip-country": "CA"})
        assert response.headers["location"] == "/ca"


class TestDetectedCountryCookie:
    def test_cookie_attributes(self, client):
        response = _get(client, "/", **{"x-vercel-ip-country": "GB"})
        cookie = response.headers["set-cookie"]

        assert cookie.startswith("detected_country=uk;")
        assert "Max-Age=2592000" in cookie
        assert "samesite=lax" in cookie.lower()
        assert "httponly" not in cookie.lower()

    def test_override_redirect_sets_no_cookie(self, client):
        response = _get(client, "/", cookie="country=us")
        assert "set-cookie" not in response.headers


class TestPassThrough:
    def test_country_path_is_served(self, client):
        response = _get(client, "/de")
        assert response.status_code == 200
        assert response.json()["code"] == "de"

    def test_country_sub_page_is_served(self, client):
        response = _get(client, "/uk/privacy", cookie="country=fr")
        assert response.status_code == 200
        assert response.json() == {
            "code": "uk",
            "name": "United Kingdom",
            "native_name": "United Kingdom",
            "default_language": "en",
            "languages": ["en"],
            "legislature": "UK Parliament",
            "representative": IsStr(),
            "postal_code_label": "Postcode",
            "is_ready": True,
            "page": "privacy",
        }

    def test_api_path_never_redirected(self, client):
        response = _get(client, "/api/stats", cookie="country=us", **{"x-vercel-ip-country": "FR"})
        assert response.status_code != 307
        assert "location" not in response.headers

    def test_static_asset_never_redirected(self, client):
        response = _get(client, "/images/banner.png")
        assert response.status_code != 307
        assert "location" not in response.headers

    def test_health_not_redirected(self, client):
        assert _get(client, "/health").status_code == 200

    def test_following_redirect_lands_on_country_page(self, client):
        response = client.get("/", headers={"x-vercel-ip-country": "FR"})
        assert response.status_code == 200
        assert response.json()["code"] == "fr"


class TestRoutingMetrics:
    def test_redirects_and_passthroughs_counted(self, client):
        _get(client, "/", **{"x-vercel-ip-country": "US"})
        _get(client, "/", cookie="country=fr")
        _get(client, "/de")

        data = client.get("/metrics").json()
        assert data["redirects_total"] == 2
        assert data["redirects_by_country"] == {"us": 1, "fr": 1}
        assert data["redirects_by_source"] == {"detected": 1, "override": 1}
        # /de and /metrics itself
        assert data["passthrough_total"] == 2


class TestDebugRouting:
    def test_reports_decision_without_redirecting(self, client):
        response = client.get(
            "/debug/routing",
            params={"path": "/success"},
            headers={"x-vercel-ip-country": "CA"},
        )
        assert response.status_code == 200
        assert response.json() == {
            "path": "/success",
            "excluded": False,
            "country_path": False,
            "target_country": "ca",
            "source": "detected",
            "detected_country": "CA",
            "redirect_to": "/ca/success",
        }

    def test_reports_excluded_path(self, client):
        data = client.get("/debug/routing", params={"path": "/api/stats"}).json()
        assert data["excluded"] is True
        assert data["target_country"] is None
