import time

from fastapi.testclient import TestClient

from conftest import wait_until
from main import create_app
from url_shortener.database.connection import build_engine
from url_shortener.storage.strategies import SQLAlchemyURLStore


class SlowLookupStore(SQLAlchemyURLStore):
    """Store whose short-code lookups take longer than the redirect deadline."""

    def get_by_short_code(self, short_code):
        time.sleep(0.5)
        return super().get_by_short_code(short_code)


class TestURLShortener:
    """Test URL shortener HTTP API"""

    def test_create_short_url(self, client: TestClient):
        """Test creating a short URL"""
        response = client.post("/api/shorten", json={"url": "https://example.com"})
        assert response.status_code == 200

        data = response.json()
        assert len(data["short_code"]) == 6
        assert data["short_url"] == f"http://test/{data['short_code']}"
        assert data["long_url"] == "https://example.com"
        assert "created_at" in data

    def test_shorten_is_idempotent(self, client: TestClient):
        """Same long URL returns the same short code"""
        first = client.post("/api/shorten", json={"url": "https://www.python.org/"}).json()
        second = client.post("/api/shorten", json={"url": "https://www.python.org/"}).json()

        assert first["short_code"] == second["short_code"]
        assert client.get("/api/list").json()["count"] == 1

    def test_reshorten_returns_identical_body(self, client: TestClient):
        """A fresh insert and a later lookup serialize the same, timezone included"""
        first = client.post("/api/shorten", json={"url": "https://example.com/x"}).json()
        second = client.post("/api/shorten", json={"url": "https://example.com/x"}).json()

        assert first == second
        assert first["created_at"].endswith("Z")

    def test_shorten_very_long_url(self, client: TestClient):
        long_url = "https://example.com/report?" + "&".join(f"field{i}=value{i}" for i in range(400))
        assert len(long_url) > 5000

        first = client.post("/api/shorten", json={"url": long_url})
        second = client.post("/api/shorten", json={"url": long_url})

        assert first.status_code == 200
        assert second.status_code == 200
        assert first.json()["short_code"] == second.json()["short_code"]

        response = client.get(f"/{first.json()['short_code']}", follow_redirects=False)
        assert response.headers["location"] == long_url

    def test_invalid_url(self, client: TestClient):
        """Test creating URL with invalid URL"""
        response = client.post("/api/shorten", json={"url": "not-a-url"})
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidInput"

    def test_missing_url(self, client: TestClient):
        response = client.post("/api/shorten", json={})
        assert response.status_code == 400
        assert response.json() == {"error": "InvalidInput", "detail": "URL is required"}

    def test_malformed_json(self, client: TestClient):
        response = client.post(
            "/api/shorten",
            content="{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidInput"

    def test_redirect_url(self, client: TestClient):
        """Test URL redirection"""
        short_code = client.post("/api/shorten", json={"url": "https://www.github.com/"}).json()["short_code"]

        response = client.get(f"/{short_code}", follow_redirects=False)
        assert response.status_code == 301
        assert response.headers["location"] == "https://www.github.com/"

    def test_redirect_nonexistent_url(self, client: TestClient):
        """Test redirecting non-existent URL"""
        response = client.get("/nonexistent", follow_redirects=False)
        assert response.status_code == 404
        assert response.json()["error"] == "NotFound"

    def test_stats_after_redirect(self, client: TestClient):
        """Clicks reach the stats endpoint once the worker flushes them"""
        short_code = client.post("/api/shorten", json={"url": "https://example.com"}).json()["short_code"]

        client.get(
            f"/{short_code}",
            follow_redirects=False,
            headers={"User-Agent": "pytest-agent", "X-Forwarded-For": "203.0.113.7, 10.0.0.1"},
        )

        def flushed():
            data = client.get(f"/api/stats/{short_code}").json()
            return data if data["clicks"] == 1 else None

        data = wait_until(flushed)
        assert data is not None
        assert data["short_code"] == short_code
        assert data["long_url"] == "https://example.com"
        assert len(data["analytics"]) == 1

        click = data["analytics"][0]
        assert click["short_code"] == short_code
        assert click["ip_address"] == "203.0.113.7"
        assert click["user_agent"] == "pytest-agent"

    def test_stats_newest_first(self, client: TestClient):
        short_code = client.post("/api/shorten", json={"url": "https://example.org"}).json()["short_code"]

        for agent in ("first", "second", "third"):
            client.get(f"/{short_code}", follow_redirects=False, headers={"User-Agent": agent})
            time.sleep(0.01)

        def all_flushed():
            data = client.get(f"/api/stats/{short_code}").json()
            return data if len(data["analytics"]) == 3 else None

        data = wait_until(all_flushed)
        assert data is not None
        assert data["clicks"] == 3
        assert [row["user_agent"] for row in data["analytics"]] == ["third", "second", "first"]

    def test_stats_nonexistent_url(self, client: TestClient):
        response = client.get("/api/stats/doesnotexist")
        assert response.status_code == 404

    def test_stats_fresh_url(self, client: TestClient):
        short_code = client.post("/api/shorten", json={"url": "https://example.net"}).json()["short_code"]

        data = client.get(f"/api/stats/{short_code}").json()
        assert data["clicks"] == 0
        assert data["analytics"] == []

    def test_list_urls(self, client: TestClient):
        for i in range(3):
            client.post("/api/shorten", json={"url": f"https://example.com/{i}"})

        data = client.get("/api/list").json()
        assert data["count"] == 3
        # Newest first
        assert [u["long_url"] for u in data["urls"]] == [
            "https://example.com/2",
            "https://example.com/1",
            "https://example.com/0",
        ]

        assert client.get("/api/list?limit=2").json()["count"] == 2
        assert client.get("/api/list?limit=0").json()["count"] == 3
        assert client.get("/api/list?limit=abc").json()["count"] == 3
        assert client.get("/api/list?limit=1000").status_code == 200

    def test_health(self, client: TestClient):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "time" in data

    def test_request_id_is_echoed(self, client: TestClient):
        response = client.get("/health", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"

        generated = client.get("/health").headers["X-Request-ID"]
        assert generated

    def test_redirect_timeout(self, settings):
        """A store slower than the redirect deadline yields 408"""
        slow_settings = settings.model_copy(update={"redirect_timeout": 0.1, "cache_backend": "null"})
        store = SlowLookupStore(build_engine(slow_settings.database_url))
        app = create_app(slow_settings, store=store)

        with TestClient(app) as client:
            short_code = client.post("/api/shorten", json={"url": "https://example.com"}).json()["short_code"]

            response = client.get(f"/{short_code}", follow_redirects=False)
            assert response.status_code == 408
            assert response.json()["error"] == "Timeout"
