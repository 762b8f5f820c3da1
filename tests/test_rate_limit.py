import pytest
from starlette.requests import Request

from teamspark.core.limiter import RequestRateLimiter
from teamspark.main import app


def _request(path="/api/auth/me", ip="10.1.1.1", user_agent="pytest"):
    return Request({
        "type": "http",
        "method": "GET",
        "path": path,
        "query_string": b"",
        "headers": [(b"user-agent", user_agent.encode())],
        "client": (ip, 5000),
        "server": ("testserver", 80),
        "scheme": "http",
    })


def test_counter_blocks_after_limit():
    limiter = RequestRateLimiter(2, 60)
    first = limiter.check(_request())
    second = limiter.check(_request())
    third = limiter.check(_request())
    assert first.allowed and second.allowed
    assert first.remaining == 1
    assert second.remaining == 0
    assert not third.allowed
    assert third.limit == 2


def test_counter_keys_include_route_and_client():
    limiter = RequestRateLimiter(1, 60)
    assert limiter.check(_request()).allowed
    assert limiter.check(_request(path="/api/kudos/")).allowed
    assert limiter.check(_request(ip="10.9.9.9")).allowed
    assert limiter.check(_request(user_agent="curl/8.0")).allowed
    assert not limiter.check(_request()).allowed


def test_backend_error_fails_open(monkeypatch):
    limiter = RequestRateLimiter(2, 60)

    def broken(*args, **kwargs):
        raise ConnectionError("redis down")

    monkeypatch.setattr(limiter.strategy, "hit", broken)
    result = limiter.check(_request(), now=1000.0)
    assert result.allowed is True
    assert result.remaining == 2
    assert result.reset == 1060


def test_middleware_returns_429_with_headers(client, monkeypatch):
    monkeypatch.setattr(app.state, "request_limiter", RequestRateLimiter(2, 60))

    first = client.get("/api/auth/me")
    assert first.status_code == 401
    assert first.headers["X-RateLimit-Limit"] == "2"
    assert first.headers["X-RateLimit-Remaining"] == "1"
    assert "X-RateLimit-Reset" in first.headers

    client.get("/api/auth/me")
    blocked = client.get("/api/auth/me")
    assert blocked.status_code == 429
    assert int(blocked.headers["Retry-After"]) >= 1
    assert blocked.headers["X-RateLimit-Remaining"] == "0"
    assert blocked.json()["errors"][0]["code"] == "RATE_LIMITED"


def test_middleware_ignores_non_api_routes(client, monkeypatch):
    monkeypatch.setattr(app.state, "request_limiter", RequestRateLimiter(1, 60))
    for _ in range(3):
        response = client.get("/health")
        assert response.status_code == 200
        assert "X-RateLimit-Limit" not in response.headers


def test_middleware_fails_open(client, monkeypatch):
    limiter = RequestRateLimiter(1, 60)

    def broken(*args, **kwargs):
        raise ConnectionError("redis down")

    monkeypatch.setattr(limiter.strategy, "hit", broken)
    monkeypatch.setattr(app.state, "request_limiter", limiter)
    for _ in range(3):
        response = client.get("/api/auth/me")
        assert response.status_code == 401
        assert response.headers["X-RateLimit-Remaining"] == "1"
