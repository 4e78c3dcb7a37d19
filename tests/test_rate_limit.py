import asyncio
import threading

import httpx
import pytest
from fastapi.testclient import TestClient

from kwacha_gateway.middleware_ratelimit import (
    RATE_LIMIT_MESSAGE,
    FixedWindowLimiter,
    MemoryWindowStore,
)

from tests.conftest import FakeClock


# 1) window=60000ms, max=3: three admitted, the fourth rejected, reset after the window
def test_fixed_window_scenario(make_app, clock):
    app = make_app(RATE_LIMIT_WINDOW_MS=60_000, RATE_LIMIT_MAX_REQUESTS=3)
    client = TestClient(app)

    for expected_remaining in ("2", "1", "0"):
        r = client.get("/api/docs")
        assert r.status_code == 200
        assert r.headers["ratelimit-limit"] == "3"
        assert r.headers["ratelimit-remaining"] == expected_remaining
        clock.advance(1)

    r = client.get("/api/docs")
    assert r.status_code == 429
    assert r.headers["ratelimit-remaining"] == "0"
    assert r.headers["ratelimit-policy"] == "3;w=60"
    assert int(r.headers["retry-after"]) == int(r.headers["ratelimit-reset"]) == 57
    err = r.json()["error"]
    assert err["code"] == "RATE_LIMITED"
    assert err["message"] == RATE_LIMIT_MESSAGE
    assert err["retryable"] is True

    clock.advance(61)
    r = client.get("/api/docs")
    assert r.status_code == 200
    assert r.headers["ratelimit-remaining"] == "2"
    assert app.state.limiter.store._windows["testclient"].count == 1


# 2) rejected requests never push the counter past max, and never reach a handler
def test_rejections_do_not_count_or_dispatch(make_app, calls):
    app = make_app(RATE_LIMIT_MAX_REQUESTS=2)
    client = TestClient(app)
    assert client.get("/api/chat/sessions").status_code == 200
    assert client.get("/api/chat/sessions").status_code == 200
    for _ in range(5):
        assert client.get("/api/chat/sessions").status_code == 429
    assert calls == ["chat.sessions", "chat.sessions"]
    assert app.state.limiter.store._windows["testclient"].count == 2


# 3) the headers are attached to every response, whatever the outcome
def test_headers_on_non_2xx_responses(make_app):
    client = TestClient(make_app())
    r = client.post("/api/chat/messages", content=b"{nope", headers={"content-type": "application/json"})
    assert r.status_code == 400
    assert r.headers["ratelimit-remaining"] == "99"
    assert "retry-after" not in r.headers


def test_identities_are_counted_separately():
    clock = FakeClock()
    limiter = FixedWindowLimiter(max_requests=1, window_s=10, clock=clock)
    assert limiter.check("10.0.0.1").allowed
    assert limiter.check("10.0.0.2").allowed
    assert not limiter.check("10.0.0.1").allowed
    assert not limiter.check("10.0.0.2").allowed


def test_window_boundary_starts_new_window():
    clock = FakeClock()
    limiter = FixedWindowLimiter(max_requests=2, window_s=10, clock=clock)
    assert limiter.check("x").allowed
    clock.advance(9.5)
    assert limiter.check("x").allowed
    assert not limiter.check("x").allowed
    clock.advance(0.5)  # exactly start + window
    decision = limiter.check("x")
    assert decision.allowed
    assert decision.remaining == 1
    assert decision.reset_after == 10


def test_store_sweeps_expired_windows():
    store = MemoryWindowStore()
    for i in range(5):
        store.consume(f"10.0.0.{i}", now=0.0, window_s=10, limit=3)
    assert len(store) == 5
    store.consume("10.0.0.99", now=25.0, window_s=10, limit=3)
    assert len(store) == 1


def test_store_reset():
    store = MemoryWindowStore()
    store.consume("a", 0.0, 10, 1)
    assert store.consume("a", 1.0, 10, 1)[1] is False
    store.reset("a")
    assert store.consume("a", 2.0, 10, 1)[1] is True


def test_invalid_limiter_config():
    with pytest.raises(ValueError):
        FixedWindowLimiter(max_requests=0, window_s=10)
    with pytest.raises(ValueError):
        FixedWindowLimiter(max_requests=5, window_s=0)


# 4) concurrent hits on one identity serialize on the single window cell
def test_concurrent_threads_admit_exactly_max():
    limiter = FixedWindowLimiter(max_requests=10, window_s=60)
    results = []
    barrier = threading.Barrier(40)

    def hit():
        barrier.wait()
        results.append(limiter.check("burst").allowed)

    threads = [threading.Thread(target=hit) for _ in range(40)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert results.count(True) == 10
    assert results.count(False) == 30


@pytest.mark.asyncio
async def test_concurrent_requests_through_the_pipeline(make_app):
    app = make_app(RATE_LIMIT_MAX_REQUESTS=3)
    transport = httpx.ASGITransport(app=app, client=("203.0.113.7", 51000))
    async with httpx.AsyncClient(transport=transport, base_url="http://gateway") as client:
        responses = await asyncio.gather(*(client.get("/api/chat/sessions") for _ in range(8)))
    statuses = sorted(r.status_code for r in responses)
    assert statuses == [200, 200, 200, 429, 429, 429, 429, 429]
    assert app.state.limiter.store._windows["203.0.113.7"].count == 3
