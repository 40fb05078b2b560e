import threading

from flask import Response

from frameproxy.gate import RateLimiter, apply_security_headers


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_allows_up_to_limit_within_window():
    limiter = RateLimiter(limit=3, window=10.0, clock=FakeClock())
    assert [limiter.allow("1.2.3.4") for _ in range(4)] == [True, True, True, False]


def test_keys_are_independent():
    limiter = RateLimiter(limit=1, window=10.0, clock=FakeClock())
    assert limiter.allow("a")
    assert limiter.allow("b")
    assert not limiter.allow("a")


def test_window_slides():
    clock = FakeClock()
    limiter = RateLimiter(limit=2, window=10.0, clock=clock)
    assert limiter.allow("a")
    clock.now += 6
    assert limiter.allow("a")
    assert not limiter.allow("a")
    clock.now += 4.5
    # first hit has aged out, second has not
    assert limiter.allow("a")
    assert not limiter.allow("a")


def test_retry_after():
    clock = FakeClock()
    limiter = RateLimiter(limit=1, window=10.0, clock=clock)
    assert limiter.retry_after("a") == 0
    limiter.allow("a")
    clock.now += 2.5
    assert limiter.retry_after("a") == 8


def test_expired_keys_are_evicted():
    clock = FakeClock()
    limiter = RateLimiter(limit=5, window=1.0, clock=clock)
    limiter.allow("a")
    limiter.allow("b")
    assert len(limiter) == 2
    clock.now += 2
    limiter.allow("a")
    limiter.retry_after("b")
    assert len(limiter) == 1


def test_concurrent_hits_never_exceed_limit():
    limiter = RateLimiter(limit=30, window=60.0)
    allowed = []
    lock = threading.Lock()

    def hit():
        for _ in range(10):
            ok = limiter.allow("shared")
            with lock:
                allowed.append(ok)

    threads = [threading.Thread(target=hit) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert allowed.count(True) == 30
    assert len(allowed) == 80


def test_security_headers_allow_framing():
    response = Response("x")
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Content-Security-Policy"] = "frame-ancestors 'none'"
    apply_security_headers(response)
    assert "X-Frame-Options" not in response.headers
    assert "Content-Security-Policy" not in response.headers
    assert response.headers["X-Content-Type-Options"] == "nosniff"


def test_quiet_clients_are_swept():
    clock = FakeClock()
    limiter = RateLimiter(limit=5, window=10.0, clock=clock)
    for i in range(1000):
        limiter.allow(f"10.0.{i // 256}.{i % 256}")
    assert len(limiter) == 1000
    clock.now += 3600
    assert limiter.allow("fresh")
    assert len(limiter) == 1
