import math
import threading
import time
from collections import defaultdict, deque

# headers for the proxy's own responses, not the proxied site's
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "no-referrer-when-downgrade",
    "X-DNS-Prefetch-Control": "off",
    "Cross-Origin-Resource-Policy": "cross-origin",
}

# the proxy is meant to be framed by the desktop shell
FRAMING_HEADERS = ("X-Frame-Options", "Content-Security-Policy")


class RateLimiter:
    """Sliding-window request counter per client key."""

    def __init__(self, limit: int = 30, window: float = 10.0, clock=time.monotonic):
        self.limit = limit
        self.window = window
        self.clock = clock
        self._lock = threading.Lock()
        self._hits = defaultdict(deque)
        self._last_sweep = clock()

    def _prune(self, key, now):
        hits = self._hits.get(key)
        if hits is None:
            return None
        while hits and hits[0] <= now - self.window:
            hits.popleft()
        if not hits:
            del self._hits[key]
            return None
        return hits

    def _sweep(self, now):
        # drop clients that went quiet, at most once per window
        if now - self._last_sweep < self.window:
            return
        self._last_sweep = now
        for key in list(self._hits):
            self._prune(key, now)

    def allow(self, key: str) -> bool:
        now = self.clock()
        with self._lock:
            self._sweep(now)
            hits = self._prune(key, now)
            if len(hits or ()) >= self.limit:
                return False
            self._hits[key].append(now)
            return True

    def retry_after(self, key: str) -> int:
        """Whole seconds until ``key`` may send another request."""
        now = self.clock()
        with self._lock:
            hits = self._prune(key, now)
            if hits is None or len(hits) < self.limit:
                return 0
            return max(1, math.ceil(hits[0] + self.window - now))

    def reset(self):
        with self._lock:
            self._hits.clear()

    def __len__(self):
        with self._lock:
            return len(self._hits)


def client_key(request) -> str:
    return request.remote_addr or "unknown"


def apply_security_headers(response):
    for name in FRAMING_HEADERS:
        response.headers.pop(name, None)
    for name, value in SECURITY_HEADERS.items():
        response.headers[name] = value
    return response
