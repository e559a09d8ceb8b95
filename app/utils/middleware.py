import threading

from cachetools import TTLCache
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
    "X-DNS-Prefetch-Control": "off",
}


class RateLimiter:
    """
    Fixed-window request counter per client IP.
    The TTL cache drops a client's counter once its window has elapsed.
    At most `max_clients` counters are tracked; beyond that the least recently
    used one is evicted and that client starts a fresh window.
    """

    def __init__(self, max_requests: int = 100, window_seconds: int = 900, max_clients: int = 10000):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.max_clients = max_clients
        self._counters = TTLCache(maxsize=max_clients, ttl=window_seconds)
        self._lock = threading.Lock()

    def hit(self, client_key: str) -> int:
        """Count one request; returns the remaining allowance (negative when exceeded)."""
        with self._lock:
            count = self._counters.get(client_key)
            if count is None:
                # New window: the TTL starts at first insertion
                self._counters[client_key] = [1]
                count = self._counters[client_key]
            else:
                count[0] += 1
            return self.max_requests - count[0]


def install_http_middleware(app: FastAPI, limiter: RateLimiter) -> None:
    @app.middleware("http")
    async def rate_limit_and_harden(request: Request, call_next):
        client_key = request.client.host if request.client else "unknown"
        remaining = limiter.hit(client_key)
        if remaining < 0:
            response = JSONResponse(content={"error": "Too many requests"}, status_code=429)
        else:
            response = await call_next(request)
        response.headers["RateLimit-Limit"] = str(limiter.max_requests)
        response.headers["RateLimit-Remaining"] = str(max(remaining, 0))
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response
