import time
from typing import Dict, Tuple

from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-client-IP fixed window request limit across the whole API."""

    def __init__(self, app, max_requests: int = 100, window_seconds: int = 600):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._next_sweep = 0.0

    def _expired(self, started: float, now: float) -> bool:
        return now - started >= self.window_seconds

    def _sweep(self, now: float) -> None:
        # At most once per window, forget clients whose window has closed
        if now < self._next_sweep:
            return
        self._windows = {k: w for k, w in self._windows.items() if not self._expired(w[0], now)}
        self._next_sweep = now + self.window_seconds

    async def dispatch(self, request, call_next):
        if self.max_requests <= 0:
            return await call_next(request)
        key = request.client.host if request.client else "unknown"
        now = time.monotonic()
        self._sweep(now)
        started, count = self._windows.get(key, (now, 0))
        if self._expired(started, now):
            started, count = now, 0
        count += 1
        self._windows[key] = (started, count)
        remaining = max(self.max_requests - count, 0)
        reset = int(started + self.window_seconds - now)
        if count > self.max_requests:
            return JSONResponse(
                status_code=429,
                content={"success": False, "message": "Too many requests, please try again later."},
                headers={"Retry-After": str(reset), "RateLimit-Limit": str(self.max_requests), "RateLimit-Remaining": "0"},
            )
        response = await call_next(request)
        response.headers["RateLimit-Limit"] = str(self.max_requests)
        response.headers["RateLimit-Remaining"] = str(remaining)
        response.headers["RateLimit-Reset"] = str(reset)
        return response
