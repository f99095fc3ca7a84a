from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from typing import Dict, List, Sequence, Tuple
import time
from collections import defaultdict
from isodoc.core.monitoring import REQUEST_COUNT, REQUEST_LATENCY

AUTH_PATH_SUFFIXES = ("/login", "/forgot-password", "/reset-password", "/register")

class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding-window limit per client IP, tighter on authentication paths."""

    def __init__(
        self,
        app,
        auth_limit: Tuple[int, int] = (10, 15 * 60),
        default_limit: Tuple[int, int] = (300, 5 * 60),
        auth_paths: Sequence[str] = AUTH_PATH_SUFFIXES,
    ):
        super().__init__(app)
        self.auth_limit = auth_limit
        self.default_limit = default_limit
        self.auth_paths = tuple(auth_paths)
        self.requests: Dict[Tuple[str, str], List[float]] = defaultdict(list)

    async def dispatch(self, request: Request, call_next):
        client_ip = request.client.host if request.client else "unknown"
        is_auth = request.url.path.endswith(self.auth_paths)
        limit, window = self.auth_limit if is_auth else self.default_limit
        bucket = (client_ip, "auth" if is_auth else "default")
        now = time.time()

        # Clean old requests
        self.requests[bucket] = [req_time for req_time in self.requests[bucket] if now - req_time < window]

        if len(self.requests[bucket]) >= limit:
            retry_after = int(window - (now - self.requests[bucket][0])) + 1
            return JSONResponse(
                status_code=429,
                content={"detail": "Too many requests, try again later", "error_code": "RATE_LIMITED"},
                headers={"Retry-After": str(retry_after)},
            )

        self.requests[bucket].append(now)
        return await call_next(request)

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response

class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        # route template keeps label cardinality bounded
        start_time = time.time()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            route = request.scope.get("route")
            endpoint = getattr(route, "path", "unmatched")
            REQUEST_COUNT.labels(method=request.method, endpoint=endpoint, http_status=status_code).inc()
            REQUEST_LATENCY.labels(method=request.method, endpoint=endpoint).observe(time.time() - start_time)
