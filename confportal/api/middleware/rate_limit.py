"""
Per-IP and per-user rate limiting.

Scopes:
- auth: POST /auth/* by IP
- payment: POST to the payment initiation routes, by user (or IP)
- api: everything else under the API prefix, by user (or IP)

Gateway callbacks are never limited; the gateway owns their retries.
"""

import time
from typing import Callable, Dict, Optional, Tuple

from fastapi import Request, Response, status
from jose import JWTError, jwt
from starlette.middleware.base import BaseHTTPMiddleware

from confportal.config import Settings, get_settings

WINDOW_SECONDS = 60


def _get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _get_user_id_from_jwt(request: Request, settings: Settings) -> Optional[str]:
    """User id from a Bearer token if present. Authorization is decided later."""
    auth = request.headers.get("authorization")
    if not auth or not auth.lower().startswith("bearer "):
        return None
    token = auth[7:].strip()
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    sub = payload.get("sub")
    return str(sub) if sub else None


class InMemoryRateLimitStore:
    """Fixed-window in-memory store. Key -> (count, window_start)."""

    def __init__(self):
        self._data: Dict[str, Tuple[int, float]] = {}

    def check_and_incr(self, scope: str, identifier: str, limit: int, window_seconds: int) -> bool:
        """True if under limit (and counted), False if over limit."""
        key = f"{scope}:{identifier}"
        now = time.monotonic()
        count, start = self._data.get(key, (0, now))
        if now - start >= window_seconds:
            count, start = 0, now
        if count >= limit:
            return False
        self._data[key] = (count + 1, start)
        return True

    def cleanup_old(self, max_age_seconds: int = 3600) -> None:
        now = time.monotonic()
        stale = [k for k, (_, start) in self._data.items() if now - start > max_age_seconds]
        for k in stale:
            self._data.pop(k, None)

    def reset(self) -> None:
        self._data.clear()


# Single-process store
_store: Optional[InMemoryRateLimitStore] = None


def get_store() -> InMemoryRateLimitStore:
    global _store
    if _store is None:
        _store = InMemoryRateLimitStore()
    return _store


def classify(path: str, method: str, prefix: str) -> Optional[str]:
    """Rate limit scope for a request, or None when it is exempt."""
    if not path.startswith(prefix):
        return None
    route = path[len(prefix):]
    if "/callback/" in route:
        return None
    if method == "POST" and route.startswith("/auth"):
        return "auth"
    if method == "POST" and route.rstrip("/") in ("/payments", "/attendees/payments"):
        return "payment"
    return "api"


class RateLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        settings = get_settings()
        if not settings.rate_limit_enabled:
            return await call_next(request)

        scope = classify(request.url.path or "", request.method, settings.api_v1_prefix)
        if scope is None:
            return await call_next(request)

        store = get_store()
        store.cleanup_old(max_age_seconds=7200)

        if scope == "auth":
            limit = settings.rate_limit_auth_per_minute
            identifier = _get_client_ip(request)
        else:
            limit = (
                settings.rate_limit_payment_per_minute
                if scope == "payment"
                else settings.rate_limit_api_per_minute
            )
            identifier = _get_user_id_from_jwt(request, settings) or _get_client_ip(request)

        if not store.check_and_incr(scope, identifier, limit, WINDOW_SECONDS):
            return Response(
                content='{"detail":"Too many requests. Please try again later.","code":"rate_limited"}',
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                media_type="application/json",
            )
        return await call_next(request)
