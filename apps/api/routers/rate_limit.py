"""Per-user rate limiting dependency backed by an injected window store."""

from __future__ import annotations

from typing import Callable

from fastapi import Depends, Request

from routers.auth_scope import AuthContext, get_auth_context
from services.exceptions import RateLimited
from services.rate_limiter import InMemoryRateLimitStore, RateLimiter, RateLimitStore


def get_rate_limit_store(request: Request) -> RateLimitStore:
    store = getattr(request.app.state, "rate_limit_store", None)
    if store is None:
        store = InMemoryRateLimitStore()
        request.app.state.rate_limit_store = store
    return store


def rate_limit(scope: str, limit: int, window_seconds: int) -> Callable:
    """Return a FastAPI dependency that enforces per-user request quotas."""

    async def _dependency(
        request: Request,
        auth: AuthContext = Depends(get_auth_context),
    ) -> None:
        if getattr(request.app.state, "disable_rate_limits", False):
            return

        limiter = RateLimiter(get_rate_limit_store(request), limit=limit, window_seconds=window_seconds)
        if not await limiter.admit(auth.user_id, scope):
            raise RateLimited()

    return _dependency
