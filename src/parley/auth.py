"""Per-turn authorization context."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from loguru import logger

from parley.errors import RefreshUnavailable

type RefreshOperation = Callable[[], Awaitable[str]]


class AuthorizationContext:
    """Bearer credential for one logical unit of work, typically one turn.

    Create one per turn and pass it down explicitly (session -> adapter ->
    transport -> interceptors). At most one refresh runs at a time; callers
    that hit a 401 while a refresh is in flight wait for it and reuse its
    result.
    """

    def __init__(self, bearer_token: str, refresh: RefreshOperation | None = None) -> None:
        self._token = bearer_token
        self._refresh = refresh
        self._lock = asyncio.Lock()
        self._inflight: asyncio.Future[str] | None = None
        self.refresh_count = 0

    @property
    def can_refresh(self) -> bool:
        return self._refresh is not None

    def current_token(self) -> str:
        return self._token

    async def set_token(self, token: str) -> None:
        async with self._lock:
            self._token = token

    async def refresh(self, *, failed_token: str | None = None) -> str:
        """Return a refreshed token, sharing one refresh among concurrent callers.

        ``failed_token`` is the token the caller was rejected with. If the
        current token already differs, another caller has refreshed in the
        meantime and the current token is returned as is.
        """
        if self._refresh is None:
            raise RefreshUnavailable("authorization context has no refresh operation")

        async with self._lock:
            if failed_token is not None and failed_token != self._token and self._inflight is None:
                return self._token
            if self._inflight is None:
                self._inflight = asyncio.ensure_future(self._run_refresh(self._refresh))
            inflight = self._inflight
        # Shielded so a cancelled waiter does not cancel the shared refresh.
        return await asyncio.shield(inflight)

    async def _run_refresh(self, operation: RefreshOperation) -> str:
        self.refresh_count += 1
        logger.info("auth.refresh.start count={}", self.refresh_count)
        try:
            token = await operation()
            async with self._lock:
                self._token = token
        except Exception:
            logger.exception("auth.refresh.error")
            raise
        finally:
            self._inflight = None
        logger.info("auth.refresh.done count={}", self.refresh_count)
        return token
