"""Token management utilities for the Restorepoint API.

The ``TokenManager`` is the single source of truth for the current credential.
It tracks expiry, arms a background refresh five minutes before the token
expires and notifies listeners about refreshes and expiry.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from types import TracebackType
from typing import Any, Self

from ..errors import ErrorCode, RestorepointError
from ..scheduling import Scheduler, TimerHandle

logger = logging.getLogger("restorepoint_mcp.token_manager")

REFRESH_BUFFER = timedelta(minutes=5)
DEFAULT_TOKEN_LIFETIME = timedelta(hours=24)


@dataclass(frozen=True, slots=True)
class AuthToken:
    """An authentication credential and its expiry."""

    token: str
    expires_at: datetime
    refresh_token: str | None = None
    scopes: tuple[str, ...] | None = None


@dataclass(frozen=True, slots=True)
class TokenValidationResult:
    """Outcome of ``TokenManager.validate_token``."""

    is_valid: bool
    token: AuthToken | None = None
    error: str | None = None
    expires_soon: bool = False


@dataclass(slots=True)
class TokenEvents:
    """Optional listeners for token lifecycle events."""

    on_token_refresh: Callable[[AuthToken], None] | None = None
    on_token_expired: Callable[[], None] | None = None
    on_token_refresh_failed: Callable[[Exception], None] | None = None


type TokenRefresher = Callable[[AuthToken], Awaitable[AuthToken]]


@dataclass(slots=True)
class _RefreshState:
    timer: TimerHandle | None = None
    in_flight: asyncio.Future[AuthToken] | None = None
    background: set[asyncio.Task[Any]] = field(default_factory=set)


class TokenManager:
    """Manage the Restorepoint auth token, refreshing it before it expires."""

    def __init__(
        self,
        *,
        scheduler: Scheduler | None = None,
        refresher: TokenRefresher | None = None,
    ) -> None:
        """Initialize the token manager.

        Args:
            scheduler: Clock and timer source; defaults to the asyncio loop.
            refresher: Coroutine producing a replacement token from the current
                one. Defaults to extending the current token's lifetime by 24h.

        """
        self._scheduler = scheduler or Scheduler()
        self._refresher = refresher or self._extend_token
        self._current: AuthToken | None = None
        self._events = TokenEvents()
        self._refresh = _RefreshState()

    def __enter__(self) -> Self:
        """Return the token manager for context manager usage."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Close resources when leaving a context manager block."""
        self.close()

    def set_events(self, events: TokenEvents) -> None:
        """Merge the provided listeners into the registered ones."""
        for name in ("on_token_refresh", "on_token_expired", "on_token_refresh_failed"):
            listener = getattr(events, name)
            if listener is not None:
                setattr(self._events, name, listener)

    def set_token(
        self,
        token: str,
        expires_in_seconds: float | None = None,
        refresh_token: str | None = None,
        scopes: tuple[str, ...] | list[str] | None = None,
    ) -> AuthToken:
        """Store a new token and (re)schedule its refresh.

        Args:
            token: The credential string.
            expires_in_seconds: Lifetime of the token; 24 hours when omitted.
            refresh_token: Optional refresh credential enabling automatic refresh.
            scopes: Optional scopes granted to the token.

        Returns:
            The stored ``AuthToken``.

        """
        lifetime = DEFAULT_TOKEN_LIFETIME if expires_in_seconds is None else timedelta(seconds=expires_in_seconds)
        self._current = AuthToken(
            token=token,
            expires_at=self._scheduler.now() + lifetime,
            refresh_token=refresh_token,
            scopes=tuple(scopes) if scopes is not None else None,
        )
        self._detach_refresh()
        logger.info(
            "Authentication token set (expires_at=%s, has_refresh_token=%s).",
            self._current.expires_at.isoformat(),
            refresh_token is not None,
        )
        self._schedule_refresh()
        return self._current

    def get_token(self) -> str | None:
        """Return the current token string without checking expiry."""
        return self._current.token if self._current else None

    def get_full_token(self) -> AuthToken | None:
        """Return the current ``AuthToken`` without checking expiry."""
        return self._current

    def validate_token(self) -> TokenValidationResult:
        """Check the current token, clearing it if it has expired."""
        if self._current is None:
            return TokenValidationResult(is_valid=False, error="No token available")

        remaining = self._current.expires_at - self._scheduler.now()
        if remaining <= timedelta(0):
            self._handle_token_expired()
            return TokenValidationResult(is_valid=False, error="Token has expired")

        return TokenValidationResult(
            is_valid=True,
            token=self._current,
            expires_soon=remaining <= REFRESH_BUFFER,
        )

    def is_authenticated(self) -> bool:
        """Return True when a valid (unexpired) token is present."""
        return self.validate_token().is_valid

    def get_token_info(self) -> dict[str, Any]:
        """Return a loggable summary of the token state (never the token itself)."""
        validation = self.validate_token()
        current = self._current
        return {
            "hasToken": current is not None,
            "expiresAt": current.expires_at.isoformat() if current else None,
            "isExpired": not validation.is_valid,
            "expiresSoon": validation.expires_soon,
            "hasRefreshToken": bool(current and current.refresh_token),
            "scopes": list(current.scopes) if current and current.scopes else None,
        }

    async def ensure_valid_token(self) -> str:
        """Return a usable token string, refreshing it first when it expires soon.

        Raises:
            RestorepointError: ``AUTH_TOKEN_EXPIRED`` when no valid token exists.

        """
        validation = self.validate_token()
        if not validation.is_valid or self._current is None:
            raise RestorepointError(
                ErrorCode.AUTH_TOKEN_EXPIRED,
                validation.error or "Invalid token",
                401,
            )

        if validation.expires_soon and self._current.refresh_token:
            try:
                await self.refresh_token()
            except RestorepointError as exc:
                logger.warning("Failed to refresh token, using current token: %s", exc.message)

        if self._current is None:
            raise RestorepointError(ErrorCode.AUTH_TOKEN_EXPIRED, "Token was cleared during refresh", 401)
        return self._current.token

    async def refresh_token(self) -> AuthToken:
        """Replace the current token with a refreshed one.

        Concurrent callers share a single in-flight refresh.

        Raises:
            RestorepointError: ``AUTH_MISSING_TOKEN`` without a refresh token,
                ``AUTH_INVALID_TOKEN`` when the refresh itself fails.

        """
        if self._refresh.in_flight is None:
            if self._current is None or not self._current.refresh_token:
                raise RestorepointError(ErrorCode.AUTH_MISSING_TOKEN, "No refresh token available", 401)
            self._refresh.in_flight = asyncio.ensure_future(self._perform_refresh(self._current))
        return await asyncio.shield(self._refresh.in_flight)

    def clear_token(self) -> None:
        """Cancel any scheduled refresh and drop the current token."""
        logger.info("Clearing authentication token.")
        self._current = None
        self._cancel_timer()
        self._detach_refresh()

    def close(self) -> None:
        """Release timers, background refreshes and listeners."""
        self._cancel_timer()
        for task in list(self._refresh.background):
            task.cancel()
        self._refresh.background.clear()
        if self._refresh.in_flight is not None:
            self._refresh.in_flight.cancel()
            self._refresh.in_flight = None
        self._current = None
        self._events = TokenEvents()

    async def _perform_refresh(self, current: AuthToken) -> AuthToken:
        logger.debug("Refreshing authentication token.")
        try:
            new_token = await self._refresher(current)
        except Exception as exc:
            logger.exception("Token refresh failed")
            if self._current is current and self._events.on_token_refresh_failed:
                self._events.on_token_refresh_failed(exc)
            msg = f"Token refresh failed: {exc}"
            raise RestorepointError(ErrorCode.AUTH_INVALID_TOKEN, msg, 401) from exc
        finally:
            if self._refresh.in_flight is asyncio.current_task():
                self._refresh.in_flight = None

        # The token was replaced or cleared while the refresher ran.
        if self._current is not current:
            logger.info("Discarding refreshed token; the credential changed during refresh.")
            if self._current is None:
                raise RestorepointError(ErrorCode.AUTH_MISSING_TOKEN, "Token was cleared during refresh", 401)
            return self._current

        self._current = new_token
        self._schedule_refresh()
        logger.info("Token refreshed successfully (expires_at=%s).", new_token.expires_at.isoformat())
        if self._events.on_token_refresh:
            self._events.on_token_refresh(new_token)
        return new_token

    async def _extend_token(self, current: AuthToken) -> AuthToken:
        """Keep the same credential and extend its lifetime by 24 hours."""
        return replace(current, expires_at=self._scheduler.now() + DEFAULT_TOKEN_LIFETIME)

    def _schedule_refresh(self) -> None:
        self._cancel_timer()
        if self._current is None or not self._current.refresh_token:
            return

        refresh_at = self._current.expires_at - REFRESH_BUFFER
        delay = (refresh_at - self._scheduler.now()).total_seconds()
        self._refresh.timer = self._scheduler.call_later(delay, self._on_refresh_timer)
        if delay > 0:
            logger.debug("Token refresh scheduled in %d minutes.", round(delay / 60))

    def _on_refresh_timer(self) -> None:
        self._refresh.timer = None
        task = asyncio.ensure_future(self._scheduled_refresh())
        self._refresh.background.add(task)
        task.add_done_callback(self._refresh.background.discard)

    async def _scheduled_refresh(self) -> None:
        try:
            await self.refresh_token()
        except RestorepointError as exc:
            logger.error("Scheduled token refresh failed: %s", exc.message)  # noqa: TRY400

    def _detach_refresh(self) -> None:
        """Let later callers start a new refresh; the detached one is dropped on completion."""
        self._refresh.in_flight = None

    def _cancel_timer(self) -> None:
        if self._refresh.timer is not None:
            self._refresh.timer.cancel()
            self._refresh.timer = None

    def _handle_token_expired(self) -> None:
        logger.warning("Authentication token expired.")
        if self._events.on_token_expired:
            self._events.on_token_expired()
        self.clear_token()


__all__ = [
    "DEFAULT_TOKEN_LIFETIME",
    "REFRESH_BUFFER",
    "AuthToken",
    "TokenEvents",
    "TokenManager",
    "TokenRefresher",
    "TokenValidationResult",
]
