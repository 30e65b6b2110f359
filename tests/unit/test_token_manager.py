"""Unit tests for TokenManager expiry tracking and refresh scheduling."""

# pyright: reportPrivateUsage=false

import asyncio
from dataclasses import replace
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from conftest import ManualScheduler

from restorepoint_mcp.client.token_manager import (
    DEFAULT_TOKEN_LIFETIME,
    AuthToken,
    TokenEvents,
    TokenManager,
)
from restorepoint_mcp.errors import ErrorCode, RestorepointError


async def _drain() -> None:
    """Let background refresh tasks run to completion."""
    for _ in range(10):
        await asyncio.sleep(0)


class TestTokenState:
    """Storing, reading and validating tokens."""

    def test_set_token_defaults_to_24_hours(self, scheduler: ManualScheduler) -> None:
        """Omitting the lifetime should default to 24 hours."""
        manager = TokenManager(scheduler=scheduler)

        token = manager.set_token("abc")

        assert token.expires_at == scheduler.now() + DEFAULT_TOKEN_LIFETIME
        assert manager.get_token() == "abc"
        assert manager.get_full_token() == token

    def test_zero_lifetime_is_already_expired(self, scheduler: ManualScheduler) -> None:
        """An explicit zero lifetime must not fall back to the 24 hour default."""
        manager = TokenManager(scheduler=scheduler)

        token = manager.set_token("abc", 0)

        assert token.expires_at == scheduler.now()
        assert manager.validate_token().is_valid is False

    def test_validate_reports_expires_soon(self, scheduler: ManualScheduler) -> None:
        """Tokens inside the 5 minute buffer are valid but flagged."""
        manager = TokenManager(scheduler=scheduler)
        manager.set_token("abc", 240)

        result = manager.validate_token()

        assert result.is_valid is True
        assert result.expires_soon is True

    def test_expired_token_is_cleared_and_notifies(self, scheduler: ManualScheduler) -> None:
        """Validation of an expired token should clear it and fire on_token_expired."""
        manager = TokenManager(scheduler=scheduler)
        on_expired = MagicMock()
        manager.set_events(TokenEvents(on_token_expired=on_expired))
        manager.set_token("abc", 60)
        scheduler.advance(61)

        assert manager.get_token() == "abc"
        result = manager.validate_token()

        assert result.is_valid is False
        assert result.error == "Token has expired"
        assert manager.get_token() is None
        on_expired.assert_called_once()

    def test_no_token(self, scheduler: ManualScheduler) -> None:
        """Without a token, validation fails and no one is authenticated."""
        manager = TokenManager(scheduler=scheduler)

        assert manager.validate_token().error == "No token available"
        assert manager.is_authenticated() is False

    def test_token_info_never_contains_token(self, scheduler: ManualScheduler) -> None:
        """The loggable summary should describe but never include the secret."""
        manager = TokenManager(scheduler=scheduler)
        manager.set_token("super-secret", refresh_token="r", scopes=["read"])

        info = manager.get_token_info()

        assert info["hasToken"] is True
        assert info["hasRefreshToken"] is True
        assert info["scopes"] == ["read"]
        assert "super-secret" not in str(info)

    def test_set_events_merges_listeners(self, scheduler: ManualScheduler) -> None:
        """Registering a second listener set should keep earlier listeners."""
        manager = TokenManager(scheduler=scheduler)
        on_expired = MagicMock()
        on_refresh = MagicMock()
        manager.set_events(TokenEvents(on_token_expired=on_expired))
        manager.set_events(TokenEvents(on_token_refresh=on_refresh))

        assert manager._events.on_token_expired is on_expired
        assert manager._events.on_token_refresh is on_refresh


class TestRefreshScheduling:
    """Timer-driven refresh behaviour."""

    def test_no_timer_without_refresh_token(self, scheduler: ManualScheduler) -> None:
        """A token without refresh credential should not arm a timer."""
        manager = TokenManager(scheduler=scheduler)
        manager.set_token("abc", 3600)

        assert scheduler.pending == 0

    def test_clear_token_cancels_timer(self, scheduler: ManualScheduler) -> None:
        """Clearing the token should disarm the refresh timer."""
        manager = TokenManager(scheduler=scheduler)
        manager.set_token("abc", 3600, refresh_token="r")
        assert scheduler.pending == 1

        manager.clear_token()

        assert scheduler.pending == 0
        assert manager.get_token() is None

    @pytest.mark.asyncio
    async def test_scheduled_refresh_fires_before_expiry(self, scheduler: ManualScheduler) -> None:
        """The timer should fire 5 minutes before expiry and extend the token."""
        manager = TokenManager(scheduler=scheduler)
        on_refresh = MagicMock()
        manager.set_events(TokenEvents(on_token_refresh=on_refresh))
        original = manager.set_token("abc", 3600, refresh_token="r")

        scheduler.advance(3600 - 300)
        await _drain()

        refreshed = manager.get_full_token()
        assert refreshed is not None
        assert refreshed.token == "abc"
        assert refreshed.expires_at > original.expires_at
        on_refresh.assert_called_once_with(refreshed)

    @pytest.mark.asyncio
    async def test_refresh_timer_fires_immediately_inside_buffer(self, scheduler: ManualScheduler) -> None:
        """A token already inside the buffer should refresh on the next tick."""
        calls: list[AuthToken] = []

        async def refresher(current: AuthToken) -> AuthToken:
            calls.append(current)
            return replace(current, token="new", expires_at=scheduler.now() + timedelta(hours=1))

        manager = TokenManager(scheduler=scheduler, refresher=refresher)
        manager.set_token("abc", 120, refresh_token="r")

        scheduler.advance(0)
        await _drain()

        assert len(calls) == 1
        assert manager.get_token() == "new"

    @pytest.mark.asyncio
    async def test_scheduled_refresh_failure_is_logged(
        self,
        scheduler: ManualScheduler,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """A failing background refresh should notify listeners and keep the old token."""

        async def refresher(_current: AuthToken) -> AuthToken:
            msg = "identity provider down"
            raise ConnectionError(msg)

        manager = TokenManager(scheduler=scheduler, refresher=refresher)
        on_failed = MagicMock()
        manager.set_events(TokenEvents(on_token_refresh_failed=on_failed))
        manager.set_token("abc", 600, refresh_token="r")

        scheduler.advance(300)
        await _drain()

        on_failed.assert_called_once()
        assert manager.get_token() == "abc"
        assert "Scheduled token refresh failed" in caplog.text


class TestRefresh:
    """Explicit and on-demand refreshes."""

    @pytest.mark.asyncio
    async def test_refresh_without_refresh_token(self, scheduler: ManualScheduler) -> None:
        """Refreshing requires a refresh credential."""
        manager = TokenManager(scheduler=scheduler)
        manager.set_token("abc")

        with pytest.raises(RestorepointError) as exc_info:
            await manager.refresh_token()

        assert exc_info.value.code is ErrorCode.AUTH_MISSING_TOKEN

    @pytest.mark.asyncio
    async def test_concurrent_refreshes_share_one_call(self, scheduler: ManualScheduler) -> None:
        """Concurrent callers should await a single refresh."""
        release = asyncio.Event()
        calls = 0

        async def refresher(current: AuthToken) -> AuthToken:
            nonlocal calls
            calls += 1
            await release.wait()
            return replace(current, token="fresh")

        manager = TokenManager(scheduler=scheduler, refresher=refresher)
        manager.set_token("abc", refresh_token="r")

        first = asyncio.ensure_future(manager.refresh_token())
        second = asyncio.ensure_future(manager.refresh_token())
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(first, second)

        assert calls == 1
        assert results[0] is results[1]
        assert manager.get_token() == "fresh"

    @pytest.mark.asyncio
    async def test_refresh_failure_raises_invalid_token(self, scheduler: ManualScheduler) -> None:
        """Refresher errors should surface as AUTH_INVALID_TOKEN."""

        async def refresher(_current: AuthToken) -> AuthToken:
            raise RuntimeError("rejected")

        manager = TokenManager(scheduler=scheduler, refresher=refresher)
        manager.set_token("abc", refresh_token="r")

        with pytest.raises(RestorepointError) as exc_info:
            await manager.refresh_token()

        assert exc_info.value.code is ErrorCode.AUTH_INVALID_TOKEN
        assert manager._refresh.in_flight is None

    @pytest.mark.asyncio
    async def test_ensure_valid_token_refreshes_when_expiring(self, scheduler: ManualScheduler) -> None:
        """A token close to expiry should be refreshed before use."""

        async def refresher(current: AuthToken) -> AuthToken:
            return replace(current, token="fresh", expires_at=scheduler.now() + timedelta(hours=1))

        manager = TokenManager(scheduler=scheduler, refresher=refresher)
        manager.set_token("abc", 3600, refresh_token="r")
        manager._cancel_timer()
        scheduler.advance(3600 - 60)

        assert await manager.ensure_valid_token() == "fresh"

    @pytest.mark.asyncio
    async def test_ensure_valid_token_falls_back_on_refresh_failure(self, scheduler: ManualScheduler) -> None:
        """A failed best-effort refresh should keep using the current token."""

        async def refresher(_current: AuthToken) -> AuthToken:
            raise RuntimeError("rejected")

        manager = TokenManager(scheduler=scheduler, refresher=refresher)
        manager.set_token("abc", 120, refresh_token="r")
        manager._cancel_timer()

        assert await manager.ensure_valid_token() == "abc"

    @pytest.mark.asyncio
    async def test_ensure_valid_token_expired(self, scheduler: ManualScheduler) -> None:
        """An expired token should raise AUTH_TOKEN_EXPIRED."""
        manager = TokenManager(scheduler=scheduler)
        manager.set_token("abc", 10)
        scheduler.advance(11)

        with pytest.raises(RestorepointError) as exc_info:
            await manager.ensure_valid_token()

        assert exc_info.value.code is ErrorCode.AUTH_TOKEN_EXPIRED
        assert exc_info.value.status_code == 401

    def test_close_releases_everything(self, scheduler: ManualScheduler) -> None:
        """Closing should disarm timers and drop the token and listeners."""
        with TokenManager(scheduler=scheduler) as manager:
            manager.set_token("abc", refresh_token="r")
            manager.set_events(TokenEvents(on_token_expired=MagicMock()))

        assert scheduler.pending == 0
        assert manager.get_token() is None
        assert manager._events.on_token_expired is None


class TestRefreshInterleaving:
    """Token changes made while a refresh is still running."""

    @staticmethod
    def _blocked_manager(scheduler: ManualScheduler, release: asyncio.Event) -> TokenManager:
        async def refresher(current: AuthToken) -> AuthToken:
            await release.wait()
            return replace(current, token=f"{current.token}-refreshed")

        return TokenManager(scheduler=scheduler, refresher=refresher)

    @pytest.mark.asyncio
    async def test_clear_during_refresh_keeps_token_cleared(self, scheduler: ManualScheduler) -> None:
        """A refresh finishing after clear_token must not bring the token back."""
        release = asyncio.Event()
        manager = self._blocked_manager(scheduler, release)
        on_refresh = MagicMock()
        manager.set_events(TokenEvents(on_token_refresh=on_refresh))
        manager.set_token("old", refresh_token="r")

        pending = asyncio.ensure_future(manager.refresh_token())
        await asyncio.sleep(0)
        manager.clear_token()
        release.set()

        with pytest.raises(RestorepointError) as exc_info:
            await pending
        assert exc_info.value.code is ErrorCode.AUTH_MISSING_TOKEN
        assert manager.get_token() is None
        assert scheduler.pending == 0
        on_refresh.assert_not_called()

    @pytest.mark.asyncio
    async def test_set_token_during_refresh_wins(self, scheduler: ManualScheduler) -> None:
        """A token set while a refresh runs stays current once the refresh finishes."""
        release = asyncio.Event()
        manager = self._blocked_manager(scheduler, release)
        manager.set_token("old", refresh_token="r")

        pending = asyncio.ensure_future(manager.refresh_token())
        await asyncio.sleep(0)
        fresh = manager.set_token("fresh", 3600, refresh_token="r2")
        release.set()

        assert await pending is fresh
        assert manager.get_token() == "fresh"
        assert manager._refresh.in_flight is None

    @pytest.mark.asyncio
    async def test_refresh_after_set_token_starts_anew(self, scheduler: ManualScheduler) -> None:
        """A new token must not join the refresh started for the previous one."""
        release = asyncio.Event()
        manager = self._blocked_manager(scheduler, release)
        manager.set_token("old", refresh_token="r")
        stale = asyncio.ensure_future(manager.refresh_token())
        await asyncio.sleep(0)

        manager.set_token("fresh", 3600, refresh_token="r2")
        current = asyncio.ensure_future(manager.refresh_token())
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(stale, current)

        assert results[1].token == "fresh-refreshed"
        assert manager.get_token() == "fresh-refreshed"

    @pytest.mark.asyncio
    async def test_close_cancels_on_demand_refresh(self, scheduler: ManualScheduler) -> None:
        """close() should stop a refresh started by ensure_valid_token."""
        release = asyncio.Event()
        manager = self._blocked_manager(scheduler, release)
        manager.set_token("old", 120, refresh_token="r")
        manager._cancel_timer()

        pending = asyncio.ensure_future(manager.ensure_valid_token())
        await asyncio.sleep(0)
        manager.close()
        release.set()
        await _drain()

        assert pending.cancelled()
        assert manager.get_token() is None
        assert manager._refresh.in_flight is None
