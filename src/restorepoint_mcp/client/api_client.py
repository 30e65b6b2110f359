"""HTTP client for the Restorepoint API.

Provides authenticated requests with retry/backoff, a one-shot token refresh on
HTTP 401, per-resource circuit breaking and normalization of every response
into an ``ApiResponse`` envelope. Transport failures never leave this module as
raw ``httpx`` exceptions; they are converted into ``RestorepointError``.
"""

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from ..config import AppConfig
from ..endpoints import SYSTEM_STATUS
from ..errors import HTTP_UNAUTHORIZED, ErrorCode, RestorepointError
from ..scheduling import Scheduler
from .resilience import CircuitBreaker, is_retryable_error, retry_with_backoff
from .responses import ApiResponse, transform_response
from .token_manager import DEFAULT_TOKEN_LIFETIME, AuthToken, TokenEvents, TokenManager

logger = logging.getLogger("restorepoint_mcp.api_client")

AUTH_SCHEME = "Custom"

BREAKER_FAILURE_THRESHOLD = 5
BREAKER_RESET_TIMEOUT_MS = 60000


@dataclass(frozen=True, slots=True)
class RequestOptions:
    """Per-call options accepted by ``ApiClient`` request methods.

    Attributes:
        params: Query string parameters.
        skip_auth: Send the request without an ``Authorization`` header.
        skip_retry: Issue a single attempt without backoff.
        max_retries: Total attempts when retrying; defaults to the configured value.
        timeout_ms: Override of the configured request timeout.

    """

    params: dict[str, Any] | None = None
    skip_auth: bool = False
    skip_retry: bool = False
    max_retries: int | None = None
    timeout_ms: int | None = None


def _decode_json(response: httpx.Response) -> Any:
    """Return the JSON body, the raw text for non-JSON bodies, or None when empty."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _counts_toward_breaker(error: BaseException) -> bool:
    """Only transient and connectivity failures trip a resource breaker."""
    return is_retryable_error(error) or (
        isinstance(error, RestorepointError) and error.code is ErrorCode.NETWORK_CONNECTION_FAILED
    )


def resource_key(endpoint: str) -> str:
    """Return the logical resource of an endpoint, e.g. ``/devices/42`` -> ``devices``."""
    path = endpoint.split("?", 1)[0].strip("/")
    return path.split("/", 1)[0] or "root"


class ApiClient:
    """Authenticated, resilient HTTP client for one Restorepoint deployment."""

    def __init__(
        self,
        config: AppConfig,
        token_manager: TokenManager,
        *,
        scheduler: Scheduler | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: The resolved application configuration.
            token_manager: Source of the auth token.
            scheduler: Clock and sleep used for retry backoff and circuit breaking.
            transport: Optional httpx transport (used by tests to stub the server).

        """
        self._config = config
        self._token_manager = token_manager
        self._scheduler = scheduler or Scheduler()
        self._breakers: dict[str, CircuitBreaker] = {}
        self._http = httpx.AsyncClient(
            base_url=config.api_base_url,
            timeout=httpx.Timeout(config.restorepoint.timeout_ms / 1000),
            verify=config.restorepoint.verify_ssl,
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
                "User-Agent": config.user_agent,
            },
            transport=transport,
        )
        self._token_manager.set_events(
            TokenEvents(
                on_token_refresh=self._on_token_refresh,
                on_token_expired=self._on_token_expired,
                on_token_refresh_failed=self._on_token_refresh_failed,
            )
        )

    @property
    def config(self) -> AppConfig:
        """Return the configuration this client was built with."""
        return self._config

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._http.aclose()

    def initialize_token(self) -> AuthToken | None:
        """Seed the token manager with the configured bootstrap token (24h lifetime)."""
        token = self._config.restorepoint.token
        if not token:
            return None
        return self._token_manager.set_token(token, DEFAULT_TOKEN_LIFETIME.total_seconds())

    def breaker_for(self, endpoint: str) -> CircuitBreaker:
        """Return the circuit breaker shared by all calls to the endpoint's resource."""
        key = resource_key(endpoint)
        breaker = self._breakers.get(key)
        if breaker is None:
            breaker = CircuitBreaker(
                BREAKER_FAILURE_THRESHOLD,
                BREAKER_RESET_TIMEOUT_MS,
                name=key,
                clock=self._scheduler.monotonic,
                is_failure=_counts_toward_breaker,
            )
            self._breakers[key] = breaker
        return breaker

    async def get(self, endpoint: str, options: RequestOptions | None = None) -> ApiResponse:
        """Issue a GET request."""
        return await self.make_request("GET", endpoint, options=options)

    async def post(self, endpoint: str, body: Any = None, options: RequestOptions | None = None) -> ApiResponse:
        """Issue a POST request with an optional JSON body."""
        return await self.make_request("POST", endpoint, body=body, options=options)

    async def put(self, endpoint: str, body: Any = None, options: RequestOptions | None = None) -> ApiResponse:
        """Issue a PUT request with an optional JSON body."""
        return await self.make_request("PUT", endpoint, body=body, options=options)

    async def patch(self, endpoint: str, body: Any = None, options: RequestOptions | None = None) -> ApiResponse:
        """Issue a PATCH request with an optional JSON body."""
        return await self.make_request("PATCH", endpoint, body=body, options=options)

    async def delete(self, endpoint: str, options: RequestOptions | None = None) -> ApiResponse:
        """Issue a DELETE request."""
        return await self.make_request("DELETE", endpoint, options=options)

    async def make_request(
        self,
        method: str,
        endpoint: str,
        *,
        body: Any = None,
        options: RequestOptions | None = None,
    ) -> ApiResponse:
        """Send a request through the breaker and (unless disabled) the retry loop.

        Raises:
            RestorepointError: For every transport, HTTP or authentication failure.

        """
        opts = options or RequestOptions()

        async def attempt() -> ApiResponse:
            return await self._request_once(method, endpoint, body=body, opts=opts)

        async def run() -> ApiResponse:
            if opts.skip_retry:
                return await attempt()
            return await retry_with_backoff(
                attempt,
                opts.max_retries if opts.max_retries is not None else self._config.restorepoint.retry_attempts,
                self._config.restorepoint.retry_delay_ms,
                "ApiClient",
                sleep=self._scheduler.sleep,
            )

        try:
            return await self.breaker_for(endpoint).call(run)
        except RestorepointError:
            raise
        except Exception as exc:
            msg = f"Unexpected error during {method} {endpoint}: {exc}"
            raise RestorepointError(ErrorCode.SYSTEM_INTERNAL_ERROR, msg) from exc

    async def test_connection(self) -> bool:
        """Check the server is reachable without authentication; never raises."""
        try:
            await self.get(SYSTEM_STATUS, RequestOptions(skip_auth=True, max_retries=1))
        except Exception as exc:  # noqa: BLE001 - connectivity check reports a boolean
            logger.error("Connection test failed: %s", exc)  # noqa: TRY400
            return False
        return True

    async def _request_once(
        self,
        method: str,
        endpoint: str,
        *,
        body: Any,
        opts: RequestOptions,
    ) -> ApiResponse:
        """Perform a single logical request, including the 401 refresh-and-replay."""
        request = self._http.build_request(
            method,
            endpoint,
            json=body,
            params=opts.params,
            timeout=opts.timeout_ms / 1000 if opts.timeout_ms is not None else httpx.USE_CLIENT_DEFAULT,
        )
        if not opts.skip_auth:
            token = await self._token_manager.ensure_valid_token()
            request.headers["Authorization"] = f"{AUTH_SCHEME} {token}"

        response = await self._dispatch(request)
        if response.status_code == HTTP_UNAUTHORIZED and not opts.skip_auth:
            replayed = await self._replay_with_refreshed_token(request)
            if replayed is not None:
                response = replayed

        payload = _decode_json(response)
        if response.is_error:
            logger.warning("API request failed: %s %s -> %d", method, endpoint, response.status_code)
            raise RestorepointError.from_http_response(response.status_code, payload)

        logger.debug("Received %d from %s %s.", response.status_code, method, endpoint)
        return transform_response(payload, response.status_code)

    async def _replay_with_refreshed_token(self, request: httpx.Request) -> httpx.Response | None:
        """Refresh the token once and resend ``request``; None when refresh is impossible."""
        try:
            await self._token_manager.refresh_token()
        except RestorepointError as exc:
            logger.error("Token refresh failed during retry: %s", exc.message)  # noqa: TRY400
            return None
        token = self._token_manager.get_token()
        if not token:
            return None
        request.headers["Authorization"] = f"{AUTH_SCHEME} {token}"
        return await self._dispatch(request)

    async def _dispatch(self, request: httpx.Request) -> httpx.Response:
        """Send a prepared request, mapping transport errors to ``RestorepointError``."""
        logger.debug("Making %s request to %s.", request.method, request.url.path)
        try:
            return await self._http.send(request)
        except httpx.TimeoutException as exc:
            msg = f"Request timed out: {request.method} {request.url.path}"
            raise RestorepointError(ErrorCode.NETWORK_TIMEOUT, msg, 504) from exc
        except httpx.HTTPError as exc:
            msg = f"Network error during {request.method} {request.url.path}: {exc}"
            raise RestorepointError(ErrorCode.NETWORK_CONNECTION_FAILED, msg, 503) from exc

    def _on_token_refresh(self, token: AuthToken) -> None:
        logger.info("Token refreshed in API client (expires_at=%s).", token.expires_at.isoformat())

    def _on_token_expired(self) -> None:
        logger.warning("Token expired in API client.")

    def _on_token_refresh_failed(self, error: Exception) -> None:
        logger.error("Token refresh failed in API client: %s", error)


__all__ = ["ApiClient", "RequestOptions", "resource_key"]
