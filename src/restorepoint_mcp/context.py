"""Process-wide owner of the token manager, API client and task tracking.

One ``AppContext`` is built when the server starts and torn down when it
stops. The API client can only be created once per context.
"""

import logging
from dataclasses import dataclass, field
from typing import Self

import httpx

from .client.api_client import ApiClient
from .client.token_manager import TokenManager
from .config import AppConfig
from .scheduling import Scheduler
from .tasks.runner import TaskRunner
from .tasks.task_manager import TaskManager

logger = logging.getLogger("restorepoint_mcp.context")


@dataclass(slots=True)
class AppContext:
    """Shared services handed to tools through the FastMCP lifespan."""

    config: AppConfig
    scheduler: Scheduler
    token_manager: TokenManager
    task_manager: TaskManager
    task_runner: TaskRunner
    _api_client: ApiClient | None = field(default=None, repr=False)

    @classmethod
    def build(cls, config: AppConfig, scheduler: Scheduler | None = None) -> Self:
        """Construct every service for ``config`` without touching the network."""
        scheduler = scheduler or Scheduler()
        task_manager = TaskManager(
            max_concurrent_tasks=config.tasks.max_concurrent_tasks,
            default_timeout_ms=config.tasks.task_timeout_ms,
            cleanup_interval_ms=config.tasks.cleanup_interval_ms,
            scheduler=scheduler,
        )
        return cls(
            config=config,
            scheduler=scheduler,
            token_manager=TokenManager(scheduler=scheduler),
            task_manager=task_manager,
            task_runner=TaskRunner(task_manager),
        )

    @property
    def api_client(self) -> ApiClient:
        """Return the API client.

        Raises:
            RuntimeError: If ``create_api_client`` has not been called.

        """
        if self._api_client is None:
            msg = "API client not initialized. Call create_api_client first."
            raise RuntimeError(msg)
        return self._api_client

    @property
    def has_api_client(self) -> bool:
        """Return True once the API client exists."""
        return self._api_client is not None

    def create_api_client(self, transport: httpx.AsyncBaseTransport | None = None) -> ApiClient:
        """Create the API client for this context.

        Raises:
            RuntimeError: If the client was already created.

        """
        if self._api_client is not None:
            msg = "API client already initialized."
            raise RuntimeError(msg)
        self._api_client = ApiClient(
            self.config,
            self.token_manager,
            scheduler=self.scheduler,
            transport=transport,
        )
        return self._api_client

    def startup(self) -> None:
        """Create the client if needed, seed the token and start the task sweep."""
        if self._api_client is None:
            self.create_api_client()
        self.api_client.initialize_token()
        self.task_manager.start()
        logger.info("Restorepoint context ready (api=%s).", self.config.api_base_url)

    async def aclose(self) -> None:
        """Stop background work and release network resources."""
        await self.task_runner.aclose()
        self.task_manager.shutdown()
        self.token_manager.close()
        if self._api_client is not None:
            await self._api_client.aclose()
        logger.info("Restorepoint context closed.")


__all__ = ["AppContext"]
