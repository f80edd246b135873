"""Component factory."""

from __future__ import annotations

import sys
from collections.abc import Iterator
from contextlib import closing, contextmanager
from typing import Self

import httpx
import structlog

from .config import Config, LogLevel
from .services.dates import DateResolver
from .services.deletion import DeletionExecutor
from .services.reaper import Reaper
from .storage.registry import RegistryClient


def configure_logging(level: LogLevel) -> None:
    """Filter log messages below ``level`` and write them to stderr."""
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            level.logging_level
        ),
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
    )


class Factory:
    """Build reaper components.

    All components share one configuration and one registry client.

    Parameters
    ----------
    config
        Reaper configuration.
    http_client
        HTTP client to use for registry requests.  One is created if not
        supplied.
    """

    @classmethod
    @contextmanager
    def standalone(
        cls, config: Config, http_client: httpx.Client | None = None
    ) -> Iterator[Self]:
        """Context manager for reaper components.

        Parameters
        ----------
        config
            Reaper configuration.
        http_client
            HTTP client to use for registry requests.

        Yields
        ------
        Factory
            Newly-created factory.  Its registry client is closed on exit.
        """
        factory = cls(config, http_client)
        with closing(factory):
            yield factory

    def __init__(
        self, config: Config, http_client: httpx.Client | None = None
    ) -> None:
        configure_logging(config.log_level)
        self._config = config
        self._client = RegistryClient(config, http_client)

    def close(self) -> None:
        self._client.close()

    def create_registry_client(self) -> RegistryClient:
        return self._client

    def create_date_resolver(self) -> DateResolver:
        return DateResolver(
            self._client,
            strategy=self._config.manifest_list_strategy,
            platform=self._config.platform,
        )

    def create_deletion_executor(self) -> DeletionExecutor:
        return DeletionExecutor(self._client)

    def create_reaper(self) -> Reaper:
        return Reaper(
            self._config,
            self._client,
            resolver=self.create_date_resolver(),
            executor=self.create_deletion_executor(),
        )
