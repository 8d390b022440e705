"""Thin wrapper around the fetch collaborator."""

from __future__ import annotations

from pathlib import Path
from typing import Mapping

from workshop.core.config import HostSettings
from workshop.core.logging import Logger, get_logger
from workshop.core.paths import WorkshopPaths
from workshop.errors import FetchError
from workshop.manifest.models import Package

from .collaborators import (
    FetchRequest,
    PackageFetcher,
    ProgressCallback,
    host_options,
)

__all__ = ["FetchGateway"]


class FetchGateway:
    """Fetch packages into the shared home directory.

    The gateway only decides where content goes and which host options
    apply; transport, retries and timeouts belong to the fetcher.
    """

    def __init__(
        self,
        fetcher: PackageFetcher,
        *,
        paths: WorkshopPaths,
        hosts: Mapping[str, HostSettings] | None = None,
        logger: Logger | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._paths = paths
        self._hosts = dict(hosts or {})
        self._logger = logger or get_logger(__name__, component="fetch-gateway")

    def request_for(self, package: Package) -> FetchRequest:
        """Build the request handed to the fetcher for ``package``."""

        return FetchRequest(
            package=package,
            root=self._paths.packages_dir,
            cache_dir=self._paths.cache_dir,
            options=host_options(self._hosts, package.host),
        )

    def fetch(
        self,
        package: Package,
        progress: ProgressCallback | None = None,
    ) -> Path:
        """Materialize ``package`` and return its local directory.

        Raises:
            FetchError: Wrapping whatever the fetcher raised.
        """

        request = self.request_for(package)
        try:
            destination = self._fetcher.fetch(request, progress)
        except FetchError:
            raise
        except Exception as exc:
            raise FetchError(package.unique_id, exc) from exc

        self._logger.debug(
            "package-fetched",
            unique_id=package.unique_id,
            path=str(destination),
        )
        return Path(destination)
