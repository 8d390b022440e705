"""Interfaces for the external services the package core relies on.

The core never talks to a version-control host itself. It asks three
collaborators to do so: one resolves the latest release of a repository,
one materializes a package on disk, and one lists the requirements a fetched
package declares. :mod:`workshop.packages.git` provides git-backed defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping, Protocol, Sequence

from workshop.core.config import HostSettings
from workshop.manifest.models import Package

__all__ = [
    "DependencyReader",
    "FetchRequest",
    "PackageFetcher",
    "ProgressCallback",
    "ReleaseResolver",
    "Requirement",
    "host_options",
]

ProgressCallback = Callable[[int, Package, str], None]
"""Observer receiving ``(units_total, package, message)`` during fetches."""


@dataclass(frozen=True, slots=True)
class Requirement:
    """A dependency as declared by a package: a coordinate plus alias."""

    spec: str
    alias: str | None = None


@dataclass(frozen=True, slots=True)
class FetchRequest:
    """Everything a fetcher needs to materialize one package."""

    package: Package
    root: Path
    cache_dir: Path
    options: Mapping[str, Any] = field(default_factory=dict)


class ReleaseResolver(Protocol):
    """Return the newest release tag published for ``address``."""

    def latest(self, address: str, options: Mapping[str, Any]) -> str: ...


class PackageFetcher(Protocol):
    """Materialize a package locally and return its directory."""

    def fetch(
        self,
        request: FetchRequest,
        progress: ProgressCallback | None = None,
    ) -> Path: ...


class DependencyReader(Protocol):
    """List the requirements declared by a package stored at ``location``."""

    def read(self, package: Package, location: Path) -> Sequence[Requirement]: ...


def host_options(
    hosts: Mapping[str, HostSettings],
    host: str,
) -> dict[str, Any]:
    """Return collaborator options configured for ``host``."""

    settings = hosts.get(host.lower()) or HostSettings()
    return settings.options()
