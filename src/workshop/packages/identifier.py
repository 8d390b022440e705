"""Parse package coordinates and pin them to concrete versions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from workshop.core.config import HostSettings
from workshop.core.logging import Logger, get_logger
from workshop.errors import MalformedSpecError, ReleaseLookupError, WorkshopError
from workshop.manifest.models import Package

from .collaborators import ReleaseResolver, host_options

__all__ = [
    "Coordinate",
    "PackageIdentifier",
    "default_alias",
    "parse_coordinate",
]


@dataclass(frozen=True, slots=True)
class Coordinate:
    """Structured form of ``host/org/repo[/subpath...][@version]``."""

    address: str
    subpath: str = ""
    version: str | None = None

    @property
    def host(self) -> str:
        return self.address.split("/", 1)[0]

    @property
    def package_path(self) -> str:
        return f"{self.address}/{self.subpath}" if self.subpath else self.address

    @property
    def pinned(self) -> bool:
        return self.version is not None


def parse_coordinate(spec: str) -> Coordinate:
    """Split a coordinate into address, subpath and optional version.

    Example:
        >>> parse_coordinate("github.com/acme/wms/cloud@e86eab4c8490")
        Coordinate(address='github.com/acme/wms', subpath='cloud', version='e86eab4c8490')

    Raises:
        MalformedSpecError: If fewer than three segments precede ``@`` or the
            version after ``@`` is empty.
    """

    raw = spec.strip()
    location, separator, version = raw.partition("@")
    version = version.strip()
    if separator and not version:
        raise MalformedSpecError(spec, "empty version after '@'")

    segments = location.strip().strip("/").split("/")
    if len(segments) < 3 or not all(segment.strip() for segment in segments):
        raise MalformedSpecError(spec, "expected at least host/org/repo")

    return Coordinate(
        address="/".join(segments[:3]),
        subpath="/".join(segments[3:]),
        version=version or None,
    )


def default_alias(coordinate: Coordinate) -> str:
    """Derive an alias from the last segment of the package path.

    Example:
        >>> default_alias(parse_coordinate("github.com/acme/crm@v1.0.0"))
        'crm'
    """

    return coordinate.package_path.rsplit("/", 1)[-1]


class PackageIdentifier:
    """Turn coordinate strings into :class:`Package` records.

    Pinned coordinates are handled locally. Unpinned ones trigger the only
    network call on this path: a release lookup through ``resolver``.
    """

    def __init__(
        self,
        resolver: ReleaseResolver,
        *,
        hosts: Mapping[str, HostSettings] | None = None,
        logger: Logger | None = None,
    ) -> None:
        self._resolver = resolver
        self._hosts = dict(hosts or {})
        self._logger = logger or get_logger(
            __name__,
            component="package-identifier",
        )

    def identify(self, spec: str, alias: str | None = None) -> Package:
        """Return a pinned package for ``spec``.

        Raises:
            MalformedSpecError: If ``spec`` is not a valid coordinate.
            ReleaseLookupError: If an unpinned spec cannot be resolved.
        """

        coordinate = parse_coordinate(spec)
        version = coordinate.version
        if version is None:
            version = self._resolve_latest(coordinate)

        chosen_alias = alias.strip() if alias and alias.strip() else None
        return Package(
            spec=spec.strip(),
            alias=chosen_alias or default_alias(coordinate),
            address=coordinate.address,
            subpath=coordinate.subpath,
            version=version,
        )

    def _resolve_latest(self, coordinate: Coordinate) -> str:
        options = host_options(self._hosts, coordinate.host)
        try:
            release = self._resolver.latest(coordinate.address, options)
        except WorkshopError:
            raise
        except Exception as exc:
            raise ReleaseLookupError(
                f"Failed to resolve the latest release of "
                f"{coordinate.address}: {exc}"
            ) from exc

        release = (release or "").strip()
        if not release:
            raise ReleaseLookupError(
                f"{coordinate.address} has no published release"
            )

        self._logger.info(
            "package-release-resolved",
            address=coordinate.address,
            version=release,
        )
        return release
