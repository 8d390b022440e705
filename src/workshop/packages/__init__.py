"""Package identification, fetching and dependency closure."""

from __future__ import annotations

from .closure import ClosureBuilder
from .collaborators import (
    DependencyReader,
    FetchRequest,
    PackageFetcher,
    ProgressCallback,
    ReleaseResolver,
    Requirement,
)
from .gateway import FetchGateway
from .identifier import (
    Coordinate,
    PackageIdentifier,
    default_alias,
    parse_coordinate,
)

__all__ = [
    "ClosureBuilder",
    "Coordinate",
    "DependencyReader",
    "FetchGateway",
    "FetchRequest",
    "PackageFetcher",
    "PackageIdentifier",
    "ProgressCallback",
    "ReleaseResolver",
    "Requirement",
    "default_alias",
    "parse_coordinate",
]
