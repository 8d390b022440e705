"""Shared pytest fixtures for workshop tests."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any, Mapping, Sequence

import pytest
import structlog

from workshop.core.config import AppConfig, ManifestSettings
from workshop.core.paths import WorkshopPaths
from workshop.manifest import Package
from workshop.packages import (
    FetchGateway,
    FetchRequest,
    PackageIdentifier,
    ProgressCallback,
    Requirement,
)
from workshop.service import WorkshopService


class FakeRegistry:
    """In-memory stand-in for a git host.

    It plays all three collaborator roles: release lookup, fetching and
    dependency listing. Fetched packages are materialized as empty
    directories under the request root so replace and subpath handling can
    be exercised on a real filesystem.
    """

    def __init__(self) -> None:
        self.releases: dict[str, str] = {}
        self.requires: dict[str, list[Requirement]] = {}
        self.failures: set[str] = set()
        self.lookups: list[str] = []
        self.fetched: list[str] = []
        self.read_from: list[tuple[str, Path]] = []

    def release(self, address: str, version: str) -> None:
        self.releases[address] = version

    def declare(self, unique_id: str, *specs: str | tuple[str, str]) -> None:
        """Record the requirements published by ``unique_id``."""

        declared: list[Requirement] = []
        for spec in specs:
            if isinstance(spec, tuple):
                declared.append(Requirement(spec=spec[0], alias=spec[1]))
            else:
                declared.append(Requirement(spec=spec))
        self.requires[unique_id] = declared

    def latest(self, address: str, options: Mapping[str, Any]) -> str:
        self.lookups.append(address)
        return self.releases[address]

    def fetch(
        self,
        request: FetchRequest,
        progress: ProgressCallback | None = None,
    ) -> Path:
        package = request.package
        if package.unique_id in self.failures:
            raise ConnectionError(f"unreachable: {package.address}")
        self.fetched.append(package.unique_id)
        checkout = request.root / f"{package.address}@{package.version}"
        location = checkout / package.subpath if package.subpath else checkout
        location.mkdir(parents=True, exist_ok=True)
        if progress is not None:
            progress(1, package, "fetched")
        return location

    def read(self, package: Package, location: Path) -> Sequence[Requirement]:
        self.read_from.append((package.unique_id, location))
        return list(self.requires.get(package.unique_id, ()))


def _reset_logging() -> None:
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        try:
            handler.close()
        except Exception:  # pragma: no cover - closing stale handlers
            pass
    structlog.reset_defaults()


@pytest.fixture(autouse=True)
def reset_logging_state() -> Iterator[None]:
    """Keep CLI-installed handlers and structlog config from leaking."""

    _reset_logging()
    yield
    _reset_logging()


@pytest.fixture
def workshop_paths(tmp_path: Path) -> WorkshopPaths:
    """Return a home layout under ``tmp_path`` without creating it."""

    return WorkshopPaths.under(tmp_path / "home")


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    project = tmp_path / "project"
    project.mkdir()
    return project


@pytest.fixture
def settings() -> ManifestSettings:
    return ManifestSettings()


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def identifier(registry: FakeRegistry) -> PackageIdentifier:
    return PackageIdentifier(registry)


@pytest.fixture
def gateway(registry: FakeRegistry, workshop_paths: WorkshopPaths) -> FetchGateway:
    return FetchGateway(registry, paths=workshop_paths)


@pytest.fixture
def service(
    registry: FakeRegistry,
    workshop_paths: WorkshopPaths,
) -> WorkshopService:
    return WorkshopService(
        paths=workshop_paths,
        resolver=registry,
        fetcher=registry,
        reader=registry,
        config=AppConfig(),
    )


@pytest.fixture
def write_manifest():
    """Write a raw manifest payload into a project directory."""

    def _write(project: Path, payload: Mapping[str, Any] | str) -> Path:
        path = project / "workshop.yao"
        text = payload if isinstance(payload, str) else json.dumps(payload, indent=2)
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def make_app_root(tmp_path: Path):
    """Create a directory that looks like an application root."""

    def _make(name: str, *, marker: bool = True) -> Path:
        root = tmp_path / name
        root.mkdir(parents=True, exist_ok=True)
        if marker:
            (root / "app.yao").write_text("{}", encoding="utf-8")
        return root

    return _make
