"""Top-level package operations on a project manifest."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from workshop.core.config import AppConfig
from workshop.core.logging import Logger, get_logger
from workshop.core.paths import WorkshopPaths
from workshop.manifest import ManifestLock, Package, Workshop, force_unlock
from workshop.packages import (
    ClosureBuilder,
    DependencyReader,
    FetchGateway,
    PackageFetcher,
    PackageIdentifier,
    ProgressCallback,
    ReleaseResolver,
)

__all__ = ["GetResult", "WorkshopService"]


@dataclass(frozen=True, slots=True)
class GetResult:
    """Outcome of :meth:`WorkshopService.get`."""

    package: Package
    added: tuple[Package, ...]
    saved: bool

    @property
    def already_present(self) -> bool:
        return not self.saved


class WorkshopService:
    """Coordinate manifest loading, locking, resolution and persistence."""

    def __init__(
        self,
        *,
        paths: WorkshopPaths,
        resolver: ReleaseResolver,
        fetcher: PackageFetcher,
        reader: DependencyReader,
        config: AppConfig | None = None,
        logger: Logger | None = None,
    ) -> None:
        self._paths = paths
        self._config = config or AppConfig()
        self._reader = reader
        self._logger = logger or get_logger(
            __name__,
            component="workshop-service",
        )
        self._identifier = PackageIdentifier(
            resolver,
            hosts=self._config.hosts,
        )
        self._gateway = FetchGateway(
            fetcher,
            paths=paths,
            hosts=self._config.hosts,
        )

    @classmethod
    def with_git(
        cls,
        *,
        paths: WorkshopPaths,
        config: AppConfig | None = None,
        logger: Logger | None = None,
    ) -> "WorkshopService":
        """Build a service wired to the GitPython collaborators."""

        # GitPython looks for the git binary at import time.
        from workshop.packages.git import (
            GitPackageFetcher,
            GitReleaseResolver,
            ManifestDependencyReader,
        )

        config = config or AppConfig()
        return cls(
            paths=paths,
            config=config,
            resolver=GitReleaseResolver(),
            fetcher=GitPackageFetcher(),
            reader=ManifestDependencyReader(filename=config.manifest.filename),
            logger=logger,
        )

    @property
    def config(self) -> AppConfig:
        return self._config

    def open(self, project: Path | str) -> Workshop:
        """Load the manifest of ``project``."""

        return Workshop.open(project, settings=self._config.manifest)

    def get(
        self,
        project: Path | str,
        spec: str,
        alias: str | None = None,
        progress: ProgressCallback | None = None,
    ) -> GetResult:
        """Add ``spec`` and its dependency closure to ``project``'s manifest.

        The manifest lock is held for the whole operation. The manifest file
        is written once, after the full closure resolved; any failure leaves
        it untouched.

        Raises:
            LockHeldError: If another run holds the manifest lock.
            MalformedSpecError: If ``spec`` is not a valid coordinate.
            FetchError: If any package in the closure fails to fetch.
            PersistError: If the manifest cannot be written.
        """

        settings = self._config.manifest
        manifest_path = Workshop.manifest_path(project, settings)
        log = self._logger.bind(manifest=str(manifest_path), spec=spec)

        with ManifestLock(manifest_path, suffix=settings.lock_suffix):
            workshop = self.open(project)
            package = self._identifier.identify(spec, alias)
            existing = workshop.get(package.unique_id)
            if existing is not None:
                log.info("package-already-required", unique_id=package.unique_id)
                return GetResult(package=existing, added=(), saved=False)

            self._paths.ensure()
            builder = ClosureBuilder(
                workshop,
                gateway=self._gateway,
                reader=self._reader,
                identifier=self._identifier,
                max_packages=self._config.manifest.max_packages,
            )
            added = builder.add(package, progress, indirect=False)
            workshop.save()

        log.info(
            "package-added",
            unique_id=package.unique_id,
            alias=package.alias,
            closure=len(added),
        )
        return GetResult(package=package, added=tuple(added), saved=True)

    def unlock(self, project: Path | str) -> bool:
        """Force-remove a stale lock marker for ``project``'s manifest."""

        settings = self._config.manifest
        return force_unlock(
            Workshop.manifest_path(project, settings),
            suffix=settings.lock_suffix,
        )
