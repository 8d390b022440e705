"""Transitive dependency closure over fetched packages."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

from workshop.core.logging import Logger, get_logger
from workshop.errors import ClosureTooLargeError, DependencyReadError, WorkshopError
from workshop.manifest.models import Package
from workshop.manifest.store import Workshop

from .collaborators import DependencyReader, ProgressCallback, Requirement
from .gateway import FetchGateway
from .identifier import PackageIdentifier

__all__ = ["ClosureBuilder"]


class ClosureBuilder:
    """Grow a manifest by one package and everything it transitively needs.

    Packages are visited depth first in the order their dependencies are
    declared, using an explicit stack. A package whose unique id is already
    in the manifest, or was already visited in this run, is skipped; that
    check is what terminates diamonds and cycles. Nothing is written to the
    manifest until the whole closure has been fetched.
    """

    def __init__(
        self,
        workshop: Workshop,
        *,
        gateway: FetchGateway,
        reader: DependencyReader,
        identifier: PackageIdentifier,
        max_packages: int | None = None,
        logger: Logger | None = None,
    ) -> None:
        self._workshop = workshop
        self._gateway = gateway
        self._reader = reader
        self._identifier = identifier
        self._max_packages = max_packages or workshop.settings.max_packages
        self._logger = logger or get_logger(__name__, component="closure")

    def add(
        self,
        package: Package,
        progress: ProgressCallback | None = None,
        indirect: bool = False,
    ) -> list[Package]:
        """Resolve the closure of ``package`` and commit it to the manifest.

        Returns the packages appended to ``require``, in discovery order.

        Raises:
            FetchError: If any package in the closure fails to fetch.
            ClosureTooLargeError: If the closure exceeds the package cap.
            AliasCollisionError: If a new package reuses a taken alias.
        """

        discovered = self.resolve(package, progress, indirect)
        added = self._workshop.extend(discovered)
        self._logger.info(
            "closure-complete",
            root=package.unique_id,
            added=len(added),
            indirect=sum(1 for item in added if item.indirect),
        )
        return added

    def resolve(
        self,
        package: Package,
        progress: ProgressCallback | None = None,
        indirect: bool = False,
    ) -> list[Package]:
        """Fetch the closure of ``package`` without touching the manifest."""

        visited: set[str] = set()
        discovered: list[Package] = []
        stack: list[tuple[Package, bool]] = [(package, indirect)]

        while stack:
            current, is_indirect = stack.pop()
            if current.unique_id in visited or self._workshop.has(
                current.unique_id
            ):
                continue
            if len(discovered) >= self._max_packages:
                raise ClosureTooLargeError(package.unique_id, self._max_packages)

            location = self._materialize(current, progress)
            current.indirect = is_indirect
            visited.add(current.unique_id)
            discovered.append(current)

            children = [
                self._identifier.identify(requirement.spec, requirement.alias)
                for requirement in self._declared(current, location)
            ]
            # Reversed so the first declared dependency is popped first.
            stack.extend((child, True) for child in reversed(children))

        return discovered

    def _materialize(
        self,
        package: Package,
        progress: ProgressCallback | None,
    ) -> Path:
        local_path = self._workshop.resolve_replacement(package)
        if local_path is not None:
            package.replaced = True
            package.local_path = local_path
            self._logger.debug(
                "package-replaced",
                unique_id=package.unique_id,
                path=str(local_path),
            )
            return local_path
        return self._gateway.fetch(package, progress)

    def _declared(self, package: Package, location: Path) -> Sequence[Requirement]:
        try:
            return self._reader.read(package, location)
        except WorkshopError:
            raise
        except Exception as exc:
            raise DependencyReadError(
                f"Failed to read dependencies of {package.unique_id}: {exc}"
            ) from exc
