"""Manifest store: the project's ordered requirement list and overrides."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Iterable, Iterator

from pydantic import ValidationError

from workshop.core.config import ManifestSettings
from workshop.core.logging import Logger, get_logger
from workshop.errors import (
    AliasCollisionError,
    ManifestReadError,
    PersistError,
    ReplaceTargetInvalidError,
    ReplaceTargetMissingError,
)

from .locks import build_lock_path
from .models import ManifestDocument, Package

__all__ = ["Workshop"]


def _read_document(path: Path) -> ManifestDocument:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ManifestReadError(
            f"Failed to read manifest at {path}: {exc}"
        ) from exc
    if not text.strip():
        return ManifestDocument()
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ManifestReadError(f"Malformed manifest at {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ManifestReadError(f"Manifest at {path} is not a JSON object")
    try:
        return ManifestDocument.model_validate(payload)
    except ValidationError as exc:
        raise ManifestReadError(f"Invalid manifest at {path}: {exc}") from exc


class Workshop:
    """In-memory manifest of one project.

    ``require`` is the source of truth and keeps discovery order. ``index``
    maps both aliases and unique ids to packages and is always derived from
    ``require``; it is never written to disk.
    """

    def __init__(
        self,
        *,
        file: Path,
        settings: ManifestSettings | None = None,
        require: Iterable[Package] | None = None,
        replace: dict[str, str] | None = None,
        logger: Logger | None = None,
    ) -> None:
        self.file = file
        self.settings = settings or ManifestSettings()
        self.require: list[Package] = list(require or ())
        self.replace: dict[str, str] = dict(replace or {})
        self.index: dict[str, Package] = {}
        self._logger = logger or get_logger(
            __name__,
            component="manifest-store",
        )

    @classmethod
    def open(
        cls,
        root: Path | str,
        *,
        settings: ManifestSettings | None = None,
        logger: Logger | None = None,
    ) -> "Workshop":
        """Load the manifest under ``root`` or start an empty one.

        Raises:
            ManifestReadError: If the file exists but cannot be parsed.
            AliasCollisionError: If two entries share an alias.
            ReplaceTargetMissingError: If a replace target does not exist.
            ReplaceTargetInvalidError: If a replace target is not an app root.
        """

        settings = settings or ManifestSettings()
        file = cls.manifest_path(root, settings)

        if not file.exists():
            return cls(file=file, settings=settings, logger=logger)

        document = _read_document(file)
        workshop = cls(
            file=file,
            settings=settings,
            require=document.require,
            replace=document.replace,
            logger=logger,
        )
        workshop.set_mapping()
        return workshop

    @staticmethod
    def manifest_path(
        root: Path | str,
        settings: ManifestSettings | None = None,
    ) -> Path:
        """Return the absolute manifest file path for project ``root``."""

        settings = settings or ManifestSettings()
        project = Path(root).expanduser().resolve(strict=False)
        return project / settings.filename

    @property
    def lock_path(self) -> Path:
        return build_lock_path(self.file, suffix=self.settings.lock_suffix)

    def __iter__(self) -> Iterator[Package]:
        return iter(self.require)

    def __len__(self) -> int:
        return len(self.require)

    def has(self, name: str) -> bool:
        """Return ``True`` if ``name`` is a known alias or unique id."""

        return name in self.index

    def get(self, name: str) -> Package | None:
        return self.index.get(name)

    def set_mapping(self) -> None:
        """Rebuild :attr:`index` from :attr:`require` and apply replaces.

        The index is swapped in only after every entry validated, so a failure
        leaves the previous mapping intact.
        """

        index: dict[str, Package] = {}
        kept: list[Package] = []
        for package in self.require:
            claimed = index.get(package.alias) or index.get(package.unique_id)
            if claimed is not None and claimed.unique_id == package.unique_id:
                self._logger.warning(
                    "manifest-duplicate-entry",
                    unique_id=package.unique_id,
                    alias=package.alias,
                )
                continue
            if package.alias in index:
                raise AliasCollisionError(
                    package.alias,
                    index[package.alias].spec,
                    package.spec,
                )

            local_path = self.resolve_replacement(package)
            if local_path is not None:
                package.replaced = True
                package.local_path = local_path

            index[package.alias] = package
            index[package.unique_id] = package
            kept.append(package)

        self.require = kept
        self.index = index

    def resolve_replacement(self, package: Package) -> Path | None:
        """Return the local directory replacing ``package``, if configured.

        Relative targets are resolved against the manifest's directory.
        """

        target = self.replace.get(package.package_path)
        if target is None:
            return None

        candidate = Path(target).expanduser()
        if not candidate.is_absolute():
            candidate = self.file.parent / candidate
        local_path = candidate.resolve(strict=False)

        if not local_path.is_dir():
            raise ReplaceTargetMissingError(package.package_path, local_path)
        if not (local_path / self.settings.app_marker).is_file():
            raise ReplaceTargetInvalidError(
                package.package_path,
                local_path,
                self.settings.app_marker,
            )
        return local_path

    def extend(self, packages: Iterable[Package]) -> list[Package]:
        """Append newly resolved packages and index them.

        All aliases are checked before anything is appended. Packages whose
        unique id is already indexed are skipped. Returns the packages that
        were actually added.
        """

        incoming: list[Package] = []
        claims: dict[str, Package] = {}
        seen: set[str] = set()
        for package in packages:
            if package.unique_id in self.index or package.unique_id in seen:
                continue
            holder = self.index.get(package.alias) or claims.get(package.alias)
            if holder is not None:
                raise AliasCollisionError(
                    package.alias,
                    holder.spec,
                    package.spec,
                )
            claims[package.alias] = package
            seen.add(package.unique_id)
            incoming.append(package)

        for package in incoming:
            self.require.append(package)
            self.index[package.alias] = package
            self.index[package.unique_id] = package
        return incoming

    def ordered(self) -> list[Package]:
        """Return direct requirements first, then indirect ones."""

        direct = [package for package in self.require if not package.indirect]
        indirect = [package for package in self.require if package.indirect]
        return direct + indirect

    def to_document(self) -> dict[str, Any]:
        """Build the single ordered document persisted by :meth:`save`."""

        return {
            "require": [package.record() for package in self.ordered()],
            "replace": dict(self.replace),
        }

    def render(self) -> str:
        return json.dumps(self.to_document(), indent=2, ensure_ascii=False) + "\n"

    def save(self) -> None:
        """Persist the manifest with a temp-file swap.

        Raises:
            PersistError: If staging or replacing the file fails.
        """

        path = self.file
        payload = self.render()
        temp_path: Path | None = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=path.parent,
                prefix=f".{path.name}.",
                delete=False,
            ) as handle:
                temp_path = Path(handle.name)
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
        except OSError as exc:
            if temp_path is not None:
                temp_path.unlink(missing_ok=True)
            raise PersistError(
                f"Failed staging manifest at {path}: {exc}"
            ) from exc

        try:
            os.replace(temp_path, path)
        except OSError as exc:
            temp_path.unlink(missing_ok=True)
            raise PersistError(
                f"Failed writing manifest at {path}: {exc}"
            ) from exc

        self._logger.info(
            "manifest-save",
            path=str(path),
            packages=len(self.require),
        )

    def snapshot(self) -> dict[str, Any]:
        """Return a plain view including derived fields, for display."""

        return {
            "file": str(self.file),
            "require": [
                {
                    **package.record(),
                    "unique_id": package.unique_id,
                    "replaced": package.replaced,
                    "local_path": (
                        str(package.local_path) if package.local_path else None
                    ),
                }
                for package in self.ordered()
            ],
            "replace": dict(self.replace),
            "index": sorted(self.index),
        }
