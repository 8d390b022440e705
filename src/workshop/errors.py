"""Domain-specific exceptions for package management."""

from __future__ import annotations

from pathlib import Path


class WorkshopError(RuntimeError):
    """Base error for every workshop failure surfaced to callers."""


class MalformedSpecError(WorkshopError, ValueError):
    """Raised when a package coordinate does not follow the grammar."""

    def __init__(self, spec: str, reason: str) -> None:
        super().__init__(
            "package spec should be a git repo "
            f'"host/org/repo[/path][@version]" ({reason}), but got: {spec!r}'
        )
        self.spec = spec
        self.reason = reason


class ReleaseLookupError(WorkshopError):
    """Raised when the latest release of a repository cannot be determined."""


class AliasCollisionError(WorkshopError):
    """Raised when two different packages claim the same alias."""

    def __init__(self, alias: str, existing: str, incoming: str) -> None:
        super().__init__(
            f'"{existing}" and "{incoming}" have the same alias '
            f'"{alias}", please change it'
        )
        self.alias = alias
        self.existing = existing
        self.incoming = incoming


class ReplaceTargetMissingError(WorkshopError):
    """Raised when a replace directive points at a missing directory."""

    def __init__(self, package_path: str, target: Path) -> None:
        super().__init__(
            f"replace target for {package_path} does not exist: {target}"
        )
        self.package_path = package_path
        self.target = target


class ReplaceTargetInvalidError(WorkshopError):
    """Raised when a replace target lacks the application marker file."""

    def __init__(self, package_path: str, target: Path, marker: str) -> None:
        super().__init__(
            f"{target} is not an application root (missing {marker}); "
            f"cannot replace {package_path}"
        )
        self.package_path = package_path
        self.target = target
        self.marker = marker


class FetchError(WorkshopError):
    """Raised when the fetch collaborator fails to materialize a package."""

    def __init__(self, unique_id: str, cause: BaseException) -> None:
        super().__init__(f"failed to fetch {unique_id}: {cause}")
        self.unique_id = unique_id
        self.cause = cause


class DependencyReadError(WorkshopError):
    """Raised when a fetched package's declared dependencies are unreadable."""


class ClosureTooLargeError(WorkshopError):
    """Raised when a dependency closure exceeds the configured package cap."""

    def __init__(self, root: str, limit: int) -> None:
        super().__init__(
            f"dependency closure of {root} exceeds {limit} packages; "
            "raise manifest.max_packages if this graph is expected"
        )
        self.root = root
        self.limit = limit


class PersistError(WorkshopError):
    """Raised when the manifest cannot be read from or written to disk."""


class ManifestReadError(PersistError):
    """Raised when an existing manifest is unreadable or malformed."""


__all__ = [
    "AliasCollisionError",
    "ClosureTooLargeError",
    "DependencyReadError",
    "FetchError",
    "MalformedSpecError",
    "ManifestReadError",
    "PersistError",
    "ReleaseLookupError",
    "ReplaceTargetInvalidError",
    "ReplaceTargetMissingError",
    "WorkshopError",
]
