"""Advisory lock marker guarding manifest updates across processes."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from workshop.core.logging import Logger, get_logger
from workshop.errors import WorkshopError

__all__ = [
    "LockHeldError",
    "ManifestLock",
    "ManifestLockError",
    "build_lock_path",
    "force_unlock",
]


class ManifestLockError(WorkshopError):
    """Base error type for manifest locking failures."""


class LockHeldError(ManifestLockError):
    """Raised when another process (or a stale run) holds the lock marker."""

    def __init__(self, manifest_path: Path, lock_path: Path) -> None:
        super().__init__(
            f"{manifest_path} has been locked, maybe another process is "
            f"running.\n  try: workshop unlock --force (or rm {lock_path})"
        )
        self.manifest_path = manifest_path
        self.lock_path = lock_path


def _lock_logger() -> Logger:
    return get_logger(__name__, component="manifest-lock")


def build_lock_path(manifest_path: Path, *, suffix: str = ".lock") -> Path:
    """Return the marker path colocated with ``manifest_path``."""

    return manifest_path.with_name(f"{manifest_path.name}{suffix}")


@dataclass(slots=True)
class ManifestLock:
    """Sentinel-file lock; acquisition never waits.

    Existence of the marker is the only signal. A crashed holder leaves the
    marker behind, which :func:`force_unlock` clears.
    """

    manifest_path: Path
    suffix: str = ".lock"
    _held: bool = field(init=False, default=False, repr=False)

    @property
    def path(self) -> Path:
        return build_lock_path(self.manifest_path, suffix=self.suffix)

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> None:
        """Create the marker or fail with :class:`LockHeldError`."""

        if self._held:
            return

        lock_path = self.path
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            handle = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            raise LockHeldError(self.manifest_path, lock_path) from None
        except OSError as exc:
            raise ManifestLockError(
                f"Failed creating manifest lock at {lock_path}: {exc}"
            ) from exc
        os.close(handle)
        self._held = True

    def release(self) -> None:
        """Remove the marker if this instance holds it."""

        if not self._held:
            return

        self._held = False
        try:
            self.path.unlink()
        except FileNotFoundError:
            _lock_logger().warning(
                "manifest-lock-vanished",
                path=str(self.path),
            )
        except OSError as exc:
            raise ManifestLockError(
                f"Failed removing manifest lock at {self.path}: {exc}"
            ) from exc

    def __enter__(self) -> "ManifestLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


def force_unlock(manifest_path: Path, *, suffix: str = ".lock") -> bool:
    """Remove a (presumably stale) lock marker for ``manifest_path``.

    Returns ``True`` when a marker was removed. The removal is logged so that
    breaking another process's lock leaves a trace.
    """

    lock_path = build_lock_path(manifest_path, suffix=suffix)
    try:
        lock_path.unlink()
    except FileNotFoundError:
        return False
    except OSError as exc:
        raise ManifestLockError(
            f"Failed removing manifest lock at {lock_path}: {exc}"
        ) from exc

    _lock_logger().warning(
        "manifest-lock-forced",
        manifest=str(manifest_path),
        path=str(lock_path),
    )
    return True
