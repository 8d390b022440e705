"""Manifest subsystem exports."""

from __future__ import annotations

from .locks import (
    LockHeldError,
    ManifestLock,
    ManifestLockError,
    build_lock_path,
    force_unlock,
)
from .models import ManifestDocument, Package, build_unique_id
from .store import Workshop

__all__ = [
    "LockHeldError",
    "ManifestDocument",
    "ManifestLock",
    "ManifestLockError",
    "Package",
    "Workshop",
    "build_lock_path",
    "build_unique_id",
    "force_unlock",
]
