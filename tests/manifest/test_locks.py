"""Tests for :mod:`workshop.manifest.locks`."""

from __future__ import annotations

from pathlib import Path

import pytest
from structlog.testing import capture_logs

from workshop.errors import WorkshopError
from workshop.manifest.locks import (
    LockHeldError,
    ManifestLock,
    build_lock_path,
    force_unlock,
)


def test_lock_path_is_colocated_with_manifest(tmp_path: Path) -> None:
    manifest = tmp_path / "workshop.yao"

    assert build_lock_path(manifest) == tmp_path / "workshop.yao.lock"
    assert build_lock_path(manifest, suffix=".busy") == tmp_path / "workshop.yao.busy"


def test_context_manager_creates_and_removes_marker(tmp_path: Path) -> None:
    lock = ManifestLock(tmp_path / "workshop.yao")

    with lock:
        assert lock.held
        assert lock.path.exists()

    assert not lock.held
    assert not lock.path.exists()


def test_second_holder_fails_without_waiting(tmp_path: Path) -> None:
    manifest = tmp_path / "workshop.yao"
    first = ManifestLock(manifest)
    second = ManifestLock(manifest)

    with first:
        with pytest.raises(LockHeldError) as excinfo:
            second.acquire()

    assert isinstance(excinfo.value, WorkshopError)
    assert excinfo.value.lock_path == first.path
    assert "workshop unlock --force" in str(excinfo.value)
    assert not second.held


def test_marker_released_when_body_raises(tmp_path: Path) -> None:
    lock = ManifestLock(tmp_path / "workshop.yao")

    with pytest.raises(RuntimeError):
        with lock:
            raise RuntimeError("boom")

    assert not lock.path.exists()


def test_stale_marker_blocks_until_forced(tmp_path: Path) -> None:
    manifest = tmp_path / "workshop.yao"
    stale = build_lock_path(manifest)
    stale.write_text("", encoding="utf-8")

    with pytest.raises(LockHeldError):
        ManifestLock(manifest).acquire()

    with capture_logs() as logs:
        assert force_unlock(manifest) is True

    assert not stale.exists()
    assert any(entry["event"] == "manifest-lock-forced" for entry in logs)

    with ManifestLock(manifest):
        pass


def test_force_unlock_without_marker_returns_false(tmp_path: Path) -> None:
    assert force_unlock(tmp_path / "workshop.yao") is False


def test_release_logs_when_marker_vanished(tmp_path: Path) -> None:
    lock = ManifestLock(tmp_path / "workshop.yao")
    lock.acquire()
    lock.path.unlink()

    with capture_logs() as logs:
        lock.release()

    assert [entry["event"] for entry in logs] == ["manifest-lock-vanished"]
    assert not lock.held
