"""Tests for :mod:`workshop.packages.closure`."""

from __future__ import annotations

from pathlib import Path

import pytest
from structlog.testing import capture_logs

from workshop.errors import (
    AliasCollisionError,
    ClosureTooLargeError,
    DependencyReadError,
    FetchError,
)
from workshop.manifest import Workshop
from workshop.packages import ClosureBuilder

A = "github.com/acme/a@v1"
B = "github.com/acme/b@v1"
C = "github.com/acme/c@v1"
D = "github.com/acme/d@v1"


@pytest.fixture
def workshop(project_dir: Path) -> Workshop:
    return Workshop.open(project_dir)


@pytest.fixture
def builder(workshop, gateway, registry, identifier) -> ClosureBuilder:
    return ClosureBuilder(
        workshop,
        gateway=gateway,
        reader=registry,
        identifier=identifier,
    )


def test_single_package_without_dependencies(builder, workshop, identifier, registry) -> None:
    added = builder.add(identifier.identify(A))

    assert [p.unique_id for p in added] == [A]
    assert added[0].indirect is False
    assert registry.fetched == [A]
    assert workshop.has("a")


def test_diamond_fetches_shared_dependency_once(
    builder,
    workshop,
    identifier,
    registry,
) -> None:
    registry.declare(A, C, B)
    registry.declare(C, B)

    with capture_logs() as logs:
        added = builder.add(identifier.identify(A))

    assert [p.unique_id for p in added] == [A, C, B]
    assert registry.fetched == [A, C, B]
    assert [p.indirect for p in workshop] == [False, True, True]
    assert any(
        log["event"] == "closure-complete" and log["added"] == 3 for log in logs
    )


def test_cycles_terminate(builder, workshop, identifier, registry) -> None:
    registry.declare(A, B)
    registry.declare(B, A)

    added = builder.add(identifier.identify(A))

    assert [p.unique_id for p in added] == [A, B]
    assert registry.fetched == [A, B]
    assert workshop.get(A).indirect is False


def test_dependencies_visit_in_declaration_order(builder, identifier, registry) -> None:
    registry.declare(A, B, C)
    registry.declare(B, D)

    added = builder.add(identifier.identify(A))

    assert [p.unique_id for p in added] == [A, B, D, C]


def test_existing_entries_are_not_refetched(
    builder,
    workshop,
    identifier,
    registry,
) -> None:
    builder.add(identifier.identify(B))
    registry.fetched.clear()
    registry.declare(A, B)

    added = builder.add(identifier.identify(A))

    assert [p.unique_id for p in added] == [A]
    assert registry.fetched == [A]
    assert workshop.get(B).indirect is False


def test_requirement_alias_is_honoured(builder, workshop, identifier, registry) -> None:
    registry.declare(A, (B, "bee"))

    builder.add(identifier.identify(A))

    assert workshop.get("bee").unique_id == B


def test_unpinned_dependency_resolves_latest(builder, workshop, identifier, registry) -> None:
    registry.release("github.com/acme/b", "v9")
    registry.declare(A, "github.com/acme/b")

    builder.add(identifier.identify(A))

    assert workshop.get("b").unique_id == "github.com/acme/b@v9"


def test_fetch_failure_leaves_manifest_untouched(
    builder,
    workshop,
    identifier,
    registry,
) -> None:
    registry.declare(A, B, C)
    registry.failures.add(C)

    with pytest.raises(FetchError) as excinfo:
        builder.add(identifier.identify(A))

    assert excinfo.value.unique_id == C
    assert len(workshop) == 0
    assert workshop.index == {}


def test_alias_collision_inside_closure_commits_nothing(
    builder,
    workshop,
    identifier,
    registry,
) -> None:
    registry.declare(A, "github.com/other/a@v1")

    with pytest.raises(AliasCollisionError):
        builder.add(identifier.identify(A))

    assert len(workshop) == 0


def test_closure_cap(workshop, gateway, registry, identifier) -> None:
    registry.declare(A, B)
    registry.declare(B, C)
    builder = ClosureBuilder(
        workshop,
        gateway=gateway,
        reader=registry,
        identifier=identifier,
        max_packages=2,
    )

    with pytest.raises(ClosureTooLargeError) as excinfo:
        builder.add(identifier.identify(A))

    assert excinfo.value.limit == 2
    assert len(workshop) == 0


def test_replaced_package_is_read_from_local_path(
    project_dir: Path,
    gateway,
    registry,
    identifier,
    make_app_root,
) -> None:
    local = make_app_root("project/vendor/b")
    workshop = Workshop.open(project_dir)
    workshop.replace["github.com/acme/b"] = "vendor/b"
    registry.declare(A, B)
    registry.declare(B, C)
    builder = ClosureBuilder(
        workshop,
        gateway=gateway,
        reader=registry,
        identifier=identifier,
    )

    builder.add(identifier.identify(A))

    assert registry.fetched == [A, C]
    assert (B, local.resolve()) in registry.read_from
    replaced = workshop.get(B)
    assert replaced.replaced is True
    assert replaced.local_path == local.resolve()
    assert workshop.has(C)


def test_reader_errors_are_wrapped(workshop, gateway, identifier) -> None:
    class _Broken:
        def read(self, package, location):
            raise OSError("permission denied")

    builder = ClosureBuilder(
        workshop,
        gateway=gateway,
        reader=_Broken(),
        identifier=identifier,
    )

    with pytest.raises(DependencyReadError):
        builder.add(identifier.identify(A))

    assert len(workshop) == 0


def test_resolve_does_not_touch_manifest(builder, workshop, identifier, registry) -> None:
    registry.declare(A, B)

    discovered = builder.resolve(identifier.identify(A))

    assert [p.unique_id for p in discovered] == [A, B]
    assert len(workshop) == 0
