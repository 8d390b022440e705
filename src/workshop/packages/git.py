"""Git-backed collaborators: release lookup, checkout and dependency listing."""

from __future__ import annotations

import json
import os
import re
import shutil
import tempfile
from pathlib import Path
from typing import Any, Mapping, Sequence

import semver
from git import Repo
from git.cmd import Git
from git.exc import GitCommandError
from git.remote import RemoteProgress
from pydantic import ValidationError

from workshop.core.logging import Logger, get_logger
from workshop.errors import DependencyReadError, ReleaseLookupError
from workshop.manifest.models import ManifestDocument, Package

from .collaborators import FetchRequest, ProgressCallback, Requirement

__all__ = [
    "GitPackageFetcher",
    "GitReleaseResolver",
    "ManifestDependencyReader",
    "build_clone_url",
    "pick_latest_tag",
]

# Never let git block on an interactive credential prompt.
_GIT_ENV = {
    "GIT_TERMINAL_PROMPT": "0",
    "GIT_ASKPASS": "echo",
}

_CREDENTIAL_PATTERN = re.compile(r"(https://)[^@\s/]+@")


def _sanitize(message: str) -> str:
    """Strip credentials embedded in clone URLs from git output."""

    return _CREDENTIAL_PATTERN.sub(r"\1***@", message)


def build_clone_url(address: str, options: Mapping[str, Any]) -> str:
    """Return the URL used to reach ``address`` with the host options.

    Example:
        >>> build_clone_url("github.com/acme/crm", {"protocol": "ssh"})
        'git@github.com:acme/crm.git'
    """

    host, _, repo_path = address.partition("/")
    if options.get("protocol") == "ssh":
        return f"git@{host}:{repo_path}.git"
    token = options.get("token")
    if token:
        username = options.get("username") or "x-access-token"
        return f"https://{username}:{token}@{host}/{repo_path}.git"
    return f"https://{host}/{repo_path}.git"


def _semver_of(tag: str) -> semver.Version | None:
    candidate = tag[1:] if tag[:1] in ("v", "V") else tag
    try:
        return semver.Version.parse(candidate)
    except ValueError:
        return None


def pick_latest_tag(tags: Sequence[str]) -> str | None:
    """Return the highest semantic-version tag, ignoring anything else.

    Example:
        >>> pick_latest_tag(["v0.9.1", "v0.10.0", "nightly"])
        'v0.10.0'
    """

    best: tuple[semver.Version, str] | None = None
    for tag in tags:
        version = _semver_of(tag)
        if version is None:
            continue
        if best is None or version > best[0]:
            best = (version, tag)
    return best[1] if best else None


class GitReleaseResolver:
    """Resolve the latest release tag with ``git ls-remote``."""

    def __init__(self, *, logger: Logger | None = None) -> None:
        self._logger = logger or get_logger(__name__, component="git-release")

    def list_tags(self, address: str, options: Mapping[str, Any]) -> list[str]:
        url = build_clone_url(address, options)
        command = Git()
        command.update_environment(**_GIT_ENV)
        try:
            output = command.ls_remote("--tags", "--refs", url)
        except GitCommandError as exc:
            raise ReleaseLookupError(
                f"Failed to list tags of {address}: {_sanitize(str(exc))}"
            ) from exc

        tags: list[str] = []
        for line in output.splitlines():
            _, _, ref = line.partition("\t")
            if ref.startswith("refs/tags/"):
                tags.append(ref[len("refs/tags/"):])
        return tags

    def latest(self, address: str, options: Mapping[str, Any]) -> str:
        tags = self.list_tags(address, options)
        latest = pick_latest_tag(tags)
        if latest is None:
            raise ReleaseLookupError(
                f"{address} has no semantic-version release tags"
            )
        self._logger.debug("release-tags", address=address, count=len(tags))
        return latest


class _CloneProgress(RemoteProgress):
    """Adapt GitPython progress events to the workshop progress callback."""

    _STAGES = {
        RemoteProgress.COUNTING: "counting objects",
        RemoteProgress.COMPRESSING: "compressing objects",
        RemoteProgress.RECEIVING: "receiving objects",
        RemoteProgress.RESOLVING: "resolving deltas",
        RemoteProgress.WRITING: "writing objects",
    }

    def __init__(self, package: Package, callback: ProgressCallback) -> None:
        super().__init__()
        self._package = package
        self._callback = callback

    def update(
        self,
        op_code: int,
        cur_count: str | float,
        max_count: str | float | None = None,
        message: str = "",
    ) -> None:
        stage = self._STAGES.get(op_code & RemoteProgress.OP_MASK, "fetching")
        total = int(float(max_count)) if max_count else 0
        self._callback(total, self._package, message or stage)


class GitPackageFetcher:
    """Check packages out under ``<root>/<address>@<version>``.

    Checkouts are keyed by address and version, so an existing checkout is
    reused as is. New clones are staged in the cache directory and moved
    into place only once the requested revision is checked out.
    """

    def __init__(self, *, logger: Logger | None = None) -> None:
        self._logger = logger or get_logger(__name__, component="git-fetch")

    @staticmethod
    def checkout_dir(request: FetchRequest) -> Path:
        package = request.package
        return request.root / f"{package.address}@{package.version}"

    def fetch(
        self,
        request: FetchRequest,
        progress: ProgressCallback | None = None,
    ) -> Path:
        package = request.package
        checkout = self.checkout_dir(request)
        if not checkout.is_dir():
            self._clone(request, checkout, progress)
        else:
            self._logger.debug("checkout-reused", path=str(checkout))

        location = checkout / package.subpath if package.subpath else checkout
        if not location.is_dir():
            raise FileNotFoundError(
                f"{package.subpath} not found in {package.address}@{package.version}"
            )
        return location

    def _clone(
        self,
        request: FetchRequest,
        checkout: Path,
        progress: ProgressCallback | None,
    ) -> None:
        package = request.package
        request.cache_dir.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix="clone-", dir=request.cache_dir))
        url = build_clone_url(package.address, request.options)
        env = {**os.environ, **_GIT_ENV}
        observer = _CloneProgress(package, progress) if progress else None

        try:
            repo = Repo.clone_from(
                url,
                staging,
                env=env,
                progress=observer,
                no_checkout=True,
            )
            repo.git.checkout(package.version)
            repo.close()
            checkout.parent.mkdir(parents=True, exist_ok=True)
            os.replace(staging, checkout)
        except GitCommandError as exc:
            shutil.rmtree(staging, ignore_errors=True)
            raise RuntimeError(
                f"git failed for {package.pinned_spec}: {_sanitize(str(exc))}"
            ) from exc
        except OSError:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        self._logger.info(
            "package-cloned",
            unique_id=package.unique_id,
            path=str(checkout),
        )


class ManifestDependencyReader:
    """Read a fetched package's own manifest and list its direct requires."""

    def __init__(self, *, filename: str = "workshop.yao") -> None:
        self._filename = filename

    def read(self, package: Package, location: Path) -> list[Requirement]:
        manifest = location / self._filename
        if not manifest.is_file():
            return []
        try:
            payload = json.loads(manifest.read_text(encoding="utf-8") or "{}")
            document = ManifestDocument.model_validate(payload)
        except (OSError, ValueError, ValidationError) as exc:
            raise DependencyReadError(
                f"Invalid manifest in {package.unique_id} at {manifest}: {exc}"
            ) from exc

        return [
            Requirement(spec=declared.pinned_spec, alias=declared.alias)
            for declared in document.require
            if not declared.indirect
        ]
