"""Location helpers for the workshop home directory."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

__all__ = [
    "CONFIG_FILENAME",
    "HOME_ENV_VAR",
    "WorkshopPaths",
    "resolve_home",
]

CONFIG_FILENAME = "workshop.toml"
HOME_ENV_VAR = "WORKSHOP_HOME"


@dataclass(frozen=True, slots=True)
class WorkshopPaths:
    """Resolved locations under the workshop home directory.

    The home directory is shared by every project on the host: fetched
    packages and the download cache live here, not next to the manifest.

    Example:
        >>> from pathlib import Path
        >>> paths = WorkshopPaths.under(Path("/tmp/workshop-home"))
        >>> paths.cache_dir.name
        'cache'
    """

    home: Path
    config_file: Path
    logs_dir: Path
    cache_dir: Path
    packages_dir: Path

    @classmethod
    def under(cls, home: Path) -> "WorkshopPaths":
        """Lay out the standard directories below ``home``."""

        return cls(
            home=home,
            config_file=home / CONFIG_FILENAME,
            logs_dir=home / "logs",
            cache_dir=home / "cache",
            packages_dir=home / "packages",
        )

    def iter_dirs(self) -> Iterable[Path]:
        """Yield every directory managed below the home root."""

        yield from (self.home, self.logs_dir, self.cache_dir, self.packages_dir)

    def ensure(self) -> None:
        """Create the managed directories if they are missing."""

        for directory in self.iter_dirs():
            directory.mkdir(parents=True, exist_ok=True)


def resolve_home(
    *,
    home_override: Path | None = None,
    env_override: Path | None = None,
) -> WorkshopPaths:
    """Resolve the workshop home, honouring CLI then environment overrides.

    Relative overrides are anchored at the current working directory. The
    default home is ``~/.workshop``.

    Raises:
        ValueError: If the resolved home points to a regular file.
    """

    base = Path(home_override or env_override or Path.home() / ".workshop")
    base = base.expanduser()
    if not base.is_absolute():
        base = Path.cwd() / base
    home = base.resolve(strict=False)

    if home.is_file():
        raise ValueError(f"Workshop home must be a directory: {home}")

    return WorkshopPaths.under(home)
