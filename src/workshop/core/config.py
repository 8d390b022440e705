"""Configuration models and loaders for :mod:`workshop`."""

from __future__ import annotations

import os
from collections.abc import Mapping as MappingABC
from enum import StrEnum
from typing import Any, Mapping

import tomllib
import tomlkit
from pydantic import BaseModel, Field, field_validator, model_validator

from workshop.core.logging import level_from_name
from workshop.core.paths import WorkshopPaths
from workshop.resources import get_resource

DEFAULTS_RESOURCE_NAME = "workshop.defaults.toml"
LOG_LEVEL_ENV_VAR = "WORKSHOP_LOG_LEVEL"


class ConfigError(RuntimeError):
    """Raised when the user configuration cannot be read or validated."""


class GitProtocol(StrEnum):
    """Transport used when building clone URLs for a host."""

    HTTPS = "https"
    SSH = "ssh"


class HostSettings(BaseModel):
    """Per-host options forwarded to the fetch and release collaborators."""

    protocol: GitProtocol = Field(
        default=GitProtocol.HTTPS,
        description="Clone over HTTPS or SSH.",
    )
    token: str | None = Field(
        default=None,
        repr=False,
        description="Access token injected into HTTPS clone URLs.",
    )
    username: str | None = Field(
        default=None,
        description="User name paired with ``token``; defaults to x-access-token.",
    )

    model_config = {
        "frozen": True,
        "str_strip_whitespace": True,
    }

    def options(self) -> dict[str, Any]:
        """Return the plain mapping handed to collaborators."""

        payload: dict[str, Any] = {"protocol": self.protocol.value}
        if self.token:
            payload["token"] = self.token
        if self.username:
            payload["username"] = self.username
        return payload


class ManifestSettings(BaseModel):
    """Knobs controlling manifest files, locking and closure limits."""

    filename: str = Field(
        default="workshop.yao",
        description="Manifest file name inside a project root.",
    )
    lock_suffix: str = Field(
        default=".lock",
        description="Suffix appended to the manifest path for the lock marker.",
    )
    app_marker: str = Field(
        default="app.yao",
        description="File that identifies a directory as an application root.",
    )
    max_packages: int = Field(
        default=512,
        ge=1,
        description="Maximum packages a single dependency closure may add.",
    )

    model_config = {"frozen": True, "str_strip_whitespace": True}

    @field_validator("filename", "lock_suffix", "app_marker")
    @classmethod
    def _reject_blank(cls, value: str) -> str:
        if not value:
            raise ValueError("Manifest file names cannot be blank.")
        return value


class AppConfig(BaseModel):
    """Root configuration for the :mod:`workshop` application."""

    log_level: str = Field(
        default="INFO",
        description="Default logging level for the application runtime.",
    )
    manifest: ManifestSettings = Field(default_factory=ManifestSettings)
    hosts: dict[str, HostSettings] = Field(
        default_factory=dict,
        description="Per-host fetch options keyed by host name.",
    )

    model_config = {"str_strip_whitespace": True, "validate_assignment": True}

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        level_from_name(value)
        return value.upper()

    @model_validator(mode="after")
    def _post_process(self) -> "AppConfig":
        normalized = {
            name.strip().lower(): settings
            for name, settings in self.hosts.items()
        }
        object.__setattr__(self, "hosts", normalized)
        return self


def read_packaged_defaults_text() -> str:
    """Return the raw packaged defaults TOML content."""

    return get_resource(DEFAULTS_RESOURCE_NAME).read_text(encoding="utf-8")


def load_packaged_defaults() -> dict[str, Any]:
    """Load the packaged defaults as a plain dictionary.

    Example:
        >>> load_packaged_defaults()["manifest"]["filename"]
        'workshop.yao'
    """

    return tomllib.loads(read_packaged_defaults_text())


def _deep_merge(
    base: Mapping[str, Any],
    overlay: Mapping[str, Any],
) -> dict[str, Any]:
    merged: dict[str, Any] = dict(base)
    for key, value in overlay.items():
        current = merged.get(key)
        if isinstance(current, MappingABC) and isinstance(value, MappingABC):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def load_config(
    *,
    defaults: Mapping[str, Any],
    user_config: Mapping[str, Any] | None = None,
    env_config: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> AppConfig:
    """Merge configuration layers and validate the result.

    Later layers win: CLI flags over environment over ``workshop.toml`` over
    packaged defaults.
    """

    stack: dict[str, Any] = dict(defaults)
    for layer in (user_config, env_config, cli_overrides):
        if layer:
            stack = _deep_merge(stack, layer)
    return AppConfig(**stack)


def env_overrides(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Collect configuration values supplied through environment variables."""

    environ = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}
    level = environ.get(LOG_LEVEL_ENV_VAR)
    if level:
        overrides["log_level"] = level
    return overrides


def load_app_config(
    paths: WorkshopPaths,
    *,
    environ: Mapping[str, str] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> AppConfig:
    """Load the full configuration stack for the home described by ``paths``.

    Raises:
        ConfigError: If ``workshop.toml`` is unreadable or invalid.
    """

    user_config: dict[str, Any] | None = None
    if paths.config_file.exists():
        try:
            user_config = tomllib.loads(
                paths.config_file.read_text(encoding="utf-8")
            )
        except (OSError, tomllib.TOMLDecodeError) as exc:
            raise ConfigError(
                f"Failed to read config at {paths.config_file}: {exc}"
            ) from exc

    try:
        return load_config(
            defaults=load_packaged_defaults(),
            user_config=user_config,
            env_config=env_overrides(environ),
            cli_overrides=cli_overrides,
        )
    except ValueError as exc:
        raise ConfigError(
            f"Invalid configuration in {paths.config_file}: {exc}"
        ) from exc


def render_user_config(config: AppConfig) -> str:
    """Render a ``workshop.toml`` document for users to customize.

    Host tokens are never written out; they belong in the user's own file.
    """

    document = tomlkit.document()
    document.add(tomlkit.comment("workshop configuration"))
    document.add(
        tomlkit.comment("Precedence: CLI flags > env vars > workshop.toml > defaults")
    )
    document.add(tomlkit.comment(f"  {LOG_LEVEL_ENV_VAR}=debug"))
    document.add(tomlkit.nl())
    document["log_level"] = config.log_level

    manifest = tomlkit.table()
    manifest["filename"] = config.manifest.filename
    manifest["lock_suffix"] = config.manifest.lock_suffix
    manifest["app_marker"] = config.manifest.app_marker
    manifest["max_packages"] = config.manifest.max_packages
    document["manifest"] = manifest

    if config.hosts:
        hosts = tomlkit.table(is_super_table=True)
        for name in sorted(config.hosts):
            settings = config.hosts[name]
            entry = tomlkit.table()
            entry["protocol"] = settings.protocol.value
            if settings.username:
                entry["username"] = settings.username
            hosts.add(name, entry)
        document["hosts"] = hosts

    return tomlkit.dumps(document)


__all__ = [
    "AppConfig",
    "ConfigError",
    "DEFAULTS_RESOURCE_NAME",
    "GitProtocol",
    "HostSettings",
    "LOG_LEVEL_ENV_VAR",
    "ManifestSettings",
    "env_overrides",
    "load_app_config",
    "load_config",
    "load_packaged_defaults",
    "read_packaged_defaults_text",
    "render_user_config",
]
