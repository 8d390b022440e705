"""Data models for manifest entries and the on-disk document."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import (
    BaseModel,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)


def build_unique_id(address: str, subpath: str, version: str) -> str:
    """Return the dedup identity ``address[/subpath]@version``.

    Example:
        >>> build_unique_id("github.com/acme/wms", "cloud", "v1.0.0")
        'github.com/acme/wms/cloud@v1.0.0'
    """

    path = f"{address}/{subpath}" if subpath else address
    return f"{path}@{version}"


class Package(BaseModel):
    """One resolved, versioned dependency recorded in a manifest."""

    spec: str = Field(description="Coordinate exactly as it was requested.")
    alias: str = Field(description="Short local name, unique per manifest.")
    address: str = Field(description="``host/org/repo`` coordinate.")
    subpath: str = Field(
        default="",
        description="Location inside a monorepo-style address.",
    )
    version: str = Field(description="Resolved release tag or revision.")
    indirect: bool = Field(
        default=False,
        description="Present only as a transitive dependency.",
    )
    unique_id: str = Field(
        default="",
        exclude=True,
        description="Derived identity; computed once when the model is built.",
    )
    replaced: bool = Field(
        default=False,
        exclude=True,
        description="Whether a replace directive supplies the content.",
    )
    local_path: Path | None = Field(
        default=None,
        exclude=True,
        description="Absolute replace target when ``replaced`` is set.",
    )

    model_config = {"str_strip_whitespace": True}

    @field_validator("address")
    @classmethod
    def _validate_address(cls, value: str) -> str:
        segments = value.strip("/").split("/")
        if len(segments) < 3 or not all(segments):
            raise ValueError(
                f"address must look like host/org/repo, got {value!r}"
            )
        return "/".join(segments)

    @field_validator("subpath")
    @classmethod
    def _normalize_subpath(cls, value: str) -> str:
        return value.strip("/")

    @field_validator("alias", "version")
    @classmethod
    def _reject_blank(cls, value: str) -> str:
        if not value:
            raise ValueError("alias and version cannot be blank")
        return value

    @model_validator(mode="after")
    def _derive_fields(self) -> "Package":
        # Derived state is never taken from input; only replace resolution
        # sets ``replaced`` and ``local_path`` afterwards.
        self.unique_id = build_unique_id(
            self.address,
            self.subpath,
            self.version,
        )
        self.replaced = False
        self.local_path = None
        return self

    @property
    def package_path(self) -> str:
        """Logical path without version; the key used by replace directives."""

        return f"{self.address}/{self.subpath}" if self.subpath else self.address

    @property
    def host(self) -> str:
        return self.address.split("/", 1)[0]

    @property
    def pinned_spec(self) -> str:
        return f"{self.package_path}@{self.version}"

    def record(self) -> dict[str, Any]:
        """Return the persisted field mapping in a stable key order."""

        return self.model_dump(mode="json")


class ManifestDocument(BaseModel):
    """Validated shape of a manifest file."""

    require: list[Package] = Field(default_factory=list)
    replace: dict[str, str] = Field(default_factory=dict)

    model_config = {"extra": "ignore"}

    @field_validator("require", "replace", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return [] if info.field_name == "require" else {}
        return value


__all__ = ["ManifestDocument", "Package", "build_unique_id"]
