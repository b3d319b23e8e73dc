"""Pydantic models for package map files.

A package map file is YAML or JSON of the form:

    packages:
      json-tools:
        version: "1.0.2"
      my-app:
        path: ./packages/my-app
        build_first: [my-plugin]
      my-plugin:
        path: ./packages/my-plugin

An entry with `version` is a versioned package; an entry with `path` is a
local package built from source.
"""

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

PACKAGE_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_.:\-]*$")


class PackageEntrySchema(BaseModel):
    """Schema for a single package entry.

    Attributes:
        version: Version to load from the package store (versioned packages).
        path: Source directory (local packages), relative to the map file.
        build_first: Packages that must be built before this one.
    """

    model_config = ConfigDict(extra="forbid")

    version: str | None = Field(default=None, min_length=1, max_length=100)
    path: str | None = Field(default=None, min_length=1)
    build_first: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_kind(self) -> "PackageEntrySchema":
        """Exactly one of version or path must be set."""
        if (self.version is None) == (self.path is None):
            raise ValueError("exactly one of 'version' or 'path' must be set")
        if self.version is not None and self.build_first:
            raise ValueError("'build_first' is only allowed for local packages")
        return self


class PackageMapSchema(BaseModel):
    """Complete package map file schema."""

    model_config = ConfigDict(extra="forbid")

    packages: dict[str, PackageEntrySchema] = Field(default_factory=dict)

    @field_validator("packages")
    @classmethod
    def validate_names(
        cls, v: dict[str, PackageEntrySchema]
    ) -> dict[str, PackageEntrySchema]:
        """Validate package names."""
        for name in v:
            if not PACKAGE_NAME_PATTERN.match(name):
                raise ValueError(
                    f"invalid package name '{name}': must match "
                    f"{PACKAGE_NAME_PATTERN.pattern}"
                )
        return v


__all__ = ["PACKAGE_NAME_PATTERN", "PackageEntrySchema", "PackageMapSchema"]
