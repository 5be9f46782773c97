"""Task catalog types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class TaskVersion:
    """Task definition version triple."""

    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TaskVersion:
        return cls(
            major=int(data.get("major", 0)),
            minor=int(data.get("minor", 0)),
            patch=int(data.get("patch", 0)),
        )


@dataclass(frozen=True)
class TaskRecord:
    """Raw task definition as listed by Azure DevOps."""

    id: str
    name: str
    version: TaskVersion
    friendly_name: str | None = None
    author: str | None = None
    contribution_identifier: str | None = None
    contribution_version: str | None = None
    server_owned: bool = False
    definition_type: str | None = None
    deprecated: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TaskRecord:
        """Build a record from the REST payload.

        Raises:
            ValueError: If id, name or version is missing or malformed
        """
        task_id = data.get("id")
        name = data.get("name")
        version = data.get("version")
        if not task_id or not name or not isinstance(version, dict):
            raise ValueError("task definition is missing id, name or version")
        try:
            parsed_version = TaskVersion.from_dict(version)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"task definition has malformed version: {version!r}") from exc

        return cls(
            id=str(task_id),
            name=str(name),
            version=parsed_version,
            friendly_name=data.get("friendlyName"),
            author=data.get("author") or None,
            contribution_identifier=data.get("contributionIdentifier") or None,
            contribution_version=data.get("contributionVersion") or None,
            server_owned=data.get("serverOwned") is True,
            definition_type=data.get("definitionType"),
            deprecated=data.get("deprecated") is True,
        )


@dataclass(frozen=True)
class CanonicalTask:
    """Catalog entry a task reference resolves to."""

    id: str
    name: str
    major_version: int
    full_version: str  # major.minor.patch
    canonical_identifier: str
    is_builtin: bool
    author: str | None = None
    contribution_identifier: str | None = None

    @property
    def extension_key(self) -> tuple[str, str] | None:
        """``(publisher, extension)`` for marketplace tasks, else None."""
        if not self.contribution_identifier:
            return None
        parts = self.contribution_identifier.split(".")
        if len(parts) < 2 or not parts[0] or not parts[1]:
            return None
        return parts[0], parts[1]


@dataclass(frozen=True)
class ExtensionMetadata:
    """Marketplace metadata for one extension."""

    publisher: str
    extension: str
    repository_url: str | None = None
