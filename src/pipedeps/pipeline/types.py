"""Pipeline scanning types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

Relationship = Literal["direct", "indirect"]
Scope = Literal["runtime", "development"]

DEFAULT_TEMPLATE_REF = "refs/heads/main"


@dataclass(frozen=True)
class TaskReference:
    """One task invocation extracted from a pipeline document."""

    identifier: str  # name, GUID or publisher.extension.contribution.name
    version_spec: str | None = None
    display_name: str | None = None
    source_file: str | None = None  # workspace-relative, set by the walker
    inputs: dict[str, Any] | None = field(default=None, compare=False)


@dataclass(frozen=True)
class TemplateReference:
    """Pointer from one pipeline document to another."""

    path: str
    repository: str | None = None
    ref: str | None = None


@dataclass(frozen=True)
class ParsedDocument:
    """Tasks and templates extracted from one document."""

    tasks: tuple[TaskReference, ...] = ()
    templates: tuple[TemplateReference, ...] = ()
    extends: TemplateReference | None = None


@dataclass(frozen=True)
class ExternalTemplate:
    """Template referenced from another GitHub repository."""

    owner: str
    repo: str
    path: str
    ref: str

    @property
    def key(self) -> str:
        return f"external:{self.owner}/{self.repo}/{self.path}"


@dataclass
class WalkResult:
    """Accumulated output of one template walk."""

    tasks: list[TaskReference] = field(default_factory=list)
    processed_files: set[str] = field(default_factory=set)
    external_templates: list[ExternalTemplate] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Dependency:
    """One resolved package reference in a manifest."""

    package_url: str
    relationship: Relationship = "direct"
    scope: Scope = "runtime"
    dependencies: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "package_url": self.package_url,
            "relationship": self.relationship,
            "scope": self.scope,
        }
        if self.dependencies:
            data["dependencies"] = list(self.dependencies)
        return data


@dataclass
class Manifest:
    """Resolved dependencies for one source file."""

    source_location: str
    resolved: dict[str, Dependency] = field(default_factory=dict)

    def name(self, job_id: str) -> str:
        return f"{self.source_location}:{job_id}"

    def to_dict(self, job_id: str) -> dict[str, Any]:
        """Render the manifest in dependency-graph submission shape."""
        return {
            "name": self.name(job_id),
            "file": {"source_location": self.source_location},
            "resolved": {url: dep.to_dict() for url, dep in self.resolved.items()},
        }
