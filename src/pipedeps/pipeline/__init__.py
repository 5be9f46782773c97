"""Pipeline YAML parsing, template walking and task resolution."""

from pipedeps.pipeline.parser import parse_document, parse_pipeline_file, parse_template_reference
from pipedeps.pipeline.resolver import build_package_url, normalize_version, resolve_manifests, resolve_task
from pipedeps.pipeline.types import (
    Dependency,
    ExternalTemplate,
    Manifest,
    TaskReference,
    TemplateReference,
    WalkResult,
)
from pipedeps.pipeline.walker import TemplateWalker

__all__ = [
    "parse_document",
    "parse_pipeline_file",
    "parse_template_reference",
    "TemplateWalker",
    "resolve_task",
    "resolve_manifests",
    "normalize_version",
    "build_package_url",
    "TaskReference",
    "TemplateReference",
    "ExternalTemplate",
    "WalkResult",
    "Dependency",
    "Manifest",
]
