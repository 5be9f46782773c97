"""Local pipeline file access and discovery."""

from __future__ import annotations

import glob
import logging
import os
import re
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_PATTERNS: tuple[str, ...] = (
    "azure-pipelines.yml",
    "azure-pipelines.yaml",
    ".azure-pipelines/*.yml",
    ".azure-pipelines/*.yaml",
)
IGNORED_DIRS = frozenset({"node_modules", "dist", ".git"})
YAML_SUFFIXES = frozenset({".yml", ".yaml"})


class LocalFileSource:
    """Reads pipeline files from disk."""

    def read(self, path: str) -> str | None:
        """Return file text, or None when the file does not exist."""
        try:
            return Path(path).read_text(encoding="utf-8")
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            return None


def parse_patterns(custom_patterns: str | None) -> list[str]:
    """Split comma/newline separated patterns; fall back to the defaults."""
    if custom_patterns and custom_patterns.strip():
        return [p.strip() for p in re.split(r"[,\n]", custom_patterns) if p.strip()]
    return list(DEFAULT_PATTERNS)


def discover_pipeline_files(workspace: Path, custom_patterns: str | None = None) -> list[str]:
    """Find Azure Pipelines files under ``workspace``.

    Args:
        workspace: Workspace root the patterns are relative to
        custom_patterns: Comma or newline separated glob patterns

    Returns:
        Sorted, de-duplicated absolute paths of YAML files
    """
    patterns = parse_patterns(custom_patterns)
    logger.info("Searching for pipeline files with patterns: %s", ", ".join(patterns))

    found: set[str] = set()
    for pattern in patterns:
        for match in glob.glob(pattern, root_dir=workspace, recursive=True, include_hidden=True):
            candidate = Path(match) if os.path.isabs(match) else workspace / match
            if _is_ignored(candidate, workspace) or not candidate.is_file():
                continue
            if candidate.suffix.lower() not in YAML_SUFFIXES:
                continue
            found.add(os.path.abspath(candidate))

    files = sorted(found)
    logger.info("Found %d pipeline file(s)", len(files))
    return files


def resolve_template_path(referencing_file: str, template_path: str, workspace: Path) -> str:
    """Resolve a local template path.

    Relative paths resolve against the referencing file's directory; paths
    starting with ``/`` resolve against the workspace root.
    """
    if template_path.startswith("/"):
        return os.path.abspath(os.path.join(workspace, template_path.lstrip("/")))
    return os.path.abspath(os.path.join(os.path.dirname(referencing_file), template_path))


def relative_source_path(file_path: str, workspace: Path) -> str:
    """Workspace-relative path with forward slashes."""
    return os.path.relpath(file_path, os.path.abspath(workspace)).replace(os.sep, "/")


def _is_ignored(candidate: Path, workspace: Path) -> bool:
    try:
        parts = candidate.resolve().relative_to(workspace.resolve()).parts
    except ValueError:
        parts = candidate.parts
    return any(part in IGNORED_DIRS for part in parts)
