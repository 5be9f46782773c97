"""Dependency snapshot artifact."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from pipedeps import __version__
from pipedeps.schemas.validator import validate_data

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from pipedeps.pipeline.types import Manifest

SNAPSHOT_VERSION = 0
SNAPSHOT_SCHEMA = "dependency_snapshot"
DETECTOR_NAME = "azure-pipelines-dependency-submission"
DETECTOR_URL = "https://github.com/jessehouwing/azure-pipelines-dependency-submission"


def default_detector() -> dict[str, str]:
    return {"name": DETECTOR_NAME, "version": __version__, "url": DETECTOR_URL}


def build_snapshot(
    manifests: Iterable[Manifest],
    job_id: str,
    *,
    scanned: str | None = None,
    detector: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Assemble the dependency-graph snapshot payload.

    Manifests are keyed ``"{source_location}:{job_id}"``.
    """
    rendered: dict[str, Any] = {}
    for manifest in manifests:
        rendered[manifest.name(job_id)] = manifest.to_dict(job_id)

    return {
        "version": SNAPSHOT_VERSION,
        "detector": detector or default_detector(),
        "scanned": scanned or datetime.now(UTC).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "manifests": rendered,
    }


def count_dependencies(snapshot: dict[str, Any]) -> int:
    """Total resolved entries across all manifests."""
    return sum(len(manifest["resolved"]) for manifest in snapshot["manifests"].values())


def validate_snapshot(snapshot: dict[str, Any]) -> None:
    """Raise ValueError if the snapshot does not match the packaged schema."""
    validate_data(snapshot, SNAPSHOT_SCHEMA, strict=True)


def dumps_snapshot(snapshot: dict[str, Any]) -> str:
    return json.dumps(snapshot, indent=2, ensure_ascii=False) + "\n"


def write_snapshot(path: Path, snapshot: dict[str, Any]) -> None:
    """Write the snapshot as pretty UTF-8 JSON."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dumps_snapshot(snapshot), encoding="utf-8")
