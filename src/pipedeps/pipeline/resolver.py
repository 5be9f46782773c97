"""Task identifier resolution and version normalization."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING
from urllib.parse import quote

from pipedeps.pipeline.types import Dependency, Manifest

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from pipedeps.catalog.index import TaskCatalog
    from pipedeps.catalog.types import CanonicalTask
    from pipedeps.pipeline.types import TaskReference

logger = logging.getLogger(__name__)

PURL_PREFIX = "pkg:generic/azure-pipelines"
DEFAULT_MANIFEST_PATH = "azure-pipelines"

_GUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
# encodeURIComponent leaves these unescaped in addition to quote()'s defaults
_URI_COMPONENT_SAFE = "!*'()"


def is_guid(value: str) -> bool:
    """Check for 8-4-4-4-12 hexadecimal GUID syntax."""
    return bool(_GUID_RE.match(value))


def normalize_version(version: str) -> str:
    """Pad a partial version with wildcards.

    ``"5"`` -> ``"5.*.*"``, ``"5.1"`` -> ``"5.1.*"``; three or more components
    are returned unchanged.
    """
    parts = version.split(".")
    if len(parts) == 1:
        return f"{parts[0]}.*.*"
    if len(parts) == 2:
        return f"{parts[0]}.{parts[1]}.*"
    return version


def major_of(version: str | None) -> int | None:
    """Leading integer component of a version spec, if any."""
    if not version:
        return None
    head = version.split(".", 1)[0].strip()
    if not head.isdigit():
        return None
    return int(head)


def build_package_url(canonical_identifier: str, version: str) -> str:
    """Build ``pkg:generic/azure-pipelines/{identifier}@{version}``."""
    encoded = quote(canonical_identifier, safe=_URI_COMPONENT_SAFE)
    return f"{PURL_PREFIX}/{encoded}@{version}"


def resolve_task(
    identifier: str,
    catalog: TaskCatalog,
    major: int | None = None,
) -> CanonicalTask | None:
    """Resolve a task identifier against the catalog.

    Strategies, first match wins:

    1. exact name or GUID (with the major qualifier, then without)
    2. last dot-separated segment as name or GUID
    3. last segment as an explicit GUID when it has GUID syntax
    4. canonical identifier equal to the raw identifier

    Args:
        identifier: Task name, GUID or qualified name as written in the pipeline
        catalog: Installed task catalog
        major: Major version pinned by the reference, if any

    Returns:
        Matching catalog entry, or None when no strategy matches
    """
    task = _lookup(catalog.lookup, identifier, major)
    if task is not None:
        return task

    if "." in identifier:
        last = identifier.rsplit(".", 1)[1]
        if last:
            task = _lookup(catalog.lookup, last, major)
            if task is not None:
                return task
            if is_guid(last):
                task = _lookup(catalog.lookup_id, last, major)
                if task is not None:
                    return task

    return catalog.find_canonical(identifier)


def resolve_manifests(
    tasks: Iterable[TaskReference],
    catalog: TaskCatalog,
    *,
    default_manifest_path: str = DEFAULT_MANIFEST_PATH,
) -> list[Manifest]:
    """Map task references to per-source-file manifests.

    References are grouped by ``source_file`` (falling back to
    ``default_manifest_path``). Within a group each
    ``canonical@normalizedVersion`` is emitted once. Wildcarded versions emit
    a direct entry plus an indirect entry for the highest installed version of
    that major, linked through ``dependencies``. Unresolved references are
    logged and dropped.

    Returns:
        Manifests in order of first appearance of their source file
    """
    manifests: dict[str, Manifest] = {}
    seen: dict[str, set[str]] = {}

    for reference in tasks:
        source = reference.source_file or default_manifest_path
        manifest = manifests.get(source)
        if manifest is None:
            manifest = manifests[source] = Manifest(source_location=source)
            seen[source] = set()

        major = major_of(reference.version_spec)
        task = resolve_task(reference.identifier, catalog, major)
        if task is None:
            logger.warning(
                "Could not resolve task: %s. It may not be installed in the Azure DevOps organization.",
                reference.identifier,
            )
            continue

        version = normalize_version(reference.version_spec or task.full_version)
        dedup_key = f"{task.canonical_identifier}@{version}"
        if dedup_key in seen[source]:
            logger.debug("Skipping duplicate task %s in %s", dedup_key, source)
            continue
        seen[source].add(dedup_key)

        for dependency in _dependencies_for(task, version, catalog):
            _emit(manifest, dependency)
        logger.debug("Mapped task %s to %s", reference.identifier, dedup_key)

    return list(manifests.values())


def _dependencies_for(
    task: CanonicalTask,
    version: str,
    catalog: TaskCatalog,
) -> list[Dependency]:
    direct_url = build_package_url(task.canonical_identifier, version)
    if "*" not in version:
        return [Dependency(package_url=direct_url)]

    installed = catalog.lookup_id(task.id, major_of(version)) or task
    actual_url = build_package_url(task.canonical_identifier, installed.full_version)
    return [
        Dependency(package_url=direct_url, dependencies=(actual_url,)),
        Dependency(package_url=actual_url, relationship="indirect"),
    ]


def _emit(manifest: Manifest, dependency: Dependency) -> None:
    existing = manifest.resolved.get(dependency.package_url)
    if existing is None:
        manifest.resolved[dependency.package_url] = dependency
    elif existing.relationship == "indirect" and dependency.relationship == "direct":
        manifest.resolved[dependency.package_url] = dependency


def _lookup(
    find: Callable[..., CanonicalTask | None], key: str, major: int | None
) -> CanonicalTask | None:
    if major is not None:
        task = find(key, major)
        if task is not None:
            return task
    return find(key)
