"""Multi-key task catalog index.

The catalog is built in a single pass over the task records listed by Azure
DevOps and is read-only afterwards. Every key is lower-cased. Each key scheme
has its own mapping:

- name or id -> highest version across all majors
- (name or id, major) -> highest version within that major
- id -> highest version, and (id, major) -> highest within that major
- canonical identifier -> highest version
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType

from pipedeps.catalog.types import CanonicalTask, TaskRecord

logger = logging.getLogger(__name__)

BUILTIN_PREFIX = "Microsoft.BuiltIn"
MICROSOFT_AUTHORS = frozenset({"Microsoft Corporation", "Microsoft"})


def is_builtin_record(record: TaskRecord) -> bool:
    """Whether a task ships with every Azure DevOps organization."""
    if record.server_owned:
        return True
    if record.definition_type == "metaTask":
        return True
    return not record.contribution_identifier and (
        record.author is None or record.author in MICROSOFT_AUTHORS
    )


def canonical_identifier_for(record: TaskRecord, is_builtin: bool) -> str:
    """Build the canonical identifier for a task record.

    Priority: marketplace contribution identifier, then
    ``Microsoft.BuiltIn.{name}`` for built-in tasks, then the bare task name.
    """
    if record.contribution_identifier:
        return record.contribution_identifier
    if is_builtin:
        return f"{BUILTIN_PREFIX}.{record.name}"
    logger.warning(
        "Task %s (%s) has no contribution identifier; using bare name as canonical identifier",
        record.name,
        record.id,
    )
    return record.name


def to_canonical_task(record: TaskRecord) -> CanonicalTask:
    builtin = is_builtin_record(record)
    return CanonicalTask(
        id=record.id,
        name=record.name,
        major_version=record.version.major,
        full_version=str(record.version),
        canonical_identifier=canonical_identifier_for(record, builtin),
        is_builtin=builtin,
        author=record.author,
        contribution_identifier=record.contribution_identifier,
    )


class TaskCatalog:
    """Read-only lookup of installed tasks by name, id and major version."""

    def __init__(self, tasks: Iterable[CanonicalTask] = ()) -> None:
        by_key: dict[str, CanonicalTask] = {}
        by_key_major: dict[tuple[str, int], CanonicalTask] = {}
        by_id: dict[str, CanonicalTask] = {}
        by_id_major: dict[tuple[str, int], CanonicalTask] = {}
        by_canonical: dict[str, CanonicalTask] = {}

        for task in tasks:
            task_id = task.id.lower()
            major = task.major_version
            for key in {task_id, task.name.lower()}:
                _keep_highest(by_key, key, task)
                _keep_highest(by_key_major, (key, major), task)
            _keep_highest(by_id, task_id, task)
            _keep_highest(by_id_major, (task_id, major), task)
            _keep_highest(by_canonical, task.canonical_identifier.lower(), task)

        self._by_key: Mapping[str, CanonicalTask] = MappingProxyType(by_key)
        self._by_key_major: Mapping[tuple[str, int], CanonicalTask] = MappingProxyType(by_key_major)
        self._by_id: Mapping[str, CanonicalTask] = MappingProxyType(by_id)
        self._by_id_major: Mapping[tuple[str, int], CanonicalTask] = MappingProxyType(by_id_major)
        self._by_canonical: Mapping[str, CanonicalTask] = MappingProxyType(by_canonical)

    def __len__(self) -> int:
        return len(self._by_id_major)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._by_key

    def lookup(self, key: str, major: int | None = None) -> CanonicalTask | None:
        """Find a task by name or id, optionally pinned to a major version."""
        if major is None:
            return self._by_key.get(key.lower())
        return self._by_key_major.get((key.lower(), major))

    def lookup_id(self, task_id: str, major: int | None = None) -> CanonicalTask | None:
        """Find a task by GUID only."""
        if major is None:
            return self._by_id.get(task_id.lower())
        return self._by_id_major.get((task_id.lower(), major))

    def find_canonical(self, identifier: str) -> CanonicalTask | None:
        """Find a task whose canonical identifier equals ``identifier``."""
        return self._by_canonical.get(identifier.lower())

    def tasks(self) -> list[CanonicalTask]:
        """Highest version of every (task id, major) pair, sorted by name."""
        return sorted(
            self._by_id_major.values(),
            key=lambda task: (task.name.lower(), task.major_version),
        )


def build_catalog(records: Iterable[TaskRecord]) -> TaskCatalog:
    """Build a TaskCatalog from raw task records."""
    tasks = []
    for record in records:
        task = to_canonical_task(record)
        logger.debug(
            "Registered task: %s (%s) -> %s@%s [%s]",
            task.name,
            task.id,
            task.canonical_identifier,
            task.full_version,
            "built-in" if task.is_builtin else "extension",
        )
        tasks.append(task)
    return TaskCatalog(tasks)


def _keep_highest(index: dict, key: object, task: CanonicalTask) -> None:
    current = index.get(key)
    if current is None or _version_key(task) > _version_key(current):
        index[key] = task


def _version_key(task: CanonicalTask) -> tuple[int, ...]:
    return tuple(int(part) for part in task.full_version.split("."))
