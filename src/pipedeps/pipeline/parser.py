"""Azure Pipelines YAML parser."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import yaml
from yaml.composer import ComposerError

from pipedeps.errors import ParseError
from pipedeps.pipeline.types import (
    DEFAULT_TEMPLATE_REF,
    ParsedDocument,
    TaskReference,
    TemplateReference,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

logger = logging.getLogger(__name__)

PIPELINE_KEYS = (
    "stages",
    "jobs",
    "steps",
    "trigger",
    "pool",
    "extends",
    "resources",
    "variables",
    "parameters",
)

SELF_REPOSITORY = "self"


@dataclass(frozen=True)
class _TaskNode:
    reference: TaskReference


@dataclass(frozen=True)
class _TemplateNode:
    reference: TemplateReference
    rest: dict[str, Any]


@dataclass(frozen=True)
class _Container:
    children: list[Any]


def parse_document(text: str, path: str = "<memory>") -> ParsedDocument:
    """Extract task and template references from one pipeline document.

    Args:
        text: YAML document text
        path: File path or virtual label used in error messages

    Returns:
        ParsedDocument with tasks and templates in document order

    Raises:
        ParseError: If the text is not well-formed YAML
    """
    logger.debug("Parsing pipeline document: %s", path)
    data = _load_yaml(text, path)

    tasks: list[TaskReference] = []
    templates: list[TemplateReference] = []
    extends: TemplateReference | None = None

    root: Any = data
    if isinstance(data, dict) and "extends" in data:
        extends = parse_template_reference(data["extends"])
        root = {key: value for key, value in data.items() if key != "extends"}
        if isinstance(data["extends"], dict):
            # Step lists handed to the base template still live in this file
            root["extends"] = {
                key: value for key, value in data["extends"].items() if key != "template"
            }

    for node in _iter_nodes(root):
        if isinstance(node, _TaskNode):
            tasks.append(node.reference)
        elif isinstance(node, _TemplateNode):
            templates.append(node.reference)

    logger.debug("Found %d tasks and %d template references in %s", len(tasks), len(templates), path)
    return ParsedDocument(tasks=tuple(tasks), templates=tuple(templates), extends=extends)


def parse_pipeline_file(file_path: Path) -> ParsedDocument:
    """Read and parse a pipeline file.

    Raises:
        ParseError: If the file cannot be read or is not well-formed YAML
    """
    try:
        text = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ParseError(str(file_path), exc) from exc
    return parse_document(text, str(file_path))


def parse_task_string(value: str) -> tuple[str, str | None]:
    """Split ``Name@version`` into identifier and version spec."""
    identifier, _, version = value.partition("@")
    version = version.strip()
    return identifier.strip(), version or None


def parse_template_reference(value: Any) -> TemplateReference | None:
    """Decode a ``template``/``extends`` value into a TemplateReference.

    A bare string is a plain path. A mapping carries ``template`` plus optional
    ``repository`` and ``ref``; without an explicit repository the Azure
    ``path@alias`` form is honored.
    """
    if isinstance(value, str):
        return TemplateReference(path=value.strip()) if value.strip() else None
    if not isinstance(value, dict):
        return None

    raw_path = value.get("template")
    if not isinstance(raw_path, str) or not raw_path.strip():
        return None
    template_path = raw_path.strip()

    repository = _optional_str(value.get("repository"))
    if repository is None and "@" in template_path:
        template_path, _, alias = template_path.rpartition("@")
        repository = alias.strip() or None
    if repository is not None and repository.lower() == SELF_REPOSITORY:
        repository = None

    ref = _optional_str(value.get("ref"))
    if repository is not None and ref is None:
        ref = DEFAULT_TEMPLATE_REF

    return TemplateReference(path=template_path, repository=repository, ref=ref)


def looks_like_pipeline(text: str) -> bool:
    """Advisory check: does the text carry any common Azure Pipelines key."""
    try:
        data = _safe_load(text)
    except (yaml.YAMLError, RecursionError):
        return False
    if not isinstance(data, dict):
        return False
    return any(key in data for key in PIPELINE_KEYS)


def is_pipeline_file(file_path: Path) -> bool:
    """File variant of :func:`looks_like_pipeline`; unreadable files are not pipelines."""
    try:
        text = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return False
    return looks_like_pipeline(text)


class PipelineLoader(yaml.SafeLoader):
    """SafeLoader that rejects aliases.

    Azure Pipelines does not support YAML anchors; an alias is a parse error.
    """

    def compose_node(self, parent: Any, index: Any) -> Any:
        if self.check_event(yaml.AliasEvent):
            event = self.peek_event()
            raise ComposerError(
                None, None, f"YAML alias *{event.anchor} is not supported", event.start_mark
            )
        return super().compose_node(parent, index)


def _safe_load(text: str) -> Any:
    return yaml.load(text, Loader=PipelineLoader)


def _load_yaml(text: str, path: str) -> Any:
    try:
        return _safe_load(text)
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        line = mark.line + 1 if mark is not None else None
        raise ParseError(path, exc, line) from exc
    except RecursionError as exc:
        raise ParseError(path, ValueError("document is nested too deeply")) from exc


def _iter_nodes(root: Any) -> Iterator[_TaskNode | _TemplateNode | _Container]:
    """Yield decoded nodes in document order using an explicit stack."""
    stack: list[Any] = [root]
    while stack:
        node = _decode(stack.pop())
        if node is None:
            continue
        yield node
        if isinstance(node, _TemplateNode):
            children = list(node.rest.values())
        elif isinstance(node, _Container):
            children = node.children
        else:
            continue
        stack.extend(reversed(children))


def _decode(value: Any) -> _TaskNode | _TemplateNode | _Container | None:
    if isinstance(value, list):
        return _Container(children=value)
    if not isinstance(value, dict):
        return None

    task = value.get("task")
    if isinstance(task, str) and task.strip():
        identifier, version = parse_task_string(task)
        if identifier:
            inputs = value.get("inputs")
            return _TaskNode(
                TaskReference(
                    identifier=identifier,
                    version_spec=version,
                    display_name=_optional_str(value.get("displayName")),
                    inputs=inputs if isinstance(inputs, dict) else None,
                )
            )

    if "template" in value:
        reference = parse_template_reference(value)
        if reference is not None:
            rest = {key: item for key, item in value.items() if key != "template"}
            return _TemplateNode(reference=reference, rest=rest)

    return _Container(children=list(value.values()))


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
