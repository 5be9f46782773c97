"""Template graph walker.

Starting from one pipeline file, the walker parses every document reachable
through ``template`` and ``extends`` references and accumulates a flat list of
task references, each tagged with the file it was found in.

Walk state is an explicit work-list plus ``processed_files``. A file is added
to ``processed_files`` before its content is parsed, so cycles and diamonds
collapse to a single visit per file. Children are pushed in reverse document
order, which yields the same pre-order depth-first task order as a recursive
walk without being bound by the interpreter's recursion limit.

Nothing local to one file aborts the walk: missing files, unparseable YAML and
unreachable external templates are recorded as warnings.
"""

from __future__ import annotations

import logging
import os
import posixpath
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Protocol

from pipedeps.errors import ParseError
from pipedeps.pipeline.parser import parse_document
from pipedeps.pipeline.types import (
    DEFAULT_TEMPLATE_REF,
    ExternalTemplate,
    ParsedDocument,
    TemplateReference,
    WalkResult,
)
from pipedeps.sources.files import LocalFileSource, relative_source_path, resolve_template_path

logger = logging.getLogger(__name__)


class LocalSource(Protocol):
    def read(self, path: str) -> str | None: ...


class ExternalSource(Protocol):
    def read(self, owner: str, repo: str, path: str, ref: str) -> str | None: ...


@dataclass(frozen=True)
class _LocalFile:
    path: str  # normalized absolute path


@dataclass(frozen=True)
class _ExternalFile:
    template: ExternalTemplate


_Pending = _LocalFile | _ExternalFile


class TemplateWalker:
    """Collects task references from a pipeline and the templates it includes.

    Args:
        workspace_root: Root that ``source_file`` paths are made relative to
        resolve_templates: When False only the entry file's own tasks are collected
        local_source: Reader for workspace files
        external_source: Reader for templates in other repositories; None when
            no credential is configured
    """

    def __init__(
        self,
        workspace_root: Path,
        *,
        resolve_templates: bool = True,
        local_source: LocalSource | None = None,
        external_source: ExternalSource | None = None,
    ) -> None:
        self.workspace_root = Path(os.path.abspath(workspace_root))
        self.resolve_templates = resolve_templates
        self._local = local_source or LocalFileSource()
        self._external = external_source

    def walk(self, entry_file: str | Path) -> WalkResult:
        """Walk ``entry_file`` and every template reachable from it.

        Raises:
            ValueError: If ``entry_file`` is empty
        """
        if entry_file is None or not str(entry_file).strip():
            raise ValueError("walk() requires a pipeline file path")

        result = WalkResult()
        stack: list[_Pending] = [_LocalFile(os.path.abspath(entry_file))]
        while stack:
            item = stack.pop()
            if isinstance(item, _LocalFile):
                children = self._visit_local(item, result)
            else:
                children = self._visit_external(item, result)
            stack.extend(reversed(children))
        return result

    def _visit_local(self, item: _LocalFile, result: WalkResult) -> list[_Pending]:
        if item.path in result.processed_files:
            logger.debug("Skipping already processed file: %s", item.path)
            return []

        try:
            text = self._local.read(item.path)
        except (OSError, UnicodeDecodeError) as exc:
            _warn(result, f"Failed to read file {item.path}: {exc}")
            return []
        if text is None:
            _warn(result, f"Template file not found: {item.path}")
            return []

        result.processed_files.add(item.path)
        logger.debug("Processing pipeline file: %s", item.path)
        document = self._parse(text, item.path, result)
        if document is None:
            return []

        self._collect(document, relative_source_path(item.path, self.workspace_root), result)
        if not self.resolve_templates:
            logger.debug("Template resolution is disabled")
            return []
        return self._children(document, item, result)

    def _visit_external(self, item: _ExternalFile, result: WalkResult) -> list[_Pending]:
        template = item.template
        if template.key in result.processed_files:
            logger.debug("Already processed external template: %s", template.key)
            return []

        try:
            text = self._external.read(template.owner, template.repo, template.path, template.ref)
        except Exception as exc:
            _warn(
                result,
                f"Failed to resolve external template {template.path} from "
                f"{template.owner}/{template.repo}: {exc}",
            )
            return []
        if text is None:
            _warn(
                result,
                f"External template {template.path} is not a file or could not be retrieved",
            )
            return []

        result.processed_files.add(template.key)
        logger.info("Resolved external template: %s@%s", template.key, template.ref)
        document = self._parse(text, template.key, result)
        if document is None:
            return []

        self._collect(document, template.key, result)
        return self._children(document, item, result)

    def _parse(self, text: str, label: str, result: WalkResult) -> ParsedDocument | None:
        try:
            return parse_document(text, label)
        except ParseError as exc:
            _warn(result, f"Failed to process file {label}: {exc}")
            return None

    def _collect(self, document: ParsedDocument, source_file: str, result: WalkResult) -> None:
        result.tasks.extend(replace(task, source_file=source_file) for task in document.tasks)

    def _children(
        self,
        document: ParsedDocument,
        origin: _Pending,
        result: WalkResult,
    ) -> list[_Pending]:
        references: list[TemplateReference] = []
        if document.extends is not None:
            references.append(document.extends)
        references.extend(document.templates)

        children: list[_Pending] = []
        for reference in references:
            child = self._pending_for(reference, origin, result)
            if child is not None:
                children.append(child)
        return children

    def _pending_for(
        self,
        reference: TemplateReference,
        origin: _Pending,
        result: WalkResult,
    ) -> _Pending | None:
        if reference.repository:
            return self._external_for(reference, result)

        if isinstance(origin, _ExternalFile):
            # Templates inside an external template live in the same repository
            parent = origin.template
            if reference.path.startswith("/"):
                path = posixpath.normpath(reference.path.lstrip("/"))
            else:
                path = posixpath.normpath(posixpath.join(posixpath.dirname(parent.path), reference.path))
            return self._track(
                ExternalTemplate(owner=parent.owner, repo=parent.repo, path=path, ref=parent.ref),
                result,
            )

        resolved = resolve_template_path(origin.path, reference.path, self.workspace_root)
        logger.debug("Resolving template: %s -> %s", reference.path, resolved)
        return _LocalFile(resolved)

    def _external_for(self, reference: TemplateReference, result: WalkResult) -> _Pending | None:
        repository = reference.repository or ""
        if self._external is None:
            _warn(
                result,
                f"Cannot resolve external repository template: {reference.path} from "
                f"{repository}. No GitHub token provided.",
            )
            return None

        owner, _, repo = repository.partition("/")
        if not owner or not repo or "/" in repo:
            _warn(
                result,
                f"Cannot resolve repository alias '{repository}'. External templates must "
                "use 'owner/repo' format in the template reference.",
            )
            return None

        template = ExternalTemplate(
            owner=owner,
            repo=repo,
            path=reference.path.lstrip("/"),
            ref=reference.ref or DEFAULT_TEMPLATE_REF,
        )
        return self._track(template, result)

    def _track(self, template: ExternalTemplate, result: WalkResult) -> _ExternalFile:
        if template not in result.external_templates:
            result.external_templates.append(template)
            logger.debug(
                "Tracked external template as transitive dependency: %s/%s/%s@%s",
                template.owner,
                template.repo,
                template.path,
                template.ref,
            )
        return _ExternalFile(template)


def _warn(result: WalkResult, message: str) -> None:
    result.warnings.append(message)
    logger.warning(message)
