"""End-to-end run: catalog, discovery, walk, resolve, snapshot, submit."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pipedeps.artifacts.snapshot import build_snapshot, count_dependencies, validate_snapshot
from pipedeps.catalog.azure_devops import AzureDevOpsTaskClient
from pipedeps.pipeline.resolver import resolve_manifests
from pipedeps.pipeline.walker import TemplateWalker
from pipedeps.sources.files import discover_pipeline_files
from pipedeps.sources.github import GitHubContentClient
from pipedeps.submit.github import DependencySubmitter

if TYPE_CHECKING:
    from pipedeps.catalog.index import TaskCatalog
    from pipedeps.pipeline.types import TaskReference, WalkResult
    from pipedeps.pipeline.walker import ExternalSource
    from pipedeps.sources.http import SupportsHttp
    from pipedeps.utils.settings import Settings

logger = logging.getLogger(__name__)

CATALOG_SETTINGS = ("azure_devops_url", "azure_devops_token")
SUBMIT_SETTINGS = ("github_token", "repository", "sha", "ref")


def fetch_catalog(settings: Settings, *, http: SupportsHttp | None = None) -> TaskCatalog:
    """Fetch the organization's task catalog.

    Raises:
        ConfigError: If the Azure DevOps URL or token is missing
        CatalogError: If the listing cannot be fetched
    """
    settings.require(*CATALOG_SETTINGS)
    logger.info("Fetching installed tasks from Azure DevOps...")
    client = AzureDevOpsTaskClient(
        settings.azure_devops_url,
        settings.azure_devops_token,
        http=http,
        timeout_s=settings.timeout_s,
    )
    catalog = client.fetch_catalog()
    logger.info("Indexed %d task versions", len(catalog))
    return catalog


def external_source_for(settings: Settings, *, http: SupportsHttp | None = None) -> ExternalSource | None:
    """GitHub content reader for external templates, when a token is configured."""
    token = settings.external_token
    if not token:
        return None
    return GitHubContentClient(token, http=http, timeout_s=settings.timeout_s)


def discover(settings: Settings) -> list[str]:
    return discover_pipeline_files(settings.workspace, settings.pipeline_paths)


def collect_tasks(
    settings: Settings,
    files: list[str],
    *,
    external_source: ExternalSource | None = None,
) -> tuple[list[TaskReference], list[WalkResult]]:
    """Walk every pipeline file and concatenate their task references.

    Each file is walked independently; a template shared by two pipelines is
    attributed to both.

    Returns:
        (all task references in walk order, per-file walk results)
    """
    walker = TemplateWalker(
        settings.workspace,
        resolve_templates=settings.resolve_templates,
        external_source=external_source,
    )
    tasks: list[TaskReference] = []
    results: list[WalkResult] = []
    for file_path in files:
        logger.info("Processing %s", file_path)
        result = walker.walk(file_path)
        logger.info(
            "Found %d task(s) in %s (%d file(s) processed)",
            len(result.tasks),
            file_path,
            len(result.processed_files),
        )
        if result.external_templates:
            logger.info(
                "Referenced external templates: %s",
                ", ".join(t.key for t in result.external_templates),
            )
        tasks.extend(result.tasks)
        results.append(result)
    return tasks, results


def build_dependency_snapshot(
    settings: Settings,
    catalog: TaskCatalog,
    tasks: list[TaskReference],
    *,
    scanned: str | None = None,
) -> dict[str, Any]:
    """Resolve ``tasks`` against ``catalog`` and build a validated snapshot."""
    manifests = resolve_manifests(tasks, catalog, default_manifest_path=settings.manifest_path)
    snapshot = build_snapshot(manifests, settings.job_id, scanned=scanned)
    validate_snapshot(snapshot)
    return snapshot


def generate_snapshot(settings: Settings, *, http: SupportsHttp | None = None) -> dict[str, Any] | None:
    """Run everything except submission.

    Returns:
        The snapshot, or None when no pipeline files or no tasks were found
    """
    catalog = fetch_catalog(settings, http=http)

    files = discover(settings)
    if not files:
        logger.warning("No Azure Pipelines files found")
        return None

    tasks, _ = collect_tasks(settings, files, external_source=external_source_for(settings, http=http))
    if not tasks:
        logger.warning("No tasks found in pipeline files")
        return None

    snapshot = build_dependency_snapshot(settings, catalog, tasks)
    logger.info("Resolved %d dependencies", count_dependencies(snapshot))
    return snapshot


def run_submission(settings: Settings, *, http: SupportsHttp | None = None) -> int:
    """Full run ending in a dependency-graph submission.

    Returns:
        Number of submitted dependencies (0 when nothing was found)

    Raises:
        ConfigError: If mandatory settings are missing
        CatalogError: If the catalog cannot be fetched
        SubmissionError: If the submission fails
    """
    settings.require(*CATALOG_SETTINGS, *SUBMIT_SETTINGS)
    submitter = DependencySubmitter(
        settings.github_token,
        settings.repository,
        http=http,
        timeout_s=settings.timeout_s,
    )

    snapshot = generate_snapshot(settings, http=http)
    if snapshot is None:
        return 0

    submitter.submit(snapshot, settings.sha, settings.ref)
    return count_dependencies(snapshot)
