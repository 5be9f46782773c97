"""Azure DevOps task definition listing."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import requests

from pipedeps.catalog.index import TaskCatalog, build_catalog
from pipedeps.catalog.types import TaskRecord
from pipedeps.errors import CatalogError
from pipedeps.sources.http import DEFAULT_TIMEOUT_S, RequestsHttp

if TYPE_CHECKING:
    from pipedeps.sources.http import SupportsHttp

logger = logging.getLogger(__name__)

API_VERSION = "7.1"


class AzureDevOpsTaskClient:
    """Lists the task definitions installed in an Azure DevOps organization.

    Args:
        organization_url: e.g. ``https://dev.azure.com/myorg``
        token: Personal access token
        http: Transport override (tests)
        timeout_s: Per-request timeout in seconds
    """

    def __init__(
        self,
        organization_url: str,
        token: str,
        *,
        http: SupportsHttp | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        self.base_url = organization_url.rstrip("/")
        self._auth = ("", token)
        self._http = http or RequestsHttp()
        self._timeout_s = timeout_s

    def list_tasks(self) -> list[TaskRecord]:
        """Fetch every installed version of every task definition.

        Records missing id, name or version are skipped with a warning.

        Raises:
            CatalogError: If the listing cannot be fetched or decoded
        """
        url = f"{self.base_url}/_apis/distributedtask/tasks"
        logger.debug("Fetching tasks from: %s", self.base_url)
        try:
            response = self._http.get(
                url,
                params={"allVersions": "true", "api-version": API_VERSION},
                headers={"Accept": "application/json"},
                auth=self._auth,
                timeout=self._timeout_s,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise CatalogError(f"Failed to fetch tasks from Azure DevOps: {exc}") from exc

        raw_tasks = _task_list(payload)
        if raw_tasks is None:
            raise CatalogError(
                "Failed to fetch tasks from Azure DevOps: unexpected response payload"
            )
        logger.info("Found %d installed task versions", len(raw_tasks))

        records: list[TaskRecord] = []
        for raw in raw_tasks:
            try:
                records.append(TaskRecord.from_dict(raw))
            except (TypeError, ValueError, AttributeError) as exc:
                logger.warning("Skipping task with missing required fields (%s): %r", exc, raw)
        return records

    def fetch_catalog(self) -> TaskCatalog:
        """List tasks and index them."""
        return build_catalog(self.list_tasks())


def _task_list(payload: Any) -> list[Any] | None:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("value"), list):
        return payload["value"]
    return None
