"""GitHub dependency graph submission."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import requests

from pipedeps.errors import ConfigError, SubmissionError
from pipedeps.sources.github import GITHUB_API_URL, github_headers
from pipedeps.sources.http import DEFAULT_TIMEOUT_S, RequestsHttp

if TYPE_CHECKING:
    from pipedeps.sources.http import SupportsHttp

logger = logging.getLogger(__name__)


def split_repository(repository: str) -> tuple[str, str]:
    """Split ``owner/repo``.

    Raises:
        ConfigError: If the value is not in ``owner/repo`` form
    """
    owner, _, repo = repository.partition("/")
    if not owner or not repo or "/" in repo:
        raise ConfigError(f"Invalid repository format: {repository}. Expected format: owner/repo")
    return owner, repo


class DependencySubmitter:
    """Posts dependency snapshots to a repository's dependency graph."""

    def __init__(
        self,
        token: str,
        repository: str,
        *,
        api_url: str = GITHUB_API_URL,
        http: SupportsHttp | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        self.owner, self.repo = split_repository(repository)
        self._headers = github_headers(token)
        self._api_url = api_url.rstrip("/")
        self._http = http or RequestsHttp()
        self._timeout_s = timeout_s

    def submit(self, snapshot: dict[str, Any], sha: str, ref: str) -> dict[str, Any]:
        """Submit ``snapshot`` for commit ``sha`` on ``ref``.

        Returns:
            Response payload from GitHub

        Raises:
            SubmissionError: If the request fails
        """
        detector = snapshot["detector"]
        body = {
            "version": snapshot["version"],
            "sha": sha,
            "ref": ref,
            "job": {"correlator": f"{detector['name']}-{sha}", "id": sha},
            "detector": detector,
            "scanned": snapshot["scanned"],
            "manifests": snapshot["manifests"],
        }
        url = f"{self._api_url}/repos/{self.owner}/{self.repo}/dependency-graph/snapshots"
        logger.info("Submitting dependency snapshot for %s/%s@%s", self.owner, self.repo, sha)

        try:
            response = self._http.post(url, json=body, headers=self._headers, timeout=self._timeout_s)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise SubmissionError(f"Failed to submit dependency snapshot: {exc}") from exc

        if response.status_code == 201:
            logger.info("Dependency snapshot submitted successfully")
        else:
            logger.warning("Unexpected response status: %s", response.status_code)
        logger.debug("Response: %s", payload)
        return payload if isinstance(payload, dict) else {}
