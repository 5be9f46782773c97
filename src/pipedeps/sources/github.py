"""External template content from GitHub repositories."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import TYPE_CHECKING
from urllib.parse import quote

from pipedeps.sources.http import DEFAULT_TIMEOUT_S, RequestsHttp

if TYPE_CHECKING:
    from pipedeps.sources.http import SupportsHttp

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
API_VERSION = "2022-11-28"


def github_headers(token: str) -> dict[str, str]:
    return {
        "Accept": "application/vnd.github+json",
        "Authorization": f"Bearer {token}",
        "X-GitHub-Api-Version": API_VERSION,
    }


def branch_name(ref: str) -> str:
    """``refs/heads/main`` -> ``main``; other refs pass through."""
    prefix = "refs/heads/"
    return ref[len(prefix):] if ref.startswith(prefix) else ref


class GitHubContentClient:
    """Reads single files through the GitHub contents API."""

    def __init__(
        self,
        token: str,
        *,
        api_url: str = GITHUB_API_URL,
        http: SupportsHttp | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        self._headers = github_headers(token)
        self._api_url = api_url.rstrip("/")
        self._http = http or RequestsHttp()
        self._timeout_s = timeout_s

    def read(self, owner: str, repo: str, path: str, ref: str) -> str | None:
        """Return the decoded file text, or None when it does not exist.

        Raises:
            requests.RequestException: On transport or non-404 HTTP errors
            ValueError: If the payload cannot be decoded
        """
        url = f"{self._api_url}/repos/{owner}/{repo}/contents/{quote(path.lstrip('/'))}"
        logger.debug("Downloading %s/%s/%s from %s", owner, repo, path, branch_name(ref))
        response = self._http.get(
            url,
            params={"ref": branch_name(ref)},
            headers=self._headers,
            timeout=self._timeout_s,
        )
        if response.status_code == 404:
            return None
        response.raise_for_status()

        payload = response.json()
        if not isinstance(payload, dict) or payload.get("type") != "file" or "content" not in payload:
            logger.debug("%s/%s/%s is not a file", owner, repo, path)
            return None
        try:
            return base64.b64decode(payload["content"]).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise ValueError(f"Could not decode {owner}/{repo}/{path}: {exc}") from exc
