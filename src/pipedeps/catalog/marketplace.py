"""Visual Studio Marketplace extension metadata with a per-run cache."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pipedeps.catalog.types import ExtensionMetadata
from pipedeps.sources.http import DEFAULT_TIMEOUT_S, RequestsHttp

if TYPE_CHECKING:
    from pipedeps.catalog.types import CanonicalTask
    from pipedeps.sources.http import SupportsHttp

logger = logging.getLogger(__name__)

MARKETPLACE_QUERY_URL = "https://marketplace.visualstudio.com/_apis/public/gallery/extensionquery"
API_VERSION = "7.1-preview.1"
FILTER_EXTENSION_NAME = 7
# IncludeVersions | IncludeVersionProperties | IncludeLatestVersionOnly
QUERY_FLAGS = 0x1 | 0x10 | 0x200
REPOSITORY_PROPERTY_KEYS = (
    "Microsoft.VisualStudio.Services.Links.Source",
    "Microsoft.VisualStudio.Services.Links.GitHub",
    "Microsoft.VisualStudio.Services.Links.Repository",
)


class MarketplaceClient:
    """Looks up extension metadata; failures are cached as "no metadata"."""

    def __init__(
        self,
        *,
        query_url: str = MARKETPLACE_QUERY_URL,
        http: SupportsHttp | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        self._query_url = query_url
        self._http = http or RequestsHttp()
        self._timeout_s = timeout_s
        self._cache: dict[str, ExtensionMetadata] = {}

    def get_extension_metadata(self, publisher: str, extension: str) -> ExtensionMetadata:
        key = f"{publisher}.{extension}".lower()
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        try:
            repository_url = self._query_repository_url(publisher, extension)
        except Exception as exc:
            logger.debug("Marketplace lookup failed for %s: %s", key, exc)
            repository_url = None

        metadata = ExtensionMetadata(publisher=publisher, extension=extension, repository_url=repository_url)
        self._cache[key] = metadata
        return metadata

    def repository_url_for(self, task: CanonicalTask) -> str | None:
        """Repository URL of the extension that contributes ``task``, if known."""
        extension_key = task.extension_key
        if task.is_builtin or extension_key is None:
            return None
        return self.get_extension_metadata(*extension_key).repository_url

    def _query_repository_url(self, publisher: str, extension: str) -> str | None:
        body = {
            "filters": [
                {"criteria": [{"filterType": FILTER_EXTENSION_NAME, "value": f"{publisher}.{extension}"}]}
            ],
            "flags": QUERY_FLAGS,
        }
        response = self._http.post(
            self._query_url,
            json=body,
            headers={"Accept": f"application/json;api-version={API_VERSION}"},
            timeout=self._timeout_s,
        )
        response.raise_for_status()
        return _repository_url(response.json())


def _repository_url(payload: Any) -> str | None:
    for result in payload.get("results") or []:
        for extension in result.get("extensions") or []:
            for version in extension.get("versions") or []:
                properties = {
                    prop.get("key"): prop.get("value") for prop in version.get("properties") or []
                }
                for key in REPOSITORY_PROPERTY_KEYS:
                    if properties.get(key):
                        return str(properties[key])
    return None
