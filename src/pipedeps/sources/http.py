"""Minimal HTTP surface shared by the REST collaborators."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, cast

import requests

if TYPE_CHECKING:
    from collections.abc import Mapping

DEFAULT_TIMEOUT_S = 30.0


class SupportsResponse(Protocol):
    """Response methods the clients rely on; mirrors :class:`requests.Response`."""

    status_code: int

    def raise_for_status(self) -> None: ...

    def json(self) -> Any: ...


class SupportsHttp(Protocol):
    """HTTP verbs the clients rely on.

    Tests swap in stub transports that implement ``get`` and ``post``.
    """

    def get(
        self,
        url: str,
        *,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
        auth: tuple[str, str] | None = None,
        timeout: float | None = None,
    ) -> SupportsResponse: ...

    def post(
        self,
        url: str,
        *,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
        auth: tuple[str, str] | None = None,
        timeout: float | None = None,
    ) -> SupportsResponse: ...


class RequestsHttp(SupportsHttp):
    """Adapter delegating to a :class:`requests.Session`."""

    def __init__(self, session: requests.Session | None = None) -> None:
        self._session = session or requests.Session()

    def get(
        self,
        url: str,
        *,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
        auth: tuple[str, str] | None = None,
        timeout: float | None = None,
    ) -> SupportsResponse:
        response = self._session.get(url, params=params, headers=headers, auth=auth, timeout=timeout)
        return cast("SupportsResponse", response)

    def post(
        self,
        url: str,
        *,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
        auth: tuple[str, str] | None = None,
        timeout: float | None = None,
    ) -> SupportsResponse:
        response = self._session.post(url, json=json, headers=headers, auth=auth, timeout=timeout)
        return cast("SupportsResponse", response)
