"""Pytest configuration and fixtures for pipedeps tests."""

from __future__ import annotations

import logging
import os
import textwrap
from pathlib import Path
from typing import Any

import pytest
import requests

from pipedeps.catalog.index import TaskCatalog, build_catalog
from pipedeps.catalog.types import TaskRecord

POWERSHELL_ID = "e213ff0f-5d5c-4791-802d-52ea3e7be1f1"
NODETOOL_ID = "31c75bbb-bcdf-4706-8d7c-4da6a1959bc2"
REPLACE_TOKENS_ID = "a8515ec8-7254-4ffd-912c-86772e2b5962"
CUSTOM_ID = "0f0e1d2c-3b4a-5968-7766-554433221100"

_ENV_PREFIXES = ("GITHUB_", "INPUT_", "AZURE_DEVOPS_")


class StubResponse:
    """Stand-in for :class:`requests.Response`."""

    def __init__(self, status_code: int = 200, payload: Any = None) -> None:
        self.status_code = status_code
        self._payload = payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error")

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class StubHttp:
    """Routes requests by (method, URL fragment); unmatched URLs answer 404."""

    def __init__(self) -> None:
        self.routes: list[tuple[str, str, Any]] = []
        self.calls: list[dict[str, Any]] = []

    def respond(self, method: str, fragment: str, status: int = 200, payload: Any = None) -> None:
        self.routes.append((method, fragment, StubResponse(status, payload)))

    def fail(self, method: str, fragment: str, error: Exception) -> None:
        self.routes.append((method, fragment, error))

    def get(self, url, *, params=None, headers=None, auth=None, timeout=None):
        return self._dispatch("GET", url, params=params, headers=headers, auth=auth, timeout=timeout)

    def post(self, url, *, json=None, headers=None, auth=None, timeout=None):
        return self._dispatch("POST", url, json=json, headers=headers, auth=auth, timeout=timeout)

    def requests_to(self, fragment: str) -> list[dict[str, Any]]:
        return [call for call in self.calls if fragment in call["url"]]

    def _dispatch(self, method: str, url: str, **kwargs: Any) -> StubResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        for route_method, fragment, outcome in self.routes:
            if route_method == method and fragment in url:
                if isinstance(outcome, Exception):
                    raise outcome
                return outcome
        return StubResponse(404, {"message": "Not Found"})


def task_definition(
    task_id: str,
    name: str,
    version: str,
    *,
    author: str | None = "Microsoft Corporation",
    contribution: str | None = None,
    **extra: Any,
) -> dict[str, Any]:
    major, minor, patch = (int(part) for part in version.split("."))
    data: dict[str, Any] = {
        "id": task_id,
        "name": name,
        "friendlyName": name,
        "version": {"major": major, "minor": minor, "patch": patch, "isTest": False},
        "author": author,
    }
    if contribution:
        data["contributionIdentifier"] = contribution
        data["contributionVersion"] = version
    data.update(extra)
    return data


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Hide the CI environment the suite itself may run in."""
    for name in list(os.environ):
        if name.startswith(_ENV_PREFIXES) or name == "GITHUB_ACTIONS":
            monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _reset_package_logger():
    yield
    logger = logging.getLogger("pipedeps")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def http() -> StubHttp:
    return StubHttp()


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    root.mkdir()
    return root


@pytest.fixture
def write_file(workspace: Path):
    """Write dedented text to a workspace-relative path and return the absolute path."""

    def _write(relative: str, text: str) -> Path:
        path = workspace / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(text).lstrip("\n"), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def task_definitions() -> list[dict[str, Any]]:
    """Task listing as returned by the distributed task API."""
    return [
        task_definition(POWERSHELL_ID, "PowerShell", "1.2.3"),
        task_definition(POWERSHELL_ID, "PowerShell", "1.5.0"),
        task_definition(POWERSHELL_ID, "PowerShell", "2.1.0"),
        task_definition(POWERSHELL_ID, "PowerShell", "2.3.5"),
        task_definition(NODETOOL_ID, "NodeTool", "0.220.0"),
        task_definition(
            REPLACE_TOKENS_ID,
            "replacetokens",
            "5.3.0",
            author="Guillaume Rouchon",
            contribution="qetza.replacetokens.replacetokens-task",
        ),
        task_definition(
            REPLACE_TOKENS_ID,
            "replacetokens",
            "6.0.1",
            author="Guillaume Rouchon",
            contribution="qetza.replacetokens.replacetokens-task",
        ),
        task_definition(CUSTOM_ID, "CustomTask", "1.0.0", author="Contoso"),
    ]


@pytest.fixture
def catalog(task_definitions: list[dict[str, Any]]) -> TaskCatalog:
    return build_catalog(TaskRecord.from_dict(data) for data in task_definitions)
