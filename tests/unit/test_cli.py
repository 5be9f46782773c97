"""Tests for the pipedeps CLI."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from conftest import StubHttp
from typer.testing import CliRunner

import pipedeps.cli as cli_module
from pipedeps import __version__
from pipedeps.cli import cli
from pipedeps.errors import CatalogError
from pipedeps.run import generate_snapshot

runner = CliRunner()


@pytest.fixture
def pipeline_repo(workspace: Path, write_file) -> Path:
    write_file(
        "azure-pipelines.yml",
        """
        steps:
          - task: PowerShell@2
          - template: templates/build.yml
          - template: steps.yml@contoso/shared
        """,
    )
    write_file("templates/build.yml", "steps:\n  - task: NodeTool@0\n")
    return workspace


def test_version() -> None:
    result = runner.invoke(cli, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_inventory_lists_tasks_and_warnings(pipeline_repo: Path) -> None:
    result = runner.invoke(cli, ["inventory", "--workspace", str(pipeline_repo)])

    assert result.exit_code == 0, result.output
    assert "PowerShell" in result.output
    assert "NodeTool" in result.output
    assert "1 warning(s)" in result.output


def test_inventory_without_template_resolution(pipeline_repo: Path) -> None:
    result = runner.invoke(
        cli, ["inventory", "--workspace", str(pipeline_repo), "--no-resolve-templates"]
    )

    assert result.exit_code == 0, result.output
    assert "PowerShell" in result.output
    assert "NodeTool" not in result.output


def test_inventory_with_no_pipelines(workspace: Path) -> None:
    result = runner.invoke(cli, ["inventory", "--workspace", str(workspace)])

    assert result.exit_code == 0
    assert "No Azure Pipelines files found" in result.output


def test_snapshot_writes_output_file(
    pipeline_repo: Path,
    http: StubHttp,
    task_definitions,
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    http.respond("GET", "/_apis/distributedtask/tasks", payload={"value": task_definitions})
    monkeypatch.setattr(cli_module, "generate_snapshot", lambda settings: generate_snapshot(settings, http=http))
    output = tmp_path / "snapshot.json"

    result = runner.invoke(
        cli,
        [
            "snapshot",
            "--workspace",
            str(pipeline_repo),
            "--azure-devops-url",
            "https://dev.azure.com/contoso",
            "--azure-devops-token",
            "pat",
            "--output",
            str(output),
        ],
    )

    assert result.exit_code == 0, result.output
    snapshot = json.loads(output.read_text(encoding="utf-8"))
    assert set(snapshot["manifests"]) == {
        "azure-pipelines.yml:dependency-submission",
        "templates/build.yml:dependency-submission",
    }


def test_snapshot_requires_azure_devops_settings(pipeline_repo: Path) -> None:
    result = runner.invoke(cli, ["snapshot", "--workspace", str(pipeline_repo)])

    assert result.exit_code == 1
    assert "Missing required configuration" in result.output


def test_submit_writes_github_output(
    pipeline_repo: Path, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    github_output = tmp_path / "github_output"
    monkeypatch.setenv("GITHUB_OUTPUT", str(github_output))
    seen = {}

    def fake_run_submission(settings):
        seen["settings"] = settings
        return 7

    monkeypatch.setattr(cli_module, "run_submission", fake_run_submission)

    result = runner.invoke(
        cli,
        ["submit", "--workspace", str(pipeline_repo), "--token", "cli-token", "--repository", "contoso/app"],
    )

    assert result.exit_code == 0, result.output
    assert "Submitted 7 dependencies" in result.output
    assert github_output.read_text(encoding="utf-8") == "dependency-count=7\n"
    assert seen["settings"].github_token == "cli-token"
    assert seen["settings"].repository == "contoso/app"


def test_submit_reports_fatal_errors(pipeline_repo: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def failing_run_submission(settings):
        raise CatalogError("Failed to fetch tasks from Azure DevOps: 401")

    monkeypatch.setattr(cli_module, "run_submission", failing_run_submission)

    result = runner.invoke(cli, ["submit", "--workspace", str(pipeline_repo)])

    assert result.exit_code == 1
    assert "Failed to fetch tasks from Azure DevOps" in result.output


def test_catalog_lists_installed_tasks(monkeypatch: pytest.MonkeyPatch, workspace: Path, catalog) -> None:
    monkeypatch.setattr(cli_module, "fetch_catalog", lambda settings: catalog)

    result = runner.invoke(cli, ["catalog", "--workspace", str(workspace)])

    assert result.exit_code == 0, result.output
    assert "PowerShell" in result.output
    assert "CustomTask" in result.output
