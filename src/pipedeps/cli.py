"""pipedeps CLI - Azure Pipelines task dependency submission."""

import os
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from pipedeps import __version__
from pipedeps.artifacts.snapshot import count_dependencies, dumps_snapshot, write_snapshot
from pipedeps.catalog.marketplace import MarketplaceClient
from pipedeps.errors import PipedepsError
from pipedeps.obs.logs import configure_logging
from pipedeps.run import (
    collect_tasks,
    discover,
    external_source_for,
    fetch_catalog,
    generate_snapshot,
    run_submission,
)
from pipedeps.utils.settings import Settings, load_settings

cli = typer.Typer(
    name="pipedeps",
    help="Submit Azure Pipelines task usage to the GitHub dependency graph.",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)


def _version_option_callback(value: bool) -> None:
    """Handle eager --version option."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@cli.callback()
def _cli_callback(
    version: bool = typer.Option(
        False,
        "--version",
        help="Show pipedeps version and exit.",
        is_eager=True,
        callback=_version_option_callback,
    ),
) -> None:
    """Discover Azure Pipelines tasks and report them as dependencies."""
    _ = version


def _fail(exc: Exception) -> typer.Exit:
    err_console.print(f"[bold red]Error:[/bold red] {exc}")
    return typer.Exit(1)


def _settings(workspace: Path | None, verbose: bool, **overrides: object) -> Settings:
    configure_logging(verbose, console=err_console)
    try:
        return load_settings(workspace, **overrides)
    except PipedepsError as exc:
        raise _fail(exc) from exc


def _write_github_output(name: str, value: object) -> None:
    output_path = os.environ.get("GITHUB_OUTPUT")
    if not output_path:
        return
    with open(output_path, "a", encoding="utf-8") as f:
        f.write(f"{name}={value}\n")


@cli.command()
def submit(
    workspace: Path | None = typer.Option(None, "--workspace", "-w", help="Repository root to scan"),
    pipeline_paths: str | None = typer.Option(
        None, "--pipeline-paths", help="Comma or newline separated glob patterns"
    ),
    resolve_templates: bool | None = typer.Option(
        None, "--resolve-templates/--no-resolve-templates", help="Follow template references"
    ),
    azure_devops_url: str | None = typer.Option(None, "--azure-devops-url", help="Organization URL"),
    azure_devops_token: str | None = typer.Option(None, "--azure-devops-token", help="Azure DevOps PAT"),
    token: str | None = typer.Option(None, "--token", help="GitHub token for submission"),
    template_token: str | None = typer.Option(
        None, "--template-token", help="GitHub token for external templates (defaults to --token)"
    ),
    repository: str | None = typer.Option(None, "--repository", help="Target repository (owner/repo)"),
    sha: str | None = typer.Option(None, "--sha", help="Commit SHA the snapshot describes"),
    ref: str | None = typer.Option(None, "--ref", help="Git ref the snapshot describes"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Discover tasks, resolve them and submit the dependency snapshot."""
    settings = _settings(
        workspace,
        verbose,
        pipeline_paths=pipeline_paths,
        resolve_templates=resolve_templates,
        azure_devops_url=azure_devops_url,
        azure_devops_token=azure_devops_token,
        github_token=token,
        template_token=template_token,
        repository=repository,
        sha=sha,
        ref=ref,
    )
    try:
        count = run_submission(settings)
    except PipedepsError as exc:
        raise _fail(exc) from exc

    _write_github_output("dependency-count", count)
    console.print(f"[green]✓ Submitted {count} dependencies[/green]")


@cli.command()
def snapshot(
    workspace: Path | None = typer.Option(None, "--workspace", "-w", help="Repository root to scan"),
    pipeline_paths: str | None = typer.Option(
        None, "--pipeline-paths", help="Comma or newline separated glob patterns"
    ),
    resolve_templates: bool | None = typer.Option(
        None, "--resolve-templates/--no-resolve-templates", help="Follow template references"
    ),
    azure_devops_url: str | None = typer.Option(None, "--azure-devops-url", help="Organization URL"),
    azure_devops_token: str | None = typer.Option(None, "--azure-devops-token", help="Azure DevOps PAT"),
    template_token: str | None = typer.Option(
        None, "--template-token", help="GitHub token for external templates"
    ),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write JSON here instead of stdout"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Build the dependency snapshot without submitting it."""
    settings = _settings(
        workspace,
        verbose,
        pipeline_paths=pipeline_paths,
        resolve_templates=resolve_templates,
        azure_devops_url=azure_devops_url,
        azure_devops_token=azure_devops_token,
        template_token=template_token,
    )
    try:
        result = generate_snapshot(settings)
    except PipedepsError as exc:
        raise _fail(exc) from exc

    if result is None:
        err_console.print("[yellow]No tasks found; nothing to write[/yellow]")
        return

    if output is None:
        typer.echo(dumps_snapshot(result), nl=False)
    else:
        write_snapshot(output, result)
        err_console.print(f"[green]✓ Wrote {count_dependencies(result)} dependencies to {output}[/green]")


@cli.command()
def inventory(
    workspace: Path | None = typer.Option(None, "--workspace", "-w", help="Repository root to scan"),
    pipeline_paths: str | None = typer.Option(
        None, "--pipeline-paths", help="Comma or newline separated glob patterns"
    ),
    resolve_templates: bool | None = typer.Option(
        None, "--resolve-templates/--no-resolve-templates", help="Follow template references"
    ),
    template_token: str | None = typer.Option(
        None, "--template-token", help="GitHub token for external templates"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """List task references found in the workspace (no catalog lookup)."""
    settings = _settings(
        workspace,
        verbose,
        pipeline_paths=pipeline_paths,
        resolve_templates=resolve_templates,
        template_token=template_token,
    )
    files = discover(settings)
    if not files:
        console.print("[yellow]No Azure Pipelines files found[/yellow]")
        return

    tasks, results = collect_tasks(settings, files, external_source=external_source_for(settings))

    table = Table(title=f"Task references ({len(tasks)})")
    table.add_column("Task")
    table.add_column("Version")
    table.add_column("Source")
    for task in tasks:
        table.add_row(task.identifier, task.version_spec or "-", task.source_file or "-")
    console.print(table)

    externals = sorted({t.key for result in results for t in result.external_templates})
    if externals:
        console.print("[cyan]External templates:[/cyan]")
        for key in externals:
            console.print(f"  - {key}")

    warnings = sum(len(result.warnings) for result in results)
    if warnings:
        console.print(f"[yellow]{warnings} warning(s) while walking templates[/yellow]")


@cli.command(name="catalog")
def catalog_cmd(
    workspace: Path | None = typer.Option(None, "--workspace", "-w", help="Directory holding config"),
    azure_devops_url: str | None = typer.Option(None, "--azure-devops-url", help="Organization URL"),
    azure_devops_token: str | None = typer.Option(None, "--azure-devops-token", help="Azure DevOps PAT"),
    repository_urls: bool = typer.Option(
        False, "--repository-urls", help="Look up extension source repositories on the marketplace"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """List the tasks installed in the Azure DevOps organization."""
    settings = _settings(
        workspace,
        verbose,
        azure_devops_url=azure_devops_url,
        azure_devops_token=azure_devops_token,
    )
    try:
        catalog = fetch_catalog(settings)
    except PipedepsError as exc:
        raise _fail(exc) from exc

    marketplace = MarketplaceClient(timeout_s=settings.timeout_s) if repository_urls else None

    table = Table(title=f"Installed tasks ({len(catalog)})")
    table.add_column("Name")
    table.add_column("Version")
    table.add_column("Canonical identifier")
    table.add_column("Built-in")
    if marketplace is not None:
        table.add_column("Repository")
    for task in catalog.tasks():
        row = [task.name, task.full_version, task.canonical_identifier, "yes" if task.is_builtin else "no"]
        if marketplace is not None:
            row.append(marketplace.repository_url_for(task) or "-")
        table.add_row(*row)
    console.print(table)


if __name__ == "__main__":
    cli()
