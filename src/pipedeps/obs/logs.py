"""Logging setup for the CLI.

Console output goes through rich. Inside GitHub Actions, warnings and
errors are additionally emitted as workflow commands so they surface as
annotations on the run.
"""

from __future__ import annotations

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "pipedeps"

_WORKFLOW_COMMANDS = {
    logging.WARNING: "warning",
    logging.ERROR: "error",
    logging.CRITICAL: "error",
}


def in_github_actions() -> bool:
    return os.environ.get("GITHUB_ACTIONS", "").lower() == "true"


def escape_workflow_data(message: str) -> str:
    """Escape a message for use in a ``::command::`` line."""
    return message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


class GitHubActionsHandler(logging.Handler):
    """Emits ``::warning::`` / ``::error::`` workflow commands."""

    def __init__(self, stream=None) -> None:
        super().__init__(level=logging.WARNING)
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        command = _WORKFLOW_COMMANDS.get(record.levelno)
        if command is None:
            return
        try:
            line = f"::{command}::{escape_workflow_data(record.getMessage())}"
            print(line, file=self.stream, flush=True)
        except Exception:
            self.handleError(record)


def configure_logging(
    verbose: bool = False,
    *,
    console: Console | None = None,
    github_actions: bool | None = None,
) -> logging.Logger:
    """Install handlers on the package logger.

    Args:
        verbose: Log at DEBUG instead of INFO
        console: Rich console for the console handler (defaults to stderr)
        github_actions: Force workflow-command output on/off; auto-detected when None

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False

    rich_handler = RichHandler(
        console=console or Console(stderr=True),
        show_time=False,
        show_path=verbose,
        markup=False,
    )
    rich_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(rich_handler)

    if in_github_actions() if github_actions is None else github_actions:
        logger.addHandler(GitHubActionsHandler())

    return logger
