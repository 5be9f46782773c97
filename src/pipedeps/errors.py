"""Exception hierarchy for pipedeps."""

from __future__ import annotations


class PipedepsError(Exception):
    """Base class for errors that abort a pipedeps run."""


class ConfigError(PipedepsError, ValueError):
    """Mandatory configuration is missing or malformed."""


class CatalogError(PipedepsError, RuntimeError):
    """The task catalog could not be fetched."""


class SubmissionError(PipedepsError, RuntimeError):
    """The dependency snapshot could not be submitted."""


class ParseError(PipedepsError, ValueError):
    """A pipeline document is not well-formed YAML.

    Args:
        path: File path (or virtual label) of the offending document
        cause: Underlying exception
        line: 1-based line of the YAML problem, when known
    """

    def __init__(self, path: str, cause: BaseException, line: int | None = None) -> None:
        self.path = path
        self.cause = cause
        self.line = line
        location = f" at line {line}" if line else ""
        super().__init__(f"Failed to parse pipeline file {path}{location}: {cause}")
