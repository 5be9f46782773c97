"""Run configuration.

Settings are layered, lowest precedence first:

1. ``.pipedeps.toml`` (preferred) or ``.pipedeps.json`` in the workspace,
   either at top level or under a ``[pipedeps]`` table
2. Environment: GitHub Actions ``INPUT_*`` variables, ``GITHUB_*`` context
   variables and ``AZURE_DEVOPS_*``
3. Explicit overrides (CLI options)
"""

from __future__ import annotations

import json
import os
import tomllib
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from pipedeps.errors import ConfigError
from pipedeps.pipeline.resolver import DEFAULT_MANIFEST_PATH
from pipedeps.sources.http import DEFAULT_TIMEOUT_S

CONFIG_FILENAMES = (".pipedeps.toml", ".pipedeps.json")
DEFAULT_JOB_ID = "dependency-submission"
PULL_REQUEST_EVENTS = frozenset({"pull_request", "pull_request_target"})

# field -> environment variables, first non-empty wins
ENV_VARS: dict[str, tuple[str, ...]] = {
    "github_token": ("INPUT_TOKEN", "GITHUB_TOKEN"),
    "template_token": ("INPUT_GITHUB-TOKEN", "INPUT_GITHUB_TOKEN"),
    "repository": ("INPUT_REPOSITORY", "GITHUB_REPOSITORY"),
    "azure_devops_url": ("INPUT_AZURE-DEVOPS-URL", "INPUT_AZURE_DEVOPS_URL", "AZURE_DEVOPS_URL"),
    "azure_devops_token": ("INPUT_AZURE-DEVOPS-TOKEN", "INPUT_AZURE_DEVOPS_TOKEN", "AZURE_DEVOPS_TOKEN"),
    "pipeline_paths": ("INPUT_PIPELINE-PATHS", "INPUT_PIPELINE_PATHS"),
    "resolve_templates": ("INPUT_RESOLVE-TEMPLATES", "INPUT_RESOLVE_TEMPLATES"),
    "job_id": ("GITHUB_JOB",),
}

_TRUE = frozenset({"true", "yes", "1", "on"})
_FALSE = frozenset({"false", "no", "0", "off"})


@dataclass(frozen=True)
class Settings:
    """Resolved configuration for one run."""

    workspace: Path
    github_token: str | None = None
    template_token: str | None = None
    repository: str | None = None
    azure_devops_url: str | None = None
    azure_devops_token: str | None = None
    pipeline_paths: str | None = None
    resolve_templates: bool = True
    sha: str | None = None
    ref: str | None = None
    job_id: str = DEFAULT_JOB_ID
    manifest_path: str = DEFAULT_MANIFEST_PATH
    timeout_s: float = DEFAULT_TIMEOUT_S

    @property
    def external_token(self) -> str | None:
        """Token for external template repositories."""
        return self.template_token or self.github_token

    def require(self, *names: str) -> None:
        """Raise ConfigError naming every unset mandatory field."""
        missing = [name for name in names if not getattr(self, name)]
        if missing:
            raise ConfigError(f"Missing required configuration: {', '.join(missing)}")


def parse_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigError(f"Invalid boolean for {name}: {value!r} (expected true or false)")


def load_config_file(workspace: Path) -> dict[str, Any]:
    """Load ``.pipedeps.toml`` or ``.pipedeps.json`` from the workspace.

    Returns:
        Normalized key/value mapping, empty when no file exists

    Raises:
        ConfigError: If the config file is malformed
    """
    toml_path = workspace / CONFIG_FILENAMES[0]
    if toml_path.exists():
        try:
            with open(toml_path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Malformed TOML config at {toml_path}: {e}") from e
        return _normalize_file_config(data, toml_path)

    json_path = workspace / CONFIG_FILENAMES[1]
    if json_path.exists():
        try:
            with open(json_path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Malformed JSON config at {json_path}: {e}") from e
        return _normalize_file_config(data, json_path)

    return {}


def resolve_commit(env: dict[str, str]) -> tuple[str | None, str | None]:
    """Return the (sha, ref) the snapshot describes.

    Pull request events report the merge commit in ``GITHUB_SHA``; the
    snapshot belongs to the PR head, read from the event payload.
    """
    sha = env.get("GITHUB_SHA") or None
    ref = env.get("GITHUB_REF") or None

    if env.get("GITHUB_EVENT_NAME") in PULL_REQUEST_EVENTS and env.get("GITHUB_EVENT_PATH"):
        try:
            event = json.loads(Path(env["GITHUB_EVENT_PATH"]).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Cannot read pull request event payload: {e}") from e
        head = (event.get("pull_request") or {}).get("head") or {}
        if head.get("sha"):
            sha = head["sha"]
        if head.get("ref"):
            ref = f"refs/heads/{head['ref']}"

    return sha, ref


def load_settings(
    workspace: Path | None = None,
    *,
    env: dict[str, str] | None = None,
    **overrides: Any,
) -> Settings:
    """Build Settings from config file, environment and explicit overrides.

    Args:
        workspace: Workspace root; defaults to ``GITHUB_WORKSPACE`` or the CWD
        env: Environment mapping (defaults to ``os.environ``)
        **overrides: Field values that win over every other source; None is ignored

    Raises:
        ConfigError: If a config file or value is malformed
    """
    env = dict(os.environ) if env is None else env
    root = Path(workspace or env.get("GITHUB_WORKSPACE") or Path.cwd()).resolve()

    values: dict[str, Any] = load_config_file(root)

    for name, variables in ENV_VARS.items():
        for variable in variables:
            if env.get(variable):
                values[name] = env[variable]
                break

    sha, ref = resolve_commit(env)
    if sha:
        values["sha"] = sha
    if ref:
        values["ref"] = ref

    known = {f.name for f in fields(Settings)} - {"workspace"}
    unknown = set(overrides) - known - {"workspace"}
    if unknown:
        raise TypeError(f"Unknown setting(s): {sorted(unknown)}")
    values.update({k: v for k, v in overrides.items() if v is not None and k in known})

    settings = Settings(workspace=root)
    coerced: dict[str, Any] = {}
    for name, value in values.items():
        if name not in known:
            continue
        if name == "resolve_templates":
            coerced[name] = parse_bool(value, name)
        elif name == "timeout_s":
            try:
                coerced[name] = float(value)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"Invalid timeout_s: {value!r}") from e
        else:
            coerced[name] = str(value)
    return replace(settings, **coerced)


def _normalize_file_config(data: Any, path: Path) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid config structure in {path}: expected a table/object")
    section = data.get("pipedeps", data)
    if not isinstance(section, dict):
        raise ConfigError(f"Invalid config structure in {path}: 'pipedeps' must be a table")
    return {str(key).replace("-", "_"): value for key, value in section.items()}
