"""
Configuration loader — settings from stackwatch.yml and the environment.

Settings are read once at startup. An optional YAML file provides the
base values; ``STACKWATCH_*`` environment variables override them. The
result is validated into a Pydantic ``Settings`` model.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path, PurePosixPath
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from stackwatch.core.persistence.audit import DEFAULT_LEDGER_FILE
from stackwatch.core.persistence.state_file import default_state_path

logger = logging.getLogger(__name__)

CONFIG_FILE = "stackwatch.yml"
ENV_PREFIX = "STACKWATCH_"

# Environment variable suffix → Settings field
_ENV_FIELDS = {
    "REPO_URL": "repo_url",
    "REPO_PATH": "repo_path",
    "BRANCH": "branch",
    "STACKS_DIR": "stacks_dir",
    "POLL_INTERVAL": "poll_interval",
    "STATE_FILE": "state_file",
    "DEPLOY_KEY": "deploy_key",
    "WEBHOOK_URL": "webhook_url",
    "RETRY_FAILED": "retry_failed",
    "GIT_TIMEOUT": "git_timeout",
    "ACTION_TIMEOUT": "action_timeout",
    "NOTIFY_TIMEOUT": "notify_timeout",
}


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""


def extract_repo_name(repo_url: str) -> str:
    """Repository name from an https or scp-style git URL.

    ``git@github.com:org/homelab.git`` and
    ``https://github.com/org/homelab`` both give ``homelab``.
    """
    url = repo_url.strip().rstrip("/")
    if url.endswith(".git"):
        url = url[: -len(".git")]
    if "@" in url and ":" in url and "://" not in url:
        url = url.rsplit(":", 1)[-1]
    return PurePosixPath(url).name


class Settings(BaseModel):
    """Process-wide configuration."""

    repo_url: str
    repo_path: Path | None = None          # default: /opt/<repo name>
    branch: str = "main"
    stacks_dir: str = ""                   # inventory root, relative to the repo
    poll_interval: float = Field(default=30.0, gt=0)
    state_file: Path | None = None         # default: beside the checkout
    deploy_key: Path | None = None
    webhook_url: str | None = None
    retry_failed: bool = True

    git_timeout: int = Field(default=120, gt=0)
    action_timeout: int = Field(default=600, gt=0)
    notify_timeout: float = Field(default=10.0, gt=0)

    @model_validator(mode="after")
    def _fill_defaults(self) -> Settings:
        if not self.repo_url.strip():
            raise ValueError("repo_url must not be empty")
        if self.repo_path is None:
            self.repo_path = Path("/opt") / extract_repo_name(self.repo_url)
        if self.state_file is None:
            self.state_file = default_state_path(self.repo_path)
        if ".." in PurePosixPath(self.stacks_dir.replace("\\", "/")).parts:
            raise ValueError("stacks_dir must stay inside the repository")
        if not self.webhook_url:
            self.webhook_url = None
        return self

    @property
    def stacks_root(self) -> Path:
        """Absolute inventory root."""
        assert self.repo_path is not None
        return self.repo_path / self.stacks_dir if self.stacks_dir else self.repo_path

    @property
    def ledger_file(self) -> Path:
        assert self.state_file is not None
        return self.state_file.parent / DEFAULT_LEDGER_FILE

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        if data.get("webhook_url"):
            data["webhook_url"] = "***"
        return data


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading config from %s", path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The YAML may wrap everything under a "stackwatch" key or be flat
    section = data.get("stackwatch", data)
    if not isinstance(section, dict):
        raise ConfigError(f"Expected a mapping under 'stackwatch' in {path}")
    return dict(section)


def _env_overrides(env: Mapping[str, str]) -> dict[str, str]:
    overrides = {}
    for suffix, field_name in _ENV_FIELDS.items():
        value = env.get(ENV_PREFIX + suffix)
        if value is not None and value != "":
            overrides[field_name] = value
    return overrides


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Return ``stackwatch.yml`` in ``start_dir`` (default: cwd), if present."""
    candidate = (start_dir or Path.cwd()) / CONFIG_FILE
    return candidate if candidate.is_file() else None


def load_settings(
    config_path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> Settings:
    """Load and validate settings.

    Args:
        config_path: Explicit YAML file. If None, ``stackwatch.yml`` in the
            working directory is used when present.
        env: Environment mapping (default: ``os.environ``).

    Returns:
        Validated Settings.

    Raises:
        ConfigError: If the file is unreadable or the settings are invalid.
    """
    env = os.environ if env is None else env
    if config_path is None:
        config_path = find_config_file()

    data: dict[str, Any] = _read_config_file(config_path) if config_path else {}
    data.update(_env_overrides(env))

    if not data.get("repo_url"):
        raise ConfigError(
            f"No repository configured. Set {ENV_PREFIX}REPO_URL or repo_url in {CONFIG_FILE}."
        )

    try:
        settings = Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    logger.debug("Settings loaded: repo=%s branch=%s", settings.repo_url, settings.branch)
    return settings
