"""
Config check use case — validate settings and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from stackwatch.adapters.vcs.git import GitRepository
from stackwatch.core.config.loader import ConfigError, Settings, find_config_file, load_settings
from stackwatch.core.use_cases.reconcile import build_registry


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    settings: Settings | None = None
    config_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    adapters: dict[str, dict] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "settings": self.settings.to_dict() if self.settings else None,
            "adapters": self.adapters,
        }


def check_config(config_path: Path | None = None) -> ConfigCheckResult:
    """Validate configuration and look for problems that would bite at runtime.

    Args:
        config_path: Optional explicit path to stackwatch.yml.

    Returns:
        ConfigCheckResult with validation status and any issues.
    """
    result = ConfigCheckResult()
    result.config_path = config_path or find_config_file()

    try:
        settings = load_settings(config_path)
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    result.settings = settings
    result.valid = True

    if settings.deploy_key is not None and not settings.deploy_key.is_file():
        result.warnings.append(f"Deploy key not found: {settings.deploy_key}")

    assert settings.repo_path is not None
    if not GitRepository(settings.repo_path, settings.repo_url).is_available():
        result.warnings.append("git not found on PATH.")

    result.adapters = build_registry(settings).adapter_status()
    for name, status in result.adapters.items():
        if not status["available"]:
            result.warnings.append(f"Adapter '{name}' ({status['type']}) is not available.")

    if settings.webhook_url is None:
        result.warnings.append("No webhook URL configured. Notifications are disabled.")

    if not settings.retry_failed:
        result.warnings.append(
            "retry_failed is off: a failed stack is only retried when its files change."
        )

    return result
