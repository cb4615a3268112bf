"""
Status use case — what is on disk, what the baseline says, what ran last.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from stackwatch.core.config.loader import ConfigError, Settings, load_settings
from stackwatch.core.models.state import InventoryState
from stackwatch.core.models.unit import Unit
from stackwatch.core.persistence.audit import AuditEntry, AuditWriter
from stackwatch.core.persistence.state_file import load_state
from stackwatch.core.services.scanner import InventoryScanError, scan_units


@dataclass
class StatusResult:
    """Aggregated reconciler status."""

    settings: Settings | None = None
    state: InventoryState | None = None
    units: list[Unit] = field(default_factory=list)
    recent: list[AuditEntry] = field(default_factory=list)
    scan_error: str | None = None
    error: str | None = None

    @property
    def eligible(self) -> list[str]:
        return [u.name for u in self.units if u.eligible]

    @property
    def pending(self) -> list[str]:
        """Units on disk that are not in the baseline yet."""
        if self.state is None:
            return self.eligible
        return sorted(set(self.eligible) - self.state.deployed_units)

    def to_dict(self) -> dict:
        result: dict = {}
        if self.error:
            result["error"] = self.error
            return result

        if self.settings:
            result["repository"] = {
                "url": self.settings.repo_url,
                "path": str(self.settings.repo_path),
                "branch": self.settings.branch,
                "stacks_root": str(self.settings.stacks_root),
            }

        result["units"] = [
            {
                "name": u.name,
                "manifest": u.manifest,
                "eligible": u.eligible,
                "skip_reason": u.skip_reason,
            }
            for u in self.units
        ]
        if self.scan_error:
            result["scan_error"] = self.scan_error

        if self.state:
            result["state"] = self.state.model_dump(mode="json")
        result["pending"] = self.pending
        result["recent_cycles"] = [e.model_dump(mode="json") for e in self.recent]
        return result


def get_status(
    config_path: Path | None = None,
    recent: int = 5,
) -> StatusResult:
    """Load settings, scan the inventory root and read persisted state.

    A missing checkout is reported as a scan error rather than a failure,
    since the daemon may simply not have cloned yet.
    """
    result = StatusResult()

    try:
        settings = load_settings(config_path)
    except ConfigError as e:
        result.error = str(e)
        return result
    result.settings = settings

    try:
        result.units = scan_units(settings.stacks_root)
    except InventoryScanError as e:
        result.scan_error = str(e)

    assert settings.state_file is not None
    result.state = load_state(settings.state_file)
    result.recent = AuditWriter(settings.ledger_file).read_recent(recent)
    return result
