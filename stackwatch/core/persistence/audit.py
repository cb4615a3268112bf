"""
Cycle ledger — append-only history of reconciliation cycles.

Every executed cycle appends one NDJSON line: which revision was
reconciled, the plan kind, and how many units succeeded or failed.
Entries are never modified or deleted. The ``status`` command reads the
tail of the ledger.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field

from stackwatch.core.engine.executor import CycleReport
from stackwatch.core.models.action import ActionKind

logger = logging.getLogger(__name__)

DEFAULT_LEDGER_FILE = "cycles.ndjson"


class AuditEntry(BaseModel):
    """A single ledger entry."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    operation_id: str = ""
    plan_kind: str = ""            # full, targeted
    revision: str | None = None

    # What happened
    deployed: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)

    # Results
    status: str = ""               # ok, partial, failed
    actions_total: int = 0
    actions_succeeded: int = 0
    actions_failed: int = 0

    errors: list[str] = Field(default_factory=list)

    @classmethod
    def from_report(cls, report: CycleReport, revision: str | None = None) -> AuditEntry:
        return cls(
            operation_id=report.operation_id,
            plan_kind=report.plan_kind,
            revision=revision,
            deployed=sorted(o.unit for o in report.by_action(ActionKind.DEPLOY)),
            removed=sorted(o.unit for o in report.by_action(ActionKind.REMOVE)),
            status=report.status,
            actions_total=report.total,
            actions_succeeded=report.succeeded,
            actions_failed=report.failed,
            errors=report.errors,
        )


class AuditWriter:
    """Append-only ledger writer.

    Each call to write() appends a single JSON line to the ledger file.
    The file is created if it doesn't exist.
    """

    def __init__(self, path: Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: AuditEntry) -> None:
        """Append an entry to the ledger.

        Raises:
            OSError: If the ledger cannot be written.
        """
        self._path.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False) + "\n"
        with self._path.open("a", encoding="utf-8") as f:
            f.write(line)
        logger.debug("Ledger entry written: %s", entry.operation_id)

    def read_all(self) -> list[AuditEntry]:
        """Read all entries, oldest first. Corrupt lines are skipped."""
        if not self._path.is_file():
            return []

        entries = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(AuditEntry.model_validate(json.loads(line)))
                    except Exception as e:
                        logger.warning("Skipping corrupt ledger entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read ledger %s: %s", self._path, e)

        return entries

    def read_recent(self, n: int = 20) -> list[AuditEntry]:
        """Read the most recent N entries."""
        return self.read_all()[-n:]
