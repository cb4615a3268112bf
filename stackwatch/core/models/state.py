"""
InventoryState — the durable baseline.

This is the single record that survives restarts: which units were
considered deployed after the last executed cycle, which of them failed,
and the revision that cycle reconciled. It is serialized to JSON by
``stackwatch.core.persistence.state_file``.

The state is treated as a value: ``advance()`` returns the next baseline
instead of mutating the current one, so the planner always sees the
baseline exactly as it was when the cycle started.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field, field_serializer

from stackwatch.core.models.action import ActionKind

if TYPE_CHECKING:
    from stackwatch.core.engine.executor import CycleReport


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class InventoryState(BaseModel):
    """Root state model, serialized to the state file."""

    # ── Schema ───────────────────────────────────────────────────
    schema_version: int = 1

    # ── Baseline ─────────────────────────────────────────────────
    deployed_units: set[str] = Field(default_factory=set)
    failed_units: dict[str, ActionKind] = Field(default_factory=dict)

    # ── Provenance ───────────────────────────────────────────────
    last_revision: str | None = None
    updated_at: str = Field(default_factory=_now_iso)

    @field_serializer("deployed_units")
    def _sorted_units(self, units: set[str]) -> list[str]:
        return sorted(units)

    @property
    def baseline(self) -> frozenset[str]:
        """The persisted inventory as the planner consumes it."""
        return frozenset(self.deployed_units)

    def units_to_retry(self) -> frozenset[str]:
        """Units whose last deploy failed."""
        return frozenset(
            name for name, kind in self.failed_units.items() if kind == ActionKind.DEPLOY
        )

    def touch(self) -> None:
        """Update the updated_at timestamp."""
        self.updated_at = _now_iso()

    def advance(
        self,
        current: Iterable[str],
        report: CycleReport,
        revision: str | None = None,
        retry_failed: bool = True,
    ) -> InventoryState:
        """Return the baseline that follows a cycle.

        The baseline always moves to ``current``, whatever the per-unit
        results were. With ``retry_failed`` set, units whose teardown
        failed stay in the baseline so the next cycle schedules their
        removal again; failed deploys are recorded in ``failed_units``
        and picked up through ``units_to_retry()``.
        """
        deployed = set(current)
        failed: dict[str, ActionKind] = {}

        for outcome in report.outcomes.values():
            if outcome.ok:
                continue
            failed[outcome.unit] = outcome.action
            if retry_failed and outcome.action == ActionKind.REMOVE:
                deployed.add(outcome.unit)

        return InventoryState(
            schema_version=self.schema_version,
            deployed_units=deployed,
            failed_units=failed,
            last_revision=revision if revision is not None else self.last_revision,
        )
