"""
Engine executor — apply a reconciliation plan, one unit at a time.

Flow:
    plan → build actions → execute through registry → collect outcomes

Every unit in the plan gets exactly one action and exactly one outcome.
A failing unit never stops the batch, and nothing already applied is
rolled back.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime

from stackwatch.adapters.registry import AdapterRegistry
from stackwatch.core.models.action import Action, ActionKind
from stackwatch.core.models.outcome import Outcome
from stackwatch.core.services.planner import ReconciliationPlan

logger = logging.getLogger(__name__)

COMPOSE_ADAPTER = "compose"

_OPERATIONS = {
    ActionKind.DEPLOY: "up",
    ActionKind.REMOVE: "down",
}


class DuplicateOutcomeError(ValueError):
    """Raised when a unit/action pair is recorded twice in one cycle."""


@dataclass
class CycleReport:
    """Outcomes of one reconciliation cycle, keyed by (unit, action)."""

    operation_id: str = ""
    plan_kind: str = ""
    outcomes: dict[tuple[str, ActionKind], Outcome] = field(default_factory=dict)

    def record(self, outcome: Outcome) -> None:
        if outcome.key in self.outcomes:
            raise DuplicateOutcomeError(f"Outcome already recorded for {outcome.unit} ({outcome.action})")
        self.outcomes[outcome.key] = outcome

    def get(self, unit: str, action: ActionKind) -> Outcome | None:
        return self.outcomes.get((unit, action))

    def by_action(self, action: ActionKind) -> list[Outcome]:
        return [o for o in self.outcomes.values() if o.action == action]

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes.values() if o.ok and not o.skipped)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes.values() if not o.ok)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes.values() if o.skipped)

    @property
    def all_ok(self) -> bool:
        return self.failed == 0

    @property
    def errors(self) -> list[str]:
        return [
            f"{o.unit} ({o.action}): {o.error}"
            for o in self.outcomes.values()
            if not o.ok
        ]

    @property
    def status(self) -> str:
        if self.failed == 0:
            return "ok"
        if self.failed < self.total:
            return "partial"
        return "failed"

    def to_dict(self) -> dict:
        return {
            "operation_id": self.operation_id,
            "plan_kind": self.plan_kind,
            "status": self.status,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "outcomes": [
                o.model_dump(mode="json")
                for _, o in sorted(self.outcomes.items())
            ],
        }


def build_action(unit: str, kind: ActionKind, operation_id: str) -> Action:
    """Create the compose action for one unit."""
    return Action(
        id=f"{operation_id}:{unit}:{kind}",
        adapter=COMPOSE_ADAPTER,
        kind=kind,
        unit=unit,
        params={"operation": _OPERATIONS[kind]},
    )


def apply_plan(
    plan: ReconciliationPlan,
    registry: AdapterRegistry,
    stacks_root: str,
    operation_id: str | None = None,
    dry_run: bool = False,
) -> CycleReport:
    """Deploy every unit in ``plan.to_deploy`` and tear down every unit in
    ``plan.to_remove``.

    Args:
        plan: The cycle's plan.
        registry: Adapter registry for dispatch.
        stacks_root: Inventory root; unit directories live directly under it.
        operation_id: Identifier for the cycle (generated if omitted).
        dry_run: Validate but don't execute.

    Returns:
        CycleReport with one outcome per planned unit.
    """
    report = CycleReport(
        operation_id=operation_id or generate_operation_id(),
        plan_kind=str(plan.kind),
    )

    batches = (
        (ActionKind.DEPLOY, sorted(plan.to_deploy)),
        (ActionKind.REMOVE, sorted(plan.to_remove)),
    )
    for kind, units in batches:
        for unit in units:
            if kind == ActionKind.DEPLOY:
                logger.info("Deploying stack: %s", unit)
            else:
                logger.info("Stack %s was deleted, running docker compose down...", unit)

            action = build_action(unit, kind, report.operation_id)
            receipt = registry.execute_action(action, stacks_root=stacks_root, dry_run=dry_run)
            outcome = Outcome.from_receipt(unit, kind, receipt)
            report.record(outcome)

            status_marker = "✓" if outcome.ok and not outcome.skipped else "✗" if not outcome.ok else "⊘"
            if outcome.ok:
                logger.info("%s %s %s (%dms)", status_marker, kind, unit, outcome.duration_ms)
            else:
                logger.error("%s %s %s failed: %s", status_marker, kind, unit, outcome.error)

    return report


def generate_operation_id() -> str:
    """Generate a unique identifier for a cycle."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"cycle-{now}-{short}"
