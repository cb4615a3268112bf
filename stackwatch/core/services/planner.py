"""
Reconciliation planner — decide what each cycle deploys and removes.

Two plan kinds:

    full      every current unit deploys. Used on the first cycle after
              acquiring repository content, and whenever the diff is
              unavailable.
    targeted  only units touched by the change set (plus new ones) deploy.

Removal is identical in both kinds: whatever is in the baseline but no
longer on disk is torn down.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence, Set
from dataclasses import dataclass, field
from enum import StrEnum

from stackwatch.core.services.change_set import resolve_change_set

logger = logging.getLogger(__name__)


class PlanKind(StrEnum):
    FULL = "full"
    TARGETED = "targeted"


class PlanError(ValueError):
    """Raised when a plan would break its own invariants."""


@dataclass(frozen=True)
class ReconciliationPlan:
    """The units to bring up and tear down in one cycle."""

    kind: PlanKind
    current: frozenset[str] = frozenset()
    persisted: frozenset[str] = frozenset()
    to_deploy: frozenset[str] = frozenset()
    to_remove: frozenset[str] = frozenset()
    reasons: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.to_deploy <= self.current:
            raise PlanError(
                f"Cannot deploy units not on disk: {sorted(self.to_deploy - self.current)}"
            )
        if not self.to_remove <= self.persisted - self.current:
            raise PlanError(
                "Can only remove units that were deployed and are gone: "
                f"{sorted(self.to_remove - (self.persisted - self.current))}"
            )

    @property
    def empty(self) -> bool:
        return not self.to_deploy and not self.to_remove

    @property
    def total_actions(self) -> int:
        return len(self.to_deploy) + len(self.to_remove)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "to_deploy": sorted(self.to_deploy),
            "to_remove": sorted(self.to_remove),
            "reasons": dict(sorted(self.reasons.items())),
        }


def build_plan(
    changed_paths: Sequence[str] | None,
    current: Set[str],
    persisted: Set[str],
    *,
    force_full: bool = False,
    retry_units: Set[str] = frozenset(),
) -> ReconciliationPlan:
    """Build the plan for one reconciliation cycle.

    Args:
        changed_paths: Paths changed between the reconciled revision and
            the new one, relative to the inventory root. None when the diff
            could not be computed.
        current: Eligible units on disk.
        persisted: Units in the baseline.
        force_full: Deploy everything regardless of the change set.
        retry_units: Units whose last deploy failed; redeployed if still
            on disk.

    Returns:
        ReconciliationPlan.
    """
    current = frozenset(current)
    persisted = frozenset(persisted)
    reasons: dict[str, str] = {}

    full = force_full or changed_paths is None
    if full:
        kind = PlanKind.FULL
        to_deploy = set(current)
        for name in current:
            reasons[name] = "full deploy"
        deleted = persisted - current
        if force_full:
            logger.info("Full plan: first cycle with repository content")
        else:
            logger.warning("Changed files unavailable, deploying all stacks")
    else:
        kind = PlanKind.TARGETED
        resolution = resolve_change_set(changed_paths, current, persisted)
        to_deploy = set(resolution.affected)
        for name in resolution.affected:
            reasons[name] = "new stack" if name in resolution.new else "files changed"
        deleted = resolution.deleted

    for name in sorted((frozenset(retry_units) & current) - to_deploy):
        logger.info("Retrying stack that failed last cycle: %s", name)
        to_deploy.add(name)
        reasons[name] = "retry after failure"

    for name in deleted:
        reasons[name] = "removed from repository"

    return ReconciliationPlan(
        kind=kind,
        current=current,
        persisted=persisted,
        to_deploy=frozenset(to_deploy),
        to_remove=frozenset(deleted),
        reasons=reasons,
    )
