"""
Outcome model — per-unit result of one reconciliation action.

Outcomes are tagged with the action kind, so a unit that is torn down
and a unit that is deployed under the same name never collide.
"""

from __future__ import annotations

from pydantic import BaseModel

from stackwatch.core.models.action import ActionKind, Receipt


class Outcome(BaseModel):
    """What happened when the executor acted on one unit."""

    unit: str
    action: ActionKind
    ok: bool
    error: str | None = None
    duration_ms: int = 0
    skipped: bool = False           # dry run: validated, not executed

    @property
    def key(self) -> tuple[str, ActionKind]:
        return (self.unit, self.action)

    @classmethod
    def from_receipt(cls, unit: str, action: ActionKind, receipt: Receipt) -> Outcome:
        """Translate an adapter receipt into an outcome."""
        return cls(
            unit=unit,
            action=action,
            ok=not receipt.failed,
            error=receipt.error if receipt.failed else None,
            duration_ms=receipt.duration_ms,
            skipped=receipt.status == "skipped",
        )
