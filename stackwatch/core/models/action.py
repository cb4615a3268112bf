"""
Action and Receipt models — the contract between executor and adapters.

The executor turns each planned unit into an Action; the adapter that
handles it answers with a Receipt. Adapters report failure through the
Receipt, never by raising.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class ActionKind(StrEnum):
    """What the executor asks the orchestration tool to do with a unit."""

    DEPLOY = "deploy"
    REMOVE = "remove"


class Action(BaseModel):
    """A requested operation on a single unit."""

    id: str                         # <operation id>:<unit>:<kind>
    adapter: str                    # which adapter handles this
    kind: ActionKind
    unit: str
    params: dict[str, Any] = Field(default_factory=dict)


class Receipt(BaseModel):
    """Result of an adapter execution."""

    adapter: str
    action_id: str
    status: Literal["ok", "skipped", "failed"] = "ok"

    started_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    output: str = ""
    error: str | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @classmethod
    def success(cls, adapter: str, action_id: str, output: str = "", **kwargs: Any) -> Receipt:
        """Create a success receipt."""
        return cls(adapter=adapter, action_id=action_id, status="ok", output=output, **kwargs)

    @classmethod
    def failure(cls, adapter: str, action_id: str, error: str, **kwargs: Any) -> Receipt:
        """Create a failure receipt."""
        return cls(adapter=adapter, action_id=action_id, status="failed", error=error, **kwargs)

    @classmethod
    def skip(cls, adapter: str, action_id: str, reason: str = "", **kwargs: Any) -> Receipt:
        """Create a skip receipt (dry run)."""
        return cls(adapter=adapter, action_id=action_id, status="skipped", output=reason, **kwargs)
