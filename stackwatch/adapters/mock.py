"""
Mock adapter — test double for the compose adapter.

Succeeds by default; individual units can be scripted to fail, and
every call is logged for assertions.
"""

from __future__ import annotations

from stackwatch.adapters.base import Adapter, ExecutionContext
from stackwatch.core.models.action import ActionKind, Receipt


class MockAdapter(Adapter):
    """Scriptable stand-in for an orchestration adapter."""

    def __init__(self, adapter_name: str = "compose", available: bool = True):
        self._name = adapter_name
        self._available = available
        self._failures: dict[tuple[str, ActionKind | None], str] = {}
        self._raises: set[str] = set()
        self._call_log: list[ExecutionContext] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[ExecutionContext]:
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    def calls_for(self, kind: ActionKind) -> list[str]:
        """Unit names acted on with ``kind``, in call order."""
        return [c.action.unit for c in self._call_log if c.action.kind == kind]

    def is_available(self) -> bool:
        return self._available

    def set_failure(
        self,
        unit: str,
        error: str = "Mock failure",
        kind: ActionKind | None = None,
    ) -> None:
        """Make actions on ``unit`` fail (only ``kind`` actions if given)."""
        self._failures[(unit, kind)] = error

    def set_raises(self, unit: str) -> None:
        """Make actions on ``unit`` raise, to exercise registry isolation."""
        self._raises.add(unit)

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        self._call_log.append(context)
        action = context.action

        if action.unit in self._raises:
            raise RuntimeError(f"mock adapter exploded on {action.unit}")

        error = self._failures.get((action.unit, action.kind)) or self._failures.get(
            (action.unit, None)
        )
        if error:
            return Receipt.failure(adapter=self._name, action_id=action.id, error=error)

        return Receipt.success(
            adapter=self._name,
            action_id=action.id,
            output=f"[mock] {action.kind} {action.unit}",
            metadata={"mock": True},
        )

    def reset(self) -> None:
        self._call_log.clear()
        self._failures.clear()
        self._raises.clear()
