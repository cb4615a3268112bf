"""
Adapter registry — central dispatch for unit actions.

The executor never calls adapters directly: it hands each Action to the
registry, which resolves the adapter (or the mock), validates, executes,
and always returns a Receipt.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from stackwatch.adapters.base import Adapter, ExecutionContext
from stackwatch.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Registry and dispatcher for adapters.

    In mock mode every action succeeds without touching external tools.
    """

    def __init__(self, mock_mode: bool = False):
        self._adapters: dict[str, Adapter] = {}
        self._mock_mode = mock_mode

    @property
    def mock_mode(self) -> bool:
        return self._mock_mode

    def register(self, adapter: Adapter) -> None:
        name = adapter.name
        if name in self._adapters:
            logger.warning("Overwriting existing adapter: %s", name)
        self._adapters[name] = adapter
        logger.debug("Registered adapter: %s", name)

    def adapter_status(self) -> dict[str, dict[str, Any]]:
        """Availability of every registered adapter."""
        status = {}
        for name, adapter in self._adapters.items():
            try:
                available = adapter.is_available()
            except Exception:
                available = False
            status[name] = {
                "name": name,
                "available": available,
                "type": adapter.__class__.__name__,
            }
        return status

    def execute_action(
        self,
        action: Action,
        stacks_root: str = ".",
        dry_run: bool = False,
    ) -> Receipt:
        """Execute an action through the appropriate adapter.

        Resolves the adapter, validates, then executes (or stops short on
        a dry run). Never raises: a missing adapter, a validation error,
        or an adapter that raises all come back as a failed Receipt.
        """
        start_time = time.monotonic()

        context = ExecutionContext(
            action=action,
            stacks_root=stacks_root,
            dry_run=dry_run,
            params=action.params,
        )

        if self._mock_mode:
            return Receipt.success(
                adapter=action.adapter,
                action_id=action.id,
                output=f"[mock] {action.kind} {action.unit}",
                metadata={"mock": True, "dry_run": dry_run},
            )

        adapter = self._adapters.get(action.adapter)
        if adapter is None:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"No adapter registered for '{action.adapter}'",
            )

        try:
            is_valid, error_msg = adapter.validate(context)
        except Exception as e:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Validation error: {e}",
            )
        if not is_valid:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Validation failed: {error_msg}",
            )

        if dry_run:
            return Receipt.skip(
                adapter=action.adapter,
                action_id=action.id,
                reason=f"[dry-run] Would {action.kind} {action.unit}",
                metadata={"dry_run": True},
            )

        try:
            receipt = adapter.execute(context)
        except Exception as e:
            logger.error("Adapter %s raised during execution: %s", action.adapter, e)
            receipt = Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Unexpected error: {e}",
            )

        receipt.duration_ms = int((time.monotonic() - start_time) * 1000)
        return receipt
