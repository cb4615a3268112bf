"""
Adapter base — the protocol contract between executor and tools.

The executor only talks to orchestration tools through this protocol,
never directly. Each adapter acts on exactly one unit per call.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from stackwatch.core.models.action import Action, Receipt


class ExecutionContext(BaseModel):
    """Everything an adapter needs to act on one unit."""

    action: Action
    stacks_root: str = "."
    dry_run: bool = False
    params: dict[str, Any] = Field(default_factory=dict)

    @property
    def unit(self) -> str:
        return self.action.unit

    @property
    def working_dir(self) -> str:
        """The unit's directory under the inventory root."""
        return str(Path(self.stacks_root) / self.action.unit)

    @property
    def unit_dir_exists(self) -> bool:
        return Path(self.working_dir).is_dir()


class Adapter(ABC):
    """Abstract base class for all adapters.

    Adapters perform external side effects and return receipts.
    They never raise; failures are captured in the Receipt.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g., 'compose')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the underlying tool is installed. Fast, never raises."""

    @abstractmethod
    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        """Validate that the action can be executed.

        Returns:
            (is_valid, error_message). error_message is empty if valid.
        """

    @abstractmethod
    def execute(self, context: ExecutionContext) -> Receipt:
        """Execute the action and return a receipt. Must not raise."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
