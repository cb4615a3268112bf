"""
Domain models — Pydantic types for the reconciler.

All models are re-exported here for convenient access:

    from stackwatch.core.models import Unit, Action, Receipt, Outcome, InventoryState
"""

from stackwatch.core.models.action import Action, ActionKind, Receipt
from stackwatch.core.models.outcome import Outcome
from stackwatch.core.models.state import InventoryState
from stackwatch.core.models.unit import (
    HIDDEN_PREFIX,
    IGNORE_MARKER,
    MANIFEST_FILENAMES,
    Unit,
)

__all__ = [
    # action.py
    "Action",
    "ActionKind",
    "Receipt",
    # unit.py
    "HIDDEN_PREFIX",
    "IGNORE_MARKER",
    "MANIFEST_FILENAMES",
    "Unit",
    # outcome.py
    "Outcome",
    # state.py
    "InventoryState",
]
