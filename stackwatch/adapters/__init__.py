"""Adapters — bindings to the external tools stackwatch drives.

Public re-exports for convenient access.
"""

from stackwatch.adapters.base import Adapter, ExecutionContext
from stackwatch.adapters.containers.compose import ComposeAdapter
from stackwatch.adapters.mock import MockAdapter
from stackwatch.adapters.registry import AdapterRegistry

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ComposeAdapter",
    "ExecutionContext",
    "MockAdapter",
]
