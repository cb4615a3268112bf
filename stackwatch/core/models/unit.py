"""
Unit model — one deployable stack directory.

A unit is recomputed from directory state on every scan; it has no
lifecycle of its own beyond what is on disk.
"""

from __future__ import annotations

from pydantic import BaseModel

# Accepted manifest filenames, in priority order. First match wins.
MANIFEST_FILENAMES = (
    "docker-compose.yml",
    "docker-compose.yaml",
    "compose.yml",
    "compose.yaml",
)

# A file with this name inside a unit directory excludes it.
IGNORE_MARKER = "ignore"

# Directories whose name starts with this prefix are never units.
HIDDEN_PREFIX = "."


class Unit(BaseModel):
    """A candidate stack directory and the flags that decide eligibility."""

    name: str
    path: str                       # absolute, under the inventory root
    manifest: str | None = None     # first matching manifest filename
    ignored: bool = False           # ignore marker present

    @property
    def has_manifest(self) -> bool:
        return self.manifest is not None

    @property
    def eligible(self) -> bool:
        """Whether the unit belongs in the inventory."""
        return self.has_manifest and not self.ignored

    @property
    def skip_reason(self) -> str:
        """Why an ineligible unit is excluded ('' if eligible)."""
        if self.ignored:
            return "ignore file present"
        if not self.has_manifest:
            return "no compose file found"
        return ""
