"""
Change set resolver — which units a revision diff touches.

Maps repository-relative changed paths onto unit names. The first path
segment names the unit; a leading ``./`` is skipped, and any path that
starts with ``..`` is discarded outright, whatever follows it.

New units (on disk, not in the baseline) are always affected. Units in
the baseline that are no longer on disk are deleted.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Set
from dataclasses import dataclass

logger = logging.getLogger(__name__)

PARENT_SEGMENT = ".."
CURRENT_SEGMENT = "."


@dataclass(frozen=True)
class ChangeResolution:
    """Units touched by a change set."""

    affected: frozenset[str] = frozenset()
    deleted: frozenset[str] = frozenset()
    new: frozenset[str] = frozenset()           # subset of affected


def _split(path: str) -> list[str]:
    return path.replace("\\", "/").split("/")


def unit_for_path(path: str) -> str | None:
    """Return the candidate unit name for one changed path, or None.

    None means the path can never be attributed to a unit: it escapes the
    root, or it names the root itself.
    """
    segments = _split(path)
    candidate = segments[0]

    if candidate == PARENT_SEGMENT:
        logger.warning("Skipping potentially malicious path: %s", path)
        return None

    if candidate == CURRENT_SEGMENT:
        if len(segments) < 2:
            return None
        candidate = segments[1]

    return candidate or None


def resolve_change_set(
    changed_paths: Iterable[str],
    current: Set[str],
    persisted: Set[str],
) -> ChangeResolution:
    """Resolve changed paths against the current and persisted inventories.

    Args:
        changed_paths: Repository-relative paths from a revision diff.
        current: Eligible unit names scanned this cycle.
        persisted: Unit names in the baseline.

    Returns:
        ChangeResolution. ``affected`` is a subset of ``current``;
        ``deleted`` is exactly ``persisted - current``.
    """
    affected: set[str] = set()

    for path in changed_paths:
        candidate = unit_for_path(path)
        if candidate is not None and candidate in current:
            affected.add(candidate)

    new = frozenset(current) - frozenset(persisted)
    for name in sorted(new):
        logger.info("New stack detected: %s", name)
    affected |= new

    deleted = frozenset(persisted) - frozenset(current)
    for name in sorted(deleted):
        logger.info("Deleted stack detected: %s", name)

    logger.info("Affected stacks: %s", ", ".join(sorted(affected)) or "(none)")
    return ChangeResolution(
        affected=frozenset(affected),
        deleted=deleted,
        new=new,
    )


def rebase_paths(paths: Iterable[str], prefix: str) -> list[str]:
    """Re-root repository-relative paths onto a subdirectory.

    Used when the inventory root is ``<repo>/<prefix>``. Paths outside the
    prefix are dropped. The remainder is returned untouched, so
    ``prefix/../x`` becomes ``../x`` and is later discarded by the resolver.
    """
    prefix = prefix.replace("\\", "/").strip("/")
    if prefix in ("", CURRENT_SEGMENT):
        return list(paths)

    head = prefix + "/"
    rebased = []
    for path in paths:
        normalized = path.replace("\\", "/")
        if normalized.startswith("./"):
            normalized = normalized[2:]
        if normalized.startswith(head):
            rebased.append(normalized[len(head):])
    return rebased
