"""
Unit inventory scanner — which stack directories exist right now.

Looks only at the immediate children of the inventory root. A child is a
unit when it holds a compose manifest and no ignore marker; both checks
are existence-only, file contents are never read.
"""

from __future__ import annotations

import logging
from pathlib import Path

from stackwatch.core.models.unit import (
    HIDDEN_PREFIX,
    IGNORE_MARKER,
    MANIFEST_FILENAMES,
    Unit,
)

logger = logging.getLogger(__name__)


class InventoryScanError(Exception):
    """Raised when the inventory root cannot be listed.

    Distinct from an empty inventory: callers must abort the cycle
    rather than treat every deployed unit as deleted.
    """


def find_manifest(unit_dir: Path) -> str | None:
    """Return the first accepted manifest filename present in ``unit_dir``."""
    for filename in MANIFEST_FILENAMES:
        if (unit_dir / filename).exists():
            return filename
    return None


def scan_units(root: Path) -> list[Unit]:
    """List every candidate unit directory under ``root``, sorted by name.

    Hidden directories and plain files are not candidates. Ineligible
    directories are included with their flags so callers can report them.

    Raises:
        InventoryScanError: If ``root`` is missing, not a directory, or
            cannot be read.
    """
    root = Path(root)
    try:
        entries = sorted(root.iterdir(), key=lambda p: p.name)
    except FileNotFoundError as e:
        raise InventoryScanError(f"Inventory root does not exist: {root}") from e
    except NotADirectoryError as e:
        raise InventoryScanError(f"Inventory root is not a directory: {root}") from e
    except OSError as e:
        raise InventoryScanError(f"Cannot list inventory root {root}: {e}") from e

    units: list[Unit] = []
    for entry in entries:
        if entry.name.startswith(HIDDEN_PREFIX) or not entry.is_dir():
            continue
        units.append(
            Unit(
                name=entry.name,
                path=str(entry.resolve()),
                manifest=find_manifest(entry),
                ignored=(entry / IGNORE_MARKER).exists(),
            )
        )
    return units


def scan_inventory(root: Path) -> frozenset[str]:
    """Return the names of all eligible units under ``root``.

    Raises:
        InventoryScanError: If ``root`` cannot be listed.
    """
    names = set()
    for unit in scan_units(root):
        if unit.eligible:
            names.add(unit.name)
        else:
            logger.debug("Skipping %s: %s", unit.name, unit.skip_reason)

    logger.info("Current stacks on disk: %s", ", ".join(sorted(names)) or "(none)")
    return frozenset(names)
