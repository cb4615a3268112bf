"""
State file persistence — atomic read/write for InventoryState.

The baseline is read once at startup and written once at the end of
every executed cycle. A missing or corrupt file is not fatal: the
reconciler starts from an empty baseline, which makes every unit on disk
look new and therefore deploys it. Writes are atomic (temp file, then
rename) so a crash mid-write leaves the previous baseline intact.
"""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path

from stackwatch.core.models.state import InventoryState

logger = logging.getLogger(__name__)

DEFAULT_STATE_DIR = ".stackwatch"
DEFAULT_STATE_FILE = "state.json"


def default_state_path(repo_path: Path) -> Path:
    """State file location for a checkout: beside it, never inside it."""
    return Path(repo_path).resolve().parent / DEFAULT_STATE_DIR / DEFAULT_STATE_FILE


def load_state(path: Path) -> InventoryState:
    """Load the baseline from a JSON file.

    Returns:
        InventoryState. A fresh (empty) state if the file is missing,
        unreadable, or invalid.
    """
    if not path.is_file():
        logger.info("No state file at %s, starting fresh", path)
        return InventoryState()

    try:
        raw = path.read_text(encoding="utf-8")
        data = json.loads(raw)
        state = InventoryState.model_validate(data)
        logger.debug(
            "Loaded state from %s (%d deployed, updated_at=%s)",
            path,
            len(state.deployed_units),
            state.updated_at,
        )
        return state
    except json.JSONDecodeError as e:
        logger.warning("Corrupt state file %s: %s, starting fresh", path, e)
        return InventoryState()
    except Exception as e:
        logger.warning("Cannot load state from %s: %s, starting fresh", path, e)
        return InventoryState()


def save_state(state: InventoryState, path: Path) -> None:
    """Save the baseline to a JSON file (atomic write).

    Raises:
        OSError: If the directory cannot be created or the file written.
    """
    state.touch()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = state.model_dump(mode="json")
    content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".state_", suffix=".tmp")
    tmp = Path(tmp_path)
    try:
        with open(fd, "w", encoding="utf-8") as f:
            f.write(content)
        tmp.replace(path)
        logger.debug("State saved to %s", path)
    except Exception:
        tmp.unlink(missing_ok=True)
        logger.error("Failed to save state to %s", path)
        raise
