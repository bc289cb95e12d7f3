"""
State File Persistence

Pool state lives in a single JSON document (hashes hex-encoded). Writes go to
a temporary file in the same directory which then replaces the old file, so a
crash mid-write leaves the previous state intact.
"""

import json
import logging
import os
import tempfile
from typing import Any, Dict

logger = logging.getLogger(__name__)

REQUIRED_KEYS = (
    "version",
    "depth",
    "root_history_size",
    "next_index",
    "current_root",
    "filled_subtrees",
    "roots",
    "nullifiers",
    "pool_value",
    "events",
)


def save_state(path: str, state: Dict[str, Any]) -> None:
    """
    Atomically write `state` to `path` as JSON.

    Raises:
        OSError: If the file cannot be written
    """
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)

    with tempfile.NamedTemporaryFile(
        mode="w", dir=directory, prefix=".pool_state.", suffix=".tmp", delete=False
    ) as f:
        temp_file = f.name
        try:
            json.dump(state, f, indent=2, sort_keys=True)
            f.flush()
            os.fsync(f.fileno())
        except BaseException:
            f.close()
            os.unlink(temp_file)
            raise

    try:
        os.replace(temp_file, path)
    except OSError:
        os.unlink(temp_file)
        raise
    logger.debug(f"Saved pool state to {path}")


def load_state(path: str) -> Dict[str, Any]:
    """
    Read a state file written by save_state.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not valid JSON or lacks required fields
    """
    with open(path, "r") as f:
        try:
            state = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"State file {path} is not valid JSON: {e}")

    if not isinstance(state, dict):
        raise ValueError(f"State file {path} must contain a JSON object")

    missing = [key for key in REQUIRED_KEYS if key not in state]
    if missing:
        raise ValueError(f"State file {path} is missing fields: {', '.join(missing)}")

    logger.debug(f"Loaded pool state from {path}")
    return state
