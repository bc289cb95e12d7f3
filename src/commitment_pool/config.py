"""
Configuration

Settings are read from the environment, with a `.env` file in the working
directory loaded first.

    POOL_TREE_DEPTH               Commitment tree depth (default 20)
    POOL_ROOT_HISTORY_SIZE        Recent roots accepted by withdrawals (default 30)
    POOL_STATE_FILE               JSON state file path (default pool_state.json)
    POOL_API_URL                  Base URL used by the HTTP client and CLI remote mode
    POOL_API_HOST / POOL_API_PORT Bind address of the REST server
    POOL_ALLOW_UNVERIFIED_PROOFS  Accept withdrawals without proof verification
                                  (development only, default false)
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .constants import DEFAULT_ROOT_HISTORY_SIZE, DEFAULT_TREE_DEPTH

# Load environment variables
load_dotenv()

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off", ""}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean flag, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    tree_depth: int = DEFAULT_TREE_DEPTH
    root_history_size: int = DEFAULT_ROOT_HISTORY_SIZE
    state_file: str = "pool_state.json"
    api_url: str = "http://127.0.0.1:8000"
    api_host: str = "127.0.0.1"
    api_port: int = 8000
    allow_unverified_proofs: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, falling back to defaults."""
        return cls(
            tree_depth=_env_int("POOL_TREE_DEPTH", DEFAULT_TREE_DEPTH),
            root_history_size=_env_int("POOL_ROOT_HISTORY_SIZE", DEFAULT_ROOT_HISTORY_SIZE),
            state_file=os.getenv("POOL_STATE_FILE", "pool_state.json"),
            api_url=os.getenv("POOL_API_URL", "http://127.0.0.1:8000").rstrip("/"),
            api_host=os.getenv("POOL_API_HOST", "127.0.0.1"),
            api_port=_env_int("POOL_API_PORT", 8000),
            allow_unverified_proofs=_env_bool("POOL_ALLOW_UNVERIFIED_PROOFS", False),
        )
