from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 0.5
DEFAULT_CACHE_TTL = 0.0

_TRUTHY = {"1", "true", "yes", "on"}


def default_state_dir(env: Mapping[str, str] | None = None) -> Path:
    """Where the verdict cache lives."""
    env = os.environ if env is None else env
    if env.get("PANENAV_STATE_DIR"):
        return Path(env["PANENAV_STATE_DIR"])
    base = env.get("XDG_STATE_HOME") or str(Path.home() / ".local/state")
    return Path(base) / "panenav"


def _float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.debug("ignoring %s=%r: not a number", key, raw)
        return default


def _flag(env: Mapping[str, str], key: str) -> bool:
    return env.get(key, "").strip().lower() in _TRUTHY


@dataclass(frozen=True)
class Settings:
    timeout: float = DEFAULT_TIMEOUT
    cache_ttl: float = DEFAULT_CACHE_TTL
    state_dir: Path | None = None
    include_root: bool = False
    debug: bool = False
    proc_root: Path = Path("/proc")

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if env is None else env
        return cls(
            timeout=_float(env, "PANENAV_TIMEOUT", DEFAULT_TIMEOUT),
            cache_ttl=_float(env, "PANENAV_CACHE_TTL", DEFAULT_CACHE_TTL),
            state_dir=default_state_dir(env),
            include_root=_flag(env, "PANENAV_INCLUDE_ROOT"),
            debug=_flag(env, "PANENAV_DEBUG"),
            proc_root=Path(env.get("PANENAV_PROC_ROOT") or "/proc"),
        )

    def with_overrides(self, **changes) -> "Settings":
        """Copy with the non-None keyword arguments applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
