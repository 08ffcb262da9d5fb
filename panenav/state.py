from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Dict

import fcntl

logger = logging.getLogger(__name__)

CACHE_FILE = "verdicts.json"
LOCK_FILE = "verdicts.lock"


class VerdictCache:
    """Short-lived verdicts keyed by pane root pid and root inclusion.

    Process trees churn, so entries live for a fraction of a second. A ttl
    of zero or less turns the cache off and touches no files.
    """

    def __init__(self, state_dir: Path, ttl: float) -> None:
        self.state_dir = state_dir
        self.ttl = ttl
        self.lock_path = state_dir / LOCK_FILE
        self.cache_path = state_dir / CACHE_FILE

    @property
    def enabled(self) -> bool:
        return self.ttl > 0

    def _load_unlocked(self) -> Dict[str, Any]:
        if not self.cache_path.exists():
            return {}
        try:
            data = json.loads(self.cache_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            # corrupted; start over
            return {}
        return data if isinstance(data, dict) else {}

    def _save_unlocked(self, data: Dict[str, Any]) -> None:
        tmp = self.state_dir / f".verdicts.{os.getpid()}.tmp"
        tmp.write_text(json.dumps(data) + "\n", encoding="utf-8")
        tmp.replace(self.cache_path)

    def _locked(self, exclusive: bool):
        self.state_dir.mkdir(parents=True, exist_ok=True)
        self.lock_path.touch(exist_ok=True)
        f = open(self.lock_path, "r+")
        try:
            fcntl.flock(f, fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)
        except OSError:
            f.close()
            raise
        return f

    def _fresh(self, entry: Any, now: float) -> bool:
        if not isinstance(entry, dict):
            return False
        try:
            return now - float(entry.get("at", 0)) < self.ttl
        except (TypeError, ValueError):
            return False

    @staticmethod
    def _key(root: int, include_root: bool) -> str:
        return f"{root}:{int(include_root)}"

    def get(self, root: int, *, include_root: bool = False) -> bool | None:
        if not self.enabled:
            return None
        try:
            with self._locked(exclusive=False):
                data = self._load_unlocked()
        except OSError as e:
            logger.debug("verdict cache unreadable: %s", e)
            return None
        entry = data.get(self._key(root, include_root))
        if not self._fresh(entry, time.time()):
            return None
        return bool(entry.get("editor"))

    def put(self, root: int, editor: bool, *, include_root: bool = False) -> None:
        if not self.enabled:
            return
        try:
            with self._locked(exclusive=True):
                now = time.time()
                data = {k: v for k, v in self._load_unlocked().items() if self._fresh(v, now)}
                data[self._key(root, include_root)] = {"editor": editor, "at": now}
                self._save_unlocked(data)
        except OSError as e:
            logger.debug("verdict cache not written: %s", e)

