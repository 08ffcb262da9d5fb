from __future__ import annotations

import os
import subprocess
import time
from dataclasses import dataclass
from typing import Sequence

from .errors import SnapshotUnavailable


@dataclass
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str


def run(argv: Sequence[str], *, timeout: float | None = None, env: dict[str, str] | None = None) -> CmdResult:
    """Run argv and capture its output.

    Raises FileNotFoundError if the program is missing and
    subprocess.TimeoutExpired if it outlives `timeout`.
    """
    proc = subprocess.run(
        list(argv),
        check=False,
        capture_output=True,
        text=True,
        errors="replace",
        timeout=timeout,
        env={**os.environ, **(env or {})},
    )
    return CmdResult(list(argv), proc.returncode, proc.stdout or "", proc.stderr or "")


def which(cmd: str) -> str | None:
    from shutil import which as _which
    return _which(cmd)


def remaining(deadline: float | None) -> float | None:
    """Seconds left before `deadline` (a time.monotonic() value)."""
    if deadline is None:
        return None
    left = deadline - time.monotonic()
    if left <= 0:
        raise SnapshotUnavailable("timed out reading process state")
    return left
