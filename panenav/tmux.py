from __future__ import annotations

import os
import subprocess
from typing import Mapping

from .errors import MissingRootId
from .util import run, which

# key -> (select-pane flag, description)
NAV_KEYS = {
    "C-h": ("-L", "left"),
    "C-j": ("-D", "down"),
    "C-k": ("-U", "up"),
    "C-l": ("-R", "right"),
    "C-\\": ("-l", "last"),
}


def parse_root_pid(value: str | None) -> int:
    """Validate a pane root pid given as text."""
    text = (value or "").strip()
    if not text:
        raise MissingRootId("no pane pid given")
    if not (text.isascii() and text.isdigit()) or int(text) <= 0:
        raise MissingRootId(f"not a process id: {text!r}")
    return int(text)


def require_tmux() -> None:
    if which("tmux") is None:
        raise MissingRootId("tmux not found")


def current_pane_pid(env: Mapping[str, str] | None = None, timeout: float | None = 0.5) -> int:
    """Root pid of the pane this command runs in.

    PANENAV_PANE_PID wins; otherwise ask tmux about $TMUX_PANE.
    """
    env = os.environ if env is None else env
    if env.get("PANENAV_PANE_PID"):
        return parse_root_pid(env["PANENAV_PANE_PID"])

    pane = env.get("TMUX_PANE", "").strip()
    if not pane:
        raise MissingRootId("not inside a tmux pane (TMUX_PANE unset)")

    require_tmux()
    try:
        res = run(["tmux", "display-message", "-p", "-t", pane, "#{pane_pid}"], timeout=timeout)
    except (OSError, subprocess.TimeoutExpired) as e:
        raise MissingRootId(f"tmux query failed: {e}") from e
    if res.returncode != 0:
        raise MissingRootId(f"tmux query failed: {res.stderr.strip()}")
    return parse_root_pid(res.stdout)


def binding_snippet(command: str = "panenav check #{pane_pid}") -> str:
    """tmux.conf lines that forward navigation keys to vim when it is running."""
    if "'" in command:
        raise ValueError(f"command must not contain single quotes: {command!r}")
    lines = [
        "# panenav: move between tmux panes and vim splits with the same keys",
        f"is_vim='{command}'",
    ]
    for key, (flag, _desc) in NAV_KEYS.items():
        send = key.replace("\\", "\\\\")
        lines.append(f"bind-key -n '{key}' if-shell \"$is_vim\" 'send-keys {send}' 'select-pane {flag}'")
    lines.append("")
    for key, (flag, _desc) in NAV_KEYS.items():
        lines.append(f"bind-key -T copy-mode-vi '{key}' select-pane {flag}")
    return "\n".join(lines) + "\n"
