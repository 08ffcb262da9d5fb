"""Decide whether a pane's process tree contains a vim-family editor."""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Mapping

from .config import Settings
from .errors import PanenavError
from .proc import ProcessTable, descendants, read_all_processes, read_command_lines
from .state import VerdictCache

logger = logging.getLogger(__name__)

# vim, nvim, gvim, view, gview, vimdiff, nvimdiff, vimx, vi, ...
EDITOR_PATTERN = re.compile(r"(?:^|/)g?(?:view|n?vim?x?)(?:diff)?$", re.IGNORECASE)

Lookup = Callable[[Iterable[int]], Mapping[int, str]]


def executable(command: str) -> str:
    """First token of a command line."""
    parts = command.split(None, 1)
    return parts[0] if parts else ""


def is_editor_command(command: str) -> bool:
    return EDITOR_PATTERN.search(executable(command)) is not None


def classify(
    table: ProcessTable,
    root: int,
    lookup: Lookup | None = None,
    *,
    include_root: bool = False,
) -> bool:
    """True if any descendant of root runs an editor.

    `lookup` maps a set of pids to their full command lines and defaults to
    reading the live host. With `include_root` the root's own command line
    is checked too.
    """
    if root not in table:
        return False

    found = descendants(root, table.children_map())
    wanted = set(found)
    if include_root:
        wanted.add(root)
    if not wanted:
        return False

    commands = (lookup or read_command_lines)(wanted)
    for pid, cmd in commands.items():
        if pid in wanted and is_editor_command(cmd):
            logger.debug("pid %d looks like an editor: %s", pid, cmd)
            return True
    return False


@dataclass(frozen=True)
class Verdict:
    editor: bool
    root: int | None
    reason: str

    def __bool__(self) -> bool:
        return self.editor


def detect(root: int, settings: Settings | None = None) -> Verdict:
    """Snapshot the host and classify root's descendants; never raises."""
    settings = settings or Settings.from_env()
    cache = VerdictCache(settings.state_dir, settings.cache_ttl) if settings.state_dir else None

    if cache is not None:
        hit = cache.get(root, include_root=settings.include_root)
        if hit is not None:
            return Verdict(hit, root, "cached")

    deadline = time.monotonic() + settings.timeout if settings.timeout > 0 else None
    try:
        table = read_all_processes(proc_root=settings.proc_root, deadline=deadline)

        def lookup(pids: Iterable[int]) -> Mapping[int, str]:
            return read_command_lines(pids, proc_root=settings.proc_root, deadline=deadline)

        editor = classify(table, root, lookup, include_root=settings.include_root)
    except (PanenavError, OSError) as e:
        logger.debug("treating pane %d as not running an editor: %s", root, e)
        return Verdict(False, root, str(e))

    if cache is not None:
        cache.put(root, editor, include_root=settings.include_root)
    return Verdict(editor, root, "editor found" if editor else "no editor among descendants")
