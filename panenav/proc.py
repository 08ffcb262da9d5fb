from __future__ import annotations

import logging
import subprocess
from collections import defaultdict, deque
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping

from .errors import SnapshotUnavailable
from .util import remaining, run

logger = logging.getLogger(__name__)

PROC_ROOT = Path("/proc")


@dataclass(frozen=True)
class ProcessRecord:
    pid: int
    ppid: int  # 0 means no parent / unknown
    command: str


class ProcessTable(Mapping[int, ProcessRecord]):
    """Immutable pid -> ProcessRecord snapshot."""

    def __init__(self, records: Iterable[ProcessRecord] = ()) -> None:
        data: dict[int, ProcessRecord] = {}
        for rec in records:
            data[rec.pid] = rec
        self._data = MappingProxyType(data)

    @classmethod
    def from_tuples(cls, rows: Iterable[tuple[int, int, str]]) -> "ProcessTable":
        return cls(ProcessRecord(pid, ppid, cmd) for pid, ppid, cmd in rows)

    def __getitem__(self, pid: int) -> ProcessRecord:
        return self._data[pid]

    def __iter__(self) -> Iterator[int]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"ProcessTable({len(self)} processes)"

    def children_map(self) -> dict[int, list[int]]:
        """Reverse adjacency: ppid -> child pids, in one pass."""
        children: dict[int, list[int]] = defaultdict(list)
        for rec in self._data.values():
            children[rec.ppid].append(rec.pid)
        return children


def descendants(root: int, children: Mapping[int, list[int]]) -> frozenset[int]:
    """All pids reachable from root through child edges, root excluded.

    Each pid is queued at most once, so a cyclic table still terminates.
    """
    seen: set[int] = {root}
    q: deque[int] = deque([root])
    while q:
        cur = q.popleft()
        for ch in children.get(cur, []):
            if ch not in seen:
                seen.add(ch)
                q.append(ch)
    seen.discard(root)
    return frozenset(seen)


# -----------------------------
# procfs
# -----------------------------


def parse_stat(text: str) -> tuple[int, str, int]:
    """Return (pid, comm, ppid) from a /proc/<pid>/stat line.

    comm may itself contain spaces and parentheses, so split around the
    first "(" and the last ")".
    """
    try:
        head, _, rest = text.partition(" (")
        comm, _, tail = rest.rpartition(") ")
        fields = tail.split()
        return int(head), comm, int(fields[1])
    except (ValueError, IndexError) as e:
        raise SnapshotUnavailable(f"malformed stat line: {text[:80]!r}") from e


def _read_cmdline(pid: int, proc_root: Path) -> str | None:
    try:
        raw = (proc_root / str(pid) / "cmdline").read_bytes()
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.debug("could not read cmdline of %d: %s", pid, e)
        return None
    raw = raw.replace(b"\x00", b" ").strip()
    if raw:
        return raw.decode(errors="replace")
    # Kernel threads and zombies have an empty cmdline.
    try:
        return (proc_root / str(pid) / "comm").read_text(errors="replace").strip() or None
    except OSError:
        return None


def _scan_procfs(proc_root: Path, deadline: float | None) -> ProcessTable:
    try:
        entries = [d for d in proc_root.iterdir() if d.name.isascii() and d.name.isdigit()]
    except OSError as e:
        raise SnapshotUnavailable(f"cannot list {proc_root}: {e}") from e

    records: list[ProcessRecord] = []
    for d in entries:
        remaining(deadline)
        try:
            text = (d / "stat").read_text(errors="replace")
        except OSError:
            # exited while scanning
            continue
        pid, comm, ppid = parse_stat(text)
        records.append(ProcessRecord(pid=pid, ppid=ppid, command=comm))
    return ProcessTable(records)


# -----------------------------
# ps(1)
# -----------------------------


def parse_ps_table(text: str) -> ProcessTable:
    """Parse `ps -A -o pid= -o ppid= -o comm=` output."""
    records: list[ProcessRecord] = []
    for line in text.splitlines():
        if not line.strip():
            continue
        parts = line.split(None, 2)
        try:
            pid, ppid = int(parts[0]), int(parts[1])
        except (ValueError, IndexError) as e:
            raise SnapshotUnavailable(f"malformed ps row: {line!r}") from e
        records.append(ProcessRecord(pid=pid, ppid=ppid, command=parts[2] if len(parts) > 2 else ""))
    if not records:
        raise SnapshotUnavailable("ps returned no processes")
    return ProcessTable(records)


def parse_ps_args(text: str) -> dict[int, str]:
    """Parse `ps -o pid= -o args=` output; odd rows are skipped."""
    out: dict[int, str] = {}
    for line in text.splitlines():
        parts = line.strip().split(None, 1)
        if len(parts) < 2 or not (parts[0].isascii() and parts[0].isdigit()):
            continue
        out[int(parts[0])] = parts[1]
    return out


def _ps(argv: list[str], deadline: float | None):
    try:
        return run(argv, timeout=remaining(deadline))
    except FileNotFoundError as e:
        raise SnapshotUnavailable("no procfs and no ps(1) on this host") from e
    except subprocess.TimeoutExpired as e:
        raise SnapshotUnavailable("timed out waiting for ps(1)") from e


# -----------------------------
# Public API
# -----------------------------


def read_all_processes(*, proc_root: Path = PROC_ROOT, deadline: float | None = None) -> ProcessTable:
    """Snapshot every visible process as (pid, ppid, short command)."""
    if proc_root.is_dir():
        table = _scan_procfs(proc_root, deadline)
        logger.debug("read %d processes from %s", len(table), proc_root)
        return table

    res = _ps(["ps", "-A", "-o", "pid=", "-o", "ppid=", "-o", "comm="], deadline)
    if res.returncode != 0:
        raise SnapshotUnavailable(f"ps exited with {res.returncode}: {res.stderr.strip()}")
    table = parse_ps_table(res.stdout)
    logger.debug("read %d processes from ps", len(table))
    return table


def read_command_lines(
    pids: Iterable[int], *, proc_root: Path = PROC_ROOT, deadline: float | None = None
) -> dict[int, str]:
    """Full command line for each pid that still exists."""
    wanted = sorted(set(pids))
    if not wanted:
        return {}

    if proc_root.is_dir():
        out: dict[int, str] = {}
        for pid in wanted:
            remaining(deadline)
            cmd = _read_cmdline(pid, proc_root)
            if cmd is None:
                logger.debug("process %d exited before its command line was read", pid)
                continue
            out[pid] = cmd
        return out

    # ps exits non-zero when some of the pids are gone; keep what it printed.
    res = _ps(["ps", "-o", "pid=", "-o", "args=", "-p", ",".join(map(str, wanted))], deadline)
    out = parse_ps_args(res.stdout)
    for pid in wanted:
        if pid not in out:
            logger.debug("process %d exited before its command line was read", pid)
    return out


def summarize_pids(pids: Iterable[int], commands: Mapping[int, str], max_items: int = 8) -> list[str]:
    # group by executable name
    buckets: dict[str, int] = defaultdict(int)
    for pid in pids:
        cmd = commands.get(pid, "").strip()
        head = cmd.split(None, 1)[0].rsplit("/", 1)[-1] if cmd else "(gone)"
        buckets[head] += 1
    items = sorted(buckets.items(), key=lambda kv: (-kv[1], kv[0]))[:max_items]
    return [f"{k} x{v}" for k, v in items]
