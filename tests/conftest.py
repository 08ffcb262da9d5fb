"""Shared fixtures: a fake procfs tree under tmp_path."""

import logging
from pathlib import Path

import pytest


class FakeProc:
    """Writes /proc-style entries: <root>/<pid>/{stat,cmdline,comm}."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)

    def add(self, pid: int, ppid: int, argv: list[str], comm: str | None = None) -> None:
        d = self.root / str(pid)
        d.mkdir()
        comm = comm if comm is not None else (argv[0].rsplit("/", 1)[-1] if argv else "kworker")
        (d / "stat").write_text(f"{pid} ({comm}) S {ppid} {pid} {pid} 0 -1 4194560 0 0\n")
        (d / "comm").write_text(comm + "\n")
        (d / "cmdline").write_bytes(b"".join(a.encode() + b"\x00" for a in argv))

    def remove_cmdline(self, pid: int) -> None:
        (self.root / str(pid) / "cmdline").unlink()


@pytest.fixture
def fake_proc(tmp_path):
    proc = FakeProc(tmp_path / "proc")
    (proc.root / "self").mkdir()  # non-numeric entries are ignored
    return proc


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in (
        "PANENAV_TIMEOUT",
        "PANENAV_CACHE_TTL",
        "PANENAV_STATE_DIR",
        "PANENAV_INCLUDE_ROOT",
        "PANENAV_DEBUG",
        "PANENAV_PROC_ROOT",
        "PANENAV_PANE_PID",
        "TMUX_PANE",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo the CLI's logger setup so caplog sees panenav records."""
    yield
    logger = logging.getLogger("panenav")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
