from __future__ import annotations


class PanenavError(Exception):
    """Base class for everything that resolves to a "not editor" verdict."""


class MissingRootId(PanenavError):
    """No usable pane root pid was supplied."""


class SnapshotUnavailable(PanenavError):
    """The process table could not be read, or was malformed."""
