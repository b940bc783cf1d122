"""Path splitting for remote paths.

Remote paths always use ``/`` regardless of the local platform.  The
parent chain of any path ends at a fixed point: ``/`` for absolute paths,
``.`` (the server's working directory) for relative ones.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable

__all__ = ["PathComponents", "PathHelper", "DOT_DIR", "ROOT", "join"]

ROOT = "/"
DOT_DIR = "."


def join(parent: str, name: str) -> str:
    """Append *name* to the remote directory *parent*."""
    stripped = parent.rstrip("/")
    if not stripped:
        stripped = ROOT if parent.startswith(ROOT) else DOT_DIR
    return _join(stripped, name)


def _join(parent: str, name: str) -> str:
    if parent == ROOT:
        return f"/{name}"
    if parent in ("", DOT_DIR):
        return name
    return f"{parent}/{name}"


@dataclass(frozen=True, slots=True)
class PathComponents:
    """A remote path split into *parent* and *name*.

    Attributes:
        parent: Parent path (``"/"`` or ``"."`` at the top).
        name: Last segment (``""`` for the fixed points).
        path: The full path, without trailing slashes.
    """

    parent: str
    name: str
    path: str

    @property
    def is_root(self) -> bool:
        """True at the top of the parent chain (``parent == path``)."""
        return self.parent == self.path


class PathHelper:
    """Split remote paths, resolving ``.`` and ``..`` through *canonicalize*.

    *canonicalize* is normally the engine's ``canonicalize`` request; it is
    only consulted when the last segment of a path is ``.`` or ``..``.
    """

    def __init__(self, canonicalize: Callable[[str], str]):
        self._canonicalize = canonicalize

    def components(self, path: str | os.PathLike[str]) -> PathComponents:
        path = os.fspath(path)
        if path == "" or path == DOT_DIR or path == "./":
            return PathComponents(DOT_DIR, "", DOT_DIR)
        if path.startswith(ROOT) and path.strip(ROOT) == "":
            return PathComponents(ROOT, "", ROOT)

        trimmed = path.rstrip("/")
        head, sep, name = trimmed.rpartition("/")
        if name in (".", ".."):
            resolved = self._canonicalize(trimmed)
            if resolved.rstrip("/") == trimmed:
                # the server handed back what we asked; stop here
                raise ValueError(f"Cannot resolve path: {path!r}")
            return self.components(resolved)

        if not sep:
            parent = DOT_DIR
        elif head.strip("/") == "":
            parent = ROOT
        else:
            parent = head.rstrip("/")
        return PathComponents(parent, name, _join(parent, name))

    def parent(self, path: str | os.PathLike[str]) -> str:
        return self.components(path).parent

