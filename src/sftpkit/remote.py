"""Directory entries and the enumeration routine shared by all engines."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .attributes import FileAttributes, FileType
from .selectors import SELECT_ALL, Decision, ResourceSelector

__all__ = ["RemoteResourceInfo", "RemoteDirectory"]


@dataclass(frozen=True, slots=True)
class RemoteResourceInfo:
    """A directory entry returned by :meth:`~sftpkit.SFTPClient.ls`.

    Attributes:
        name: Entry name within its directory.
        path: Full remote path of the entry.
        attributes: :class:`FileAttributes` sent with the listing.
    """

    name: str
    path: str
    attributes: FileAttributes

    @property
    def is_directory(self) -> bool:
        return self.attributes.type == FileType.DIRECTORY

    @property
    def is_regular_file(self) -> bool:
        return self.attributes.type == FileType.REGULAR

    @property
    def is_symlink(self) -> bool:
        return self.attributes.type == FileType.SYMLINK


class RemoteDirectory:
    """An open remote directory handle.

    Engines subclass this and implement :meth:`read_batch` (one ``READDIR``
    round trip) and :meth:`_release`.  Use as a context manager so the
    handle is closed on every exit path.
    """

    def __init__(self, path: str):
        self.path = path
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def read_batch(self) -> Iterable[RemoteResourceInfo] | None:
        """Return the next batch of entries, or ``None`` at end of directory."""
        raise NotImplementedError

    def _release(self) -> None:
        raise NotImplementedError

    def scan(self, selector: ResourceSelector = SELECT_ALL) -> list[RemoteResourceInfo]:
        """Read entries in server order, keeping those *selector* includes.

        Stops reading as soon as the selector answers ``STOP``; the entry
        that triggered the stop is not included.  ``.`` and ``..`` are
        skipped without consulting the selector.
        """
        if self._closed:
            raise ValueError(f"Directory handle already closed: {self.path}")
        selected: list[RemoteResourceInfo] = []
        while True:
            batch = self.read_batch()
            if batch is None:
                return selected
            for info in batch:
                if info.name in (".", ".."):
                    continue
                decision = selector.select(info)
                if decision == Decision.STOP:
                    return selected
                if decision == Decision.INCLUDE:
                    selected.append(info)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._release()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"{type(self).__name__}({self.path!r}, {state})"
