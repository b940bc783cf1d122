"""Attribute values, open modes and rename flags for remote entries."""

from __future__ import annotations

import stat
from dataclasses import dataclass, field, replace
from enum import Enum, Flag
from typing import ClassVar, Mapping

__all__ = ["FileAttributes", "FileType", "OpenMode", "RenameFlags"]


class FileType(str, Enum):
    """Kind of remote entry, derived from the ``S_IFMT`` bits of a mode.

    Members: ``REGULAR``, ``DIRECTORY``, ``SYMLINK``, ``BLOCK_SPECIAL``,
    ``CHAR_SPECIAL``, ``FIFO_SPECIAL``, ``SOCKET_SPECIAL``, ``UNKNOWN``.
    """
    REGULAR = "regular"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    BLOCK_SPECIAL = "block_special"
    CHAR_SPECIAL = "char_special"
    FIFO_SPECIAL = "fifo_special"
    SOCKET_SPECIAL = "socket_special"
    UNKNOWN = "unknown"

    def __str__(self) -> str:          # noqa: D105
        return self.value

    @classmethod
    def from_mode(cls, mode: int | None) -> FileType:
        """Convert a full ``st_mode`` integer to a :class:`FileType`."""
        if mode is None:
            return cls.UNKNOWN
        return _IFMT_TO_TYPE.get(stat.S_IFMT(mode), cls.UNKNOWN)

    @property
    def ifmt(self) -> int:
        """Return the ``S_IFMT`` bits for this type (0 for ``UNKNOWN``)."""
        return _TYPE_TO_IFMT.get(self, 0)


_IFMT_TO_TYPE = {
    stat.S_IFREG: FileType.REGULAR,
    stat.S_IFDIR: FileType.DIRECTORY,
    stat.S_IFLNK: FileType.SYMLINK,
    stat.S_IFBLK: FileType.BLOCK_SPECIAL,
    stat.S_IFCHR: FileType.CHAR_SPECIAL,
    stat.S_IFIFO: FileType.FIFO_SPECIAL,
    stat.S_IFSOCK: FileType.SOCKET_SPECIAL,
}
_TYPE_TO_IFMT = {v: k for k, v in _IFMT_TO_TYPE.items()}


class OpenMode(Flag):
    """Access intents for :meth:`~sftpkit.SFTPClient.open`.

    Values match the SFTP v3 ``SSH_FXF_*`` pflags bits.
    """
    READ = 0x01
    WRITE = 0x02
    APPEND = 0x04
    CREAT = 0x08
    TRUNC = 0x10
    EXCL = 0x20


class RenameFlags(Flag):
    """Rename semantics.  The empty value ``RenameFlags(0)`` is a legacy rename
    that fails when the destination already exists."""
    OVERWRITE = 0x01
    ATOMIC = 0x02
    NATIVE = 0x04


@dataclass(frozen=True, slots=True)
class FileAttributes:
    """Attributes of a remote entry, or the fields of an update request.

    Every field is optional; ``None`` means "not set" and is never sent as
    zero.  Values are built additively starting from :attr:`EMPTY`::

        attrs = FileAttributes.EMPTY.with_owner(1000, 100).with_permissions(0o640)

    Owner and times are carried in pairs, matching the SFTP v3 wire format.

    Attributes:
        size: Size in bytes.
        uid: Owning user id.
        gid: Owning group id.
        mode: Full ``st_mode`` (type bits plus permission bits).
        atime: Access time, POSIX epoch seconds.
        mtime: Modify time, POSIX epoch seconds.
        extended: Extension name to value.
    """

    size: int | None = None
    uid: int | None = None
    gid: int | None = None
    mode: int | None = None
    atime: int | None = None
    mtime: int | None = None
    extended: Mapping[str, str] = field(default_factory=dict, compare=False)

    EMPTY: ClassVar[FileAttributes]

    @property
    def type(self) -> FileType:
        """Entry type, ``FileType.UNKNOWN`` when no mode is set."""
        return FileType.from_mode(self.mode)

    @property
    def permissions(self) -> int | None:
        """Permission bits (``mode & 0o7777``), or ``None`` when unset."""
        if self.mode is None:
            return None
        return stat.S_IMODE(self.mode)

    @property
    def is_empty(self) -> bool:
        """True when no field is set."""
        return (
            self.size is None and self.uid is None and self.gid is None
            and self.mode is None and self.atime is None and self.mtime is None
            and not self.extended
        )

    # --- Additive builder ---

    def with_size(self, size: int) -> FileAttributes:
        if size < 0:
            raise ValueError(f"Size must be non-negative: {size}")
        return replace(self, size=size)

    def with_owner(self, uid: int, gid: int) -> FileAttributes:
        return replace(self, uid=uid, gid=gid)

    def with_permissions(self, permissions: int) -> FileAttributes:
        """Set permission bits, keeping any type bits already present."""
        type_bits = stat.S_IFMT(self.mode) if self.mode is not None else 0
        return replace(self, mode=type_bits | stat.S_IMODE(permissions))

    def with_type(self, file_type: FileType) -> FileAttributes:
        perm_bits = stat.S_IMODE(self.mode) if self.mode is not None else 0
        return replace(self, mode=file_type.ifmt | perm_bits)

    def with_times(self, atime: int, mtime: int) -> FileAttributes:
        return replace(self, atime=int(atime), mtime=int(mtime))

    def with_extended(self, name: str, value: str) -> FileAttributes:
        merged = dict(self.extended)
        merged[name] = value
        return replace(self, extended=merged)

    def __repr__(self) -> str:
        parts = []
        for name in ("size", "uid", "gid", "atime", "mtime"):
            value = getattr(self, name)
            if value is not None:
                parts.append(f"{name}={value}")
        if self.mode is not None:
            parts.append(f"type={self.type.value}")
            parts.append(f"perms={self.permissions:04o}")
        if self.extended:
            parts.append(f"extended={dict(self.extended)!r}")
        return f"FileAttributes({', '.join(parts)})"


FileAttributes.EMPTY = FileAttributes()
