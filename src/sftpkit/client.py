"""SFTPClient: path-level filesystem operations over an SFTP engine."""

from __future__ import annotations

import os
from typing import IO, TYPE_CHECKING

import structlog

from .attributes import FileAttributes, FileType, OpenMode, RenameFlags
from .exceptions import NoSuchFileError, WrongTypeError
from .paths import PathHelper
from .selectors import SelectorLike, as_selector
from .transfer import FileTransfer, LocalFile

if TYPE_CHECKING:
    from .config import ConnectionConfig
    from .engine import Engine
    from .remote import RemoteResourceInfo

__all__ = ["SFTPClient"]


class SFTPClient:
    """POSIX-like operations on a remote filesystem.

    Wraps a protocol :class:`~sftpkit.engine.Engine` and a
    :class:`~sftpkit.transfer.FileTransfer`.  Every method is a short,
    blocking sequence of independent requests; nothing is cached between
    calls and nothing is retried.

    Use :meth:`connect` to open a connection that the client owns, or pass
    an already-initialised engine.  In both cases :meth:`close` closes the
    engine.
    """

    def __init__(self, engine: Engine, *, transfer: FileTransfer | None = None, logger=None):
        self._engine = engine
        self._log = (logger or structlog.get_logger("sftpkit")).bind(component="client")
        self._transfer = transfer if transfer is not None else FileTransfer(engine, logger=logger)
        self._paths = PathHelper(engine.canonicalize)
        self._closed = False

    @classmethod
    def connect(cls, config: ConnectionConfig | None = None, *, logger=None, **overrides) -> SFTPClient:
        """Open an SSH connection and return a client that owns it.

        Args:
            config: Connection settings (``SFTPKIT_*`` environment when ``None``).
            logger: structlog-style logger shared by all components.
            **overrides: Individual :class:`~sftpkit.config.ConnectionConfig`
                fields overriding *config*.
        """
        from .config import ConnectionConfig
        from .engine import ParamikoEngine

        if config is None:
            config = ConnectionConfig.from_env(**overrides)
        elif overrides:
            config = config.replace(**overrides)
        engine = ParamikoEngine.connect(config, logger=logger)
        transfer = FileTransfer(engine, chunk_size=config.chunk_size, logger=logger)
        return cls(engine, transfer=transfer, logger=logger)

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"SFTPClient({self._engine!r}, {state})"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @property
    def engine(self) -> Engine:
        """The underlying protocol engine."""
        return self._engine

    @property
    def file_transfer(self) -> FileTransfer:
        """The transfer engine used by :meth:`get` and :meth:`put`."""
        return self._transfer

    def version(self) -> int:
        """Negotiated SFTP protocol version."""
        return self._engine.protocol_version

    def close(self) -> None:
        """Close the engine (and the connection, when owned).  Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._engine.close()

    # --- Listing and opening ---

    def ls(self, path: str | os.PathLike[str], selector: SelectorLike = None) -> list[RemoteResourceInfo]:
        """List the entries of directory *path* in server order.

        Args:
            path: Remote directory.
            selector: A :class:`~sftpkit.selectors.ResourceSelector`, a
                predicate ``info -> bool``, or ``None`` for every entry.
        """
        path = os.fspath(path)
        chosen = as_selector(selector)
        with self._engine.open_dir(path) as directory:
            return directory.scan(chosen)

    def open(
        self,
        path: str | os.PathLike[str],
        mode: OpenMode = OpenMode.READ,
        attrs: FileAttributes = FileAttributes.EMPTY,
    ) -> IO[bytes]:
        """Open a remote file.  The returned object is a context manager."""
        path = os.fspath(path)
        self._log.debug("sftp.open", path=path, mode=str(mode))
        return self._engine.open(path, mode, attrs)

    # --- Existence and directories ---

    def stat_existence(self, path: str | os.PathLike[str]) -> FileAttributes | None:
        """Return the attributes of *path*, or ``None`` if it does not exist.

        Only "no such file" is turned into ``None``; permission and I/O
        errors still raise.
        """
        try:
            return self._engine.stat(os.fspath(path))
        except NoSuchFileError:
            return None

    def exists(self, path: str | os.PathLike[str]) -> bool:
        return self.stat_existence(path) is not None

    def is_dir(self, path: str | os.PathLike[str]) -> bool:
        attrs = self.stat_existence(path)
        return attrs is not None and attrs.type == FileType.DIRECTORY

    def mkdir(self, path: str | os.PathLike[str]) -> None:
        """Create one directory; its parent must exist."""
        self._engine.make_dir(os.fspath(path))

    def mkdirs(self, path: str | os.PathLike[str]) -> None:
        """Create directory *path* and any missing ancestors.

        Ancestors are probed from *path* upward until an existing
        directory (or the top of the path) is found, then the missing ones
        are created top-down.  Nothing is created when *path* is already a
        directory.

        Raises:
            WrongTypeError: If *path* or an ancestor exists as a
                non-directory; raised before any directory is created.
        """
        to_make: list[str] = []
        current = self._paths.components(path)
        while True:
            attrs = self.stat_existence(current.path)
            if attrs is None:
                to_make.append(current.path)
            elif attrs.type != FileType.DIRECTORY:
                raise WrongTypeError(f"{current.path} exists but is not a directory", current.path)
            else:
                break
            if current.is_root:
                break
            current = self._paths.components(current.parent)

        while to_make:
            dirname = to_make.pop()
            self._log.debug("sftp.mkdirs.create", path=dirname)
            self.mkdir(dirname)

    # --- Pass-throughs ---

    def rename(
        self,
        old_path: str | os.PathLike[str],
        new_path: str | os.PathLike[str],
        flags: RenameFlags = RenameFlags(0),
    ) -> None:
        """Rename *old_path*.  Without flags this fails when *new_path* exists."""
        self._engine.rename(os.fspath(old_path), os.fspath(new_path), flags)

    def rm(self, path: str | os.PathLike[str]) -> None:
        """Remove a file or symlink."""
        self._engine.remove(os.fspath(path))

    def rmdir(self, path: str | os.PathLike[str]) -> None:
        """Remove an empty directory."""
        self._engine.remove_dir(os.fspath(path))

    def symlink(self, link_path: str | os.PathLike[str], target_path: str) -> None:
        """Create *link_path* pointing at *target_path*."""
        self._engine.symlink(os.fspath(link_path), os.fspath(target_path))

    def readlink(self, path: str | os.PathLike[str]) -> str:
        return self._engine.read_link(os.fspath(path))

    def canonicalize(self, path: str | os.PathLike[str]) -> str:
        """Resolve *path* to an absolute path on the server."""
        return self._engine.canonicalize(os.fspath(path))

    def stat(self, path: str | os.PathLike[str]) -> FileAttributes:
        """Return attributes of *path*, following symlinks.

        Raises:
            NoSuchFileError: If *path* does not exist.
        """
        return self._engine.stat(os.fspath(path))

    def lstat(self, path: str | os.PathLike[str]) -> FileAttributes:
        """Return attributes of *path* without following a final symlink."""
        return self._engine.lstat(os.fspath(path))

    def setattr(self, path: str | os.PathLike[str], attrs: FileAttributes) -> None:
        """Send *attrs* in a single update request; unset fields are left alone."""
        self._engine.set_attributes(os.fspath(path), attrs)

    # --- Single attribute reads ---

    def uid(self, path: str | os.PathLike[str]) -> int:
        return self.stat(path).uid

    def gid(self, path: str | os.PathLike[str]) -> int:
        return self.stat(path).gid

    def atime(self, path: str | os.PathLike[str]) -> int:
        return self.stat(path).atime

    def mtime(self, path: str | os.PathLike[str]) -> int:
        return self.stat(path).mtime

    def perms(self, path: str | os.PathLike[str]) -> int:
        return self.stat(path).permissions

    def mode(self, path: str | os.PathLike[str]) -> int:
        return self.stat(path).mode

    def type(self, path: str | os.PathLike[str]) -> FileType:
        return self.stat(path).type

    def size(self, path: str | os.PathLike[str]) -> int:
        return self.stat(path).size

    # --- Attribute updates ---
    #
    # chown/chgrp read the other id first: the wire format sends uid and
    # gid together.  The read and the write are separate requests and a
    # concurrent change to the unread id in between is overwritten.

    def chown(self, path: str | os.PathLike[str], uid: int) -> None:
        """Change the owning user, keeping the current group."""
        self.setattr(path, FileAttributes.EMPTY.with_owner(uid, self.gid(path)))

    def chgrp(self, path: str | os.PathLike[str], gid: int) -> None:
        """Change the owning group, keeping the current user."""
        self.setattr(path, FileAttributes.EMPTY.with_owner(self.uid(path), gid))

    def chmod(self, path: str | os.PathLike[str], perms: int) -> None:
        self.setattr(path, FileAttributes.EMPTY.with_permissions(perms))

    def truncate(self, path: str | os.PathLike[str], size: int) -> None:
        """Set the size of *path*, cutting or zero-extending it."""
        self.setattr(path, FileAttributes.EMPTY.with_size(size))

    def utime(self, path: str | os.PathLike[str], atime: int, mtime: int) -> None:
        self.setattr(path, FileAttributes.EMPTY.with_times(atime, mtime))

    # --- Transfers ---

    def get(self, source: str | os.PathLike[str], dest: LocalFile, byte_offset: int = 0) -> None:
        """Download *source* to a local path or writable stream.

        A non-zero *byte_offset* resumes: the first *byte_offset* bytes of
        *dest* are kept and the rest is rewritten from the remote file.
        """
        self._transfer.download(os.fspath(source), dest, byte_offset)

    def put(self, source: LocalFile, dest: str | os.PathLike[str], byte_offset: int = 0) -> None:
        """Upload a local path or readable stream to *dest*.

        A non-zero *byte_offset* resumes: the remote file is not truncated
        and is written from *byte_offset* onward.
        """
        self._transfer.upload(source, os.fspath(dest), byte_offset)
