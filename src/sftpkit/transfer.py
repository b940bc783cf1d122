"""File transfer between local storage and the remote filesystem.

Transfers stream in chunks through :meth:`Engine.open`.  A non-zero
*byte_offset* resumes a partial transfer: the source is read from that
offset and the destination is written from the same offset, leaving the
bytes before it untouched.
"""

from __future__ import annotations

import os
import stat
from pathlib import Path
from typing import IO, TYPE_CHECKING, Callable, Union

import structlog

from .attributes import FileAttributes, FileType, OpenMode
from .exceptions import NoSuchFileError, WrongTypeError
from .paths import join

if TYPE_CHECKING:
    from .engine import Engine

__all__ = ["FileTransfer", "LocalFile", "DEFAULT_CHUNK_SIZE"]

DEFAULT_CHUNK_SIZE = 32768

LocalFile = Union[str, "os.PathLike[str]", IO[bytes]]
ProgressCallback = Callable[[str, int], None]


def _is_stream(obj) -> bool:
    return hasattr(obj, "read") or hasattr(obj, "write")


def _remote_name(path: str) -> str:
    return path.rstrip("/").rsplit("/", 1)[-1]


def _check_offset(byte_offset: int) -> None:
    if byte_offset < 0:
        raise ValueError(f"byte_offset must be non-negative: {byte_offset}")


class FileTransfer:
    """Upload and download files and directory trees.

    Args:
        engine: The protocol engine used for every remote request.
        chunk_size: Bytes per read/write request.
        preserve_attributes: Copy permission bits and access/modify times
            to the destination of path-based transfers.
        progress: Optional ``progress(path, transferred_bytes)`` callback,
            called after every chunk.
        logger: structlog-style logger; defaults to ``sftpkit``.
    """

    def __init__(
        self,
        engine: Engine,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        preserve_attributes: bool = True,
        progress: ProgressCallback | None = None,
        logger=None,
    ):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive: {chunk_size}")
        self._engine = engine
        self.chunk_size = chunk_size
        self.preserve_attributes = preserve_attributes
        self.progress = progress
        self._log = (logger or structlog.get_logger("sftpkit")).bind(component="transfer")

    # --- Download ---

    def download(self, remote_path: str, local: LocalFile, byte_offset: int = 0) -> None:
        """Copy *remote_path* to *local*, starting at *byte_offset*.

        *local* is a path or a writable binary stream.  If the path is an
        existing directory the file is written inside it under its remote
        name.  A remote directory is copied recursively (offset must be 0).

        Raises:
            NoSuchFileError: If *remote_path* does not exist.
            ValueError: For a negative offset, or an offset on a directory.
        """
        _check_offset(byte_offset)
        remote_path = os.fspath(remote_path)
        attrs = self._engine.stat(remote_path)
        self._log.debug("transfer.download.start", path=remote_path, offset=byte_offset)

        if _is_stream(local):
            if attrs.type == FileType.DIRECTORY:
                raise IsADirectoryError(f"Cannot stream a remote directory: {remote_path}")
            self._copy_from_remote(remote_path, local, byte_offset)
            return

        if attrs.type == FileType.DIRECTORY:
            if byte_offset:
                raise ValueError("byte_offset is only valid for regular files")
            self._download_dir(remote_path, self._target_dir(Path(local), _remote_name(remote_path)), attrs)
        else:
            self._download_file(remote_path, self._target_file(Path(local), _remote_name(remote_path)),
                                attrs, byte_offset)

    @staticmethod
    def _target_file(local: Path, name: str) -> Path:
        if local.is_dir():
            return local / name
        return local

    @staticmethod
    def _target_dir(local: Path, name: str) -> Path:
        if local.exists():
            if not local.is_dir():
                raise NotADirectoryError(f"{local} exists but is not a directory")
            if local.name != name:
                local = local / name
        local.mkdir(parents=True, exist_ok=True)
        return local

    def _download_dir(self, remote_path: str, local: Path, attrs: FileAttributes) -> None:
        with self._engine.open_dir(remote_path) as directory:
            entries = directory.scan()
        for info in entries:
            child = local / info.name
            if info.is_directory:
                child.mkdir(exist_ok=True)
                self._download_dir(info.path, child, info.attributes)
            elif info.is_regular_file:
                self._download_file(info.path, child, info.attributes, 0)
            else:
                self._log.warning("transfer.skip", path=info.path, type=str(info.attributes.type))
        self._preserve_local(local, attrs)

    def _download_file(self, remote_path: str, local: Path, attrs: FileAttributes, byte_offset: int) -> None:
        flags = os.O_WRONLY | os.O_CREAT
        if not byte_offset:
            flags |= os.O_TRUNC
        fd = os.open(local, flags, 0o666)
        with os.fdopen(fd, "wb") as out:
            out.seek(byte_offset)
            self._copy_from_remote(remote_path, out, byte_offset)
            out.truncate()
        self._preserve_local(local, attrs)

    def _copy_from_remote(self, remote_path: str, out: IO[bytes], byte_offset: int) -> int:
        transferred = 0
        with self._engine.open(remote_path, OpenMode.READ, FileAttributes.EMPTY) as remote:
            if byte_offset:
                remote.seek(byte_offset)
            while True:
                chunk = remote.read(self.chunk_size)
                if not chunk:
                    break
                out.write(chunk)
                transferred += len(chunk)
                if self.progress is not None:
                    self.progress(remote_path, byte_offset + transferred)
        self._log.debug("transfer.download.done", path=remote_path, bytes=transferred)
        return transferred

    def _preserve_local(self, local: Path, attrs: FileAttributes) -> None:
        if not self.preserve_attributes:
            return
        if attrs.permissions is not None:
            os.chmod(local, attrs.permissions)
        if attrs.atime is not None and attrs.mtime is not None:
            os.utime(local, (attrs.atime, attrs.mtime))

    # --- Upload ---

    def upload(self, local: LocalFile, remote_path: str, byte_offset: int = 0) -> None:
        """Copy *local* to *remote_path*, starting at *byte_offset*.

        *local* is a path or a readable binary stream.  If *remote_path* is
        an existing directory a local file is written inside it under its
        local name.  A local directory is uploaded recursively into
        *remote_path*, creating it when missing.

        Raises:
            FileNotFoundError: If the local path does not exist.
            WrongTypeError: If a directory upload targets a remote non-directory.
            ValueError: For a negative offset, or an offset on a directory.
        """
        _check_offset(byte_offset)
        remote_path = os.fspath(remote_path)
        self._log.debug("transfer.upload.start", path=remote_path, offset=byte_offset)

        if _is_stream(local):
            self._copy_to_remote(local, remote_path, byte_offset)
            return

        src = Path(local)
        if src.is_dir():
            if byte_offset:
                raise ValueError("byte_offset is only valid for regular files")
            self._upload_dir(src, remote_path)
        elif src.is_file():
            self._upload_file(src, self._remote_target_file(remote_path, src.name), byte_offset)
        else:
            raise FileNotFoundError(f"Local path not found or not a regular file: {src}")

    def _stat_or_none(self, remote_path: str) -> FileAttributes | None:
        try:
            return self._engine.stat(remote_path)
        except NoSuchFileError:
            return None

    def _remote_target_file(self, remote_path: str, name: str) -> str:
        attrs = self._stat_or_none(remote_path)
        if attrs is not None and attrs.type == FileType.DIRECTORY:
            return join(remote_path, name)
        return remote_path

    def _prepare_remote_dir(self, remote_path: str) -> None:
        attrs = self._stat_or_none(remote_path)
        if attrs is None:
            self._log.debug("transfer.mkdir", path=remote_path)
            self._engine.make_dir(remote_path)
        elif attrs.type != FileType.DIRECTORY:
            raise WrongTypeError(f"{remote_path} exists but is not a directory", remote_path)

    def _upload_dir(self, src: Path, remote_path: str) -> None:
        self._prepare_remote_dir(remote_path)
        for child in sorted(src.iterdir()):
            target = join(remote_path, child.name)
            if child.is_symlink() and not child.exists():
                self._log.warning("transfer.skip", path=str(child), reason="dangling symlink")
            elif child.is_dir():
                self._upload_dir(child, target)
            elif child.is_file():
                self._upload_file(child, target, 0)
            else:
                self._log.warning("transfer.skip", path=str(child), reason="not a regular file")
        self._preserve_remote(src, remote_path)

    def _upload_file(self, src: Path, remote_path: str, byte_offset: int) -> None:
        with open(src, "rb") as f:
            self._copy_to_remote(f, remote_path, byte_offset)
        self._preserve_remote(src, remote_path)

    def _copy_to_remote(self, source: IO[bytes], remote_path: str, byte_offset: int) -> int:
        mode = OpenMode.WRITE | OpenMode.CREAT
        if not byte_offset:
            mode |= OpenMode.TRUNC
        if byte_offset:
            source.seek(byte_offset)
        transferred = 0
        with self._engine.open(remote_path, mode, FileAttributes.EMPTY) as remote:
            if byte_offset:
                remote.seek(byte_offset)
            while True:
                chunk = source.read(self.chunk_size)
                if not chunk:
                    break
                remote.write(chunk)
                transferred += len(chunk)
                if self.progress is not None:
                    self.progress(remote_path, byte_offset + transferred)
        self._log.debug("transfer.upload.done", path=remote_path, bytes=transferred)
        return transferred

    def _preserve_remote(self, src: Path, remote_path: str) -> None:
        if not self.preserve_attributes:
            return
        st = src.stat()
        attrs = (
            FileAttributes.EMPTY
            .with_permissions(stat.S_IMODE(st.st_mode))
            .with_times(st.st_atime, st.st_mtime)
        )
        self._engine.set_attributes(remote_path, attrs)
