"""Protocol engine: typed SFTP requests over an established channel.

:class:`Engine` is the boundary :class:`~sftpkit.SFTPClient` and
:class:`~sftpkit.transfer.FileTransfer` talk to.  :class:`ParamikoEngine`
implements it on top of :class:`paramiko.SFTPClient`.

:class:`StatusSFTPClient` raises status replies as
:class:`~sftpkit.exceptions.SFTPError` with the status code intact.  A plain
:class:`paramiko.SFTPClient` only keeps ``ENOENT``/``EACCES``; its other
status errors come out as ``FAILURE``.  Transport failures
(``paramiko.SSHException``, socket errors) pass through untouched.
"""

from __future__ import annotations

import errno
from contextlib import contextmanager
from typing import IO, TYPE_CHECKING, Iterator, Protocol

import paramiko
import structlog
from paramiko.sftp import (
    CMD_CLOSE,
    CMD_HANDLE,
    CMD_MKDIR,
    CMD_NAME,
    CMD_OPEN,
    CMD_OPENDIR,
    CMD_READDIR,
    CMD_SETSTAT,
    SFTP_EOF,
    SFTP_OK,
)

from .attributes import FileAttributes, OpenMode, RenameFlags
from .exceptions import NoSuchFileError, PermissionDeniedError, SFTPError, StatusCode
from .paths import join
from .remote import RemoteDirectory, RemoteResourceInfo

if TYPE_CHECKING:
    from .config import ConnectionConfig

__all__ = ["Engine", "ParamikoEngine", "StatusSFTPClient", "SFTP_PROTOCOL_VERSION"]

# paramiko speaks SFTP v3 only
SFTP_PROTOCOL_VERSION = 3


class Engine(Protocol):
    """Single-round-trip SFTP requests.

    Every method raises :class:`~sftpkit.exceptions.SFTPError` (or a
    subclass) for a failure status from the server.
    """

    def open(self, path: str, mode: OpenMode, attrs: FileAttributes) -> IO[bytes]: ...

    def open_dir(self, path: str) -> RemoteDirectory: ...

    def make_dir(self, path: str, attrs: FileAttributes = FileAttributes.EMPTY) -> None: ...

    def remove(self, path: str) -> None: ...

    def remove_dir(self, path: str) -> None: ...

    def rename(self, old_path: str, new_path: str, flags: RenameFlags = RenameFlags(0)) -> None: ...

    def symlink(self, link_path: str, target_path: str) -> None: ...

    def read_link(self, path: str) -> str: ...

    def canonicalize(self, path: str) -> str: ...

    def stat(self, path: str) -> FileAttributes: ...

    def lstat(self, path: str) -> FileAttributes: ...

    def set_attributes(self, path: str, attrs: FileAttributes) -> None: ...

    @property
    def protocol_version(self) -> int: ...

    def close(self) -> None: ...


# ---------------------------------------------------------------------------
# paramiko conversions
# ---------------------------------------------------------------------------

def attributes_from_paramiko(pattrs: paramiko.SFTPAttributes) -> FileAttributes:
    """Convert :class:`paramiko.SFTPAttributes`, keeping unset fields unset."""
    return FileAttributes(
        size=pattrs.st_size,
        uid=pattrs.st_uid,
        gid=pattrs.st_gid,
        mode=pattrs.st_mode,
        atime=pattrs.st_atime,
        mtime=pattrs.st_mtime,
        extended=dict(pattrs.attr or {}),
    )


def attributes_to_paramiko(attrs: FileAttributes) -> paramiko.SFTPAttributes:
    """Build :class:`paramiko.SFTPAttributes` carrying only the set fields.

    paramiko packs a field only when it is not ``None``.
    """
    pattrs = paramiko.SFTPAttributes()
    pattrs.st_size = attrs.size
    pattrs.st_uid = attrs.uid
    pattrs.st_gid = attrs.gid
    pattrs.st_mode = attrs.mode
    pattrs.st_atime = attrs.atime
    pattrs.st_mtime = attrs.mtime
    pattrs.attr = dict(attrs.extended)
    return pattrs


def _python_mode(mode: OpenMode) -> str:
    """Mode string for :class:`paramiko.SFTPFile` buffering, from *mode*."""
    readable = OpenMode.READ in mode
    if OpenMode.APPEND in mode:
        return "a+b" if readable else "ab"
    if OpenMode.WRITE in mode:
        return "r+b" if readable else "wb"
    return "rb"


class StatusSFTPClient(paramiko.SFTPClient):
    """:class:`paramiko.SFTPClient` that keeps the status code of failed requests.

    ``EOF`` is still raised as :class:`EOFError`, which paramiko's own
    read loops rely on.
    """

    def _convert_status(self, msg):
        code = msg.get_int()
        text = msg.get_text()
        if code == SFTP_OK:
            return
        if code == SFTP_EOF:
            raise EOFError(text)
        try:
            status = StatusCode(code)
        except ValueError:
            status = StatusCode.UNKNOWN
        raise SFTPError.from_status(status, text)


@contextmanager
def _translated(path: str | None) -> Iterator[None]:
    """Re-raise paramiko's converted status errors as :class:`SFTPError`."""
    try:
        yield
    except SFTPError as exc:
        if exc.filename is None:
            exc.filename = path
        raise
    except EOFError as exc:
        raise SFTPError(StatusCode.EOF, str(exc) or "End of file", path) from exc
    except OSError as exc:
        message = exc.strerror or str(exc)
        if exc.errno == errno.ENOENT:
            raise NoSuchFileError(message, path) from exc
        if exc.errno == errno.EACCES:
            raise PermissionDeniedError(message, path) from exc
        if exc.errno is None and type(exc) is OSError:
            raise SFTPError(StatusCode.FAILURE, message, path) from exc
        raise


class ParamikoDirectory(RemoteDirectory):
    """Directory handle read one ``READDIR`` reply at a time."""

    def __init__(self, sftp: paramiko.SFTPClient, path: str, handle: bytes):
        super().__init__(path)
        self._sftp = sftp
        self._handle = handle
        self._eof = False

    def read_batch(self) -> list[RemoteResourceInfo] | None:
        if self._eof:
            return None
        with _translated(self.path):
            try:
                t, msg = self._sftp._request(CMD_READDIR, self._handle)
            except EOFError:
                self._eof = True
                return None
        if t != CMD_NAME:
            raise paramiko.SFTPError("Expected name response")
        batch = []
        for _ in range(msg.get_int()):
            filename = msg.get_text()
            longname = msg.get_text()
            pattrs = paramiko.SFTPAttributes._from_msg(msg, filename, longname)
            batch.append(RemoteResourceInfo(
                name=filename,
                path=join(self.path, filename),
                attributes=attributes_from_paramiko(pattrs),
            ))
        return batch

    def _release(self) -> None:
        with _translated(self.path):
            self._sftp._request(CMD_CLOSE, self._handle)


class ParamikoEngine:
    """:class:`Engine` backed by a :class:`paramiko.SFTPClient`.

    Pass a :class:`StatusSFTPClient` to keep every status code; a plain
    :class:`paramiko.SFTPClient` reports most failures as ``FAILURE``.
    When *ssh_client* is given the engine owns it and closes it together
    with the SFTP channel.
    """

    def __init__(
        self,
        sftp: paramiko.SFTPClient,
        *,
        ssh_client: paramiko.SSHClient | None = None,
        logger=None,
    ):
        self._sftp = sftp
        self._ssh_client = ssh_client
        self._log = (logger or structlog.get_logger("sftpkit")).bind(component="engine")
        self._closed = False

    @classmethod
    def connect(cls, config: ConnectionConfig, *, logger=None) -> ParamikoEngine:
        """Open an SSH connection described by *config* and start SFTP on it."""
        log = (logger or structlog.get_logger("sftpkit")).bind(component="engine")
        client = paramiko.SSHClient()
        client.load_system_host_keys()
        if config.strict_host_keys:
            client.set_missing_host_key_policy(paramiko.RejectPolicy())
        else:
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        log.info("ssh.connect", host=config.host, port=config.port, username=config.username)
        client.connect(
            config.host,
            port=config.port,
            username=config.username,
            password=config.password,
            key_filename=config.key_filename,
            timeout=config.timeout,
        )
        try:
            sftp = StatusSFTPClient.from_transport(client.get_transport())
            if sftp is None:
                raise paramiko.SSHException("Could not open an SFTP session")
        except Exception:
            client.close()
            raise
        return cls(sftp, ssh_client=client, logger=logger)

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"ParamikoEngine({state})"

    @property
    def protocol_version(self) -> int:
        return SFTP_PROTOCOL_VERSION

    def open(self, path: str, mode: OpenMode, attrs: FileAttributes) -> paramiko.SFTPFile:
        self._log.debug("sftp.open", path=path, mode=str(mode))
        with _translated(path):
            t, msg = self._sftp._request(CMD_OPEN, path, mode.value, attributes_to_paramiko(attrs))
        if t != CMD_HANDLE:
            raise paramiko.SFTPError("Expected handle")
        return paramiko.SFTPFile(self._sftp, msg.get_binary(), _python_mode(mode))

    def open_dir(self, path: str) -> ParamikoDirectory:
        self._log.debug("sftp.opendir", path=path)
        with _translated(path):
            t, msg = self._sftp._request(CMD_OPENDIR, path)
        if t != CMD_HANDLE:
            raise paramiko.SFTPError("Expected handle")
        return ParamikoDirectory(self._sftp, path, msg.get_binary())

    def make_dir(self, path: str, attrs: FileAttributes = FileAttributes.EMPTY) -> None:
        self._log.debug("sftp.mkdir", path=path)
        with _translated(path):
            self._sftp._request(CMD_MKDIR, path, attributes_to_paramiko(attrs))

    def remove(self, path: str) -> None:
        self._log.debug("sftp.remove", path=path)
        with _translated(path):
            self._sftp.remove(path)

    def remove_dir(self, path: str) -> None:
        self._log.debug("sftp.rmdir", path=path)
        with _translated(path):
            self._sftp.rmdir(path)

    def rename(self, old_path: str, new_path: str, flags: RenameFlags = RenameFlags(0)) -> None:
        """Rename *old_path* to *new_path*.

        SFTP v3 has no rename flags.  ``OVERWRITE`` (alone or with
        ``ATOMIC``) is served by the ``posix-rename@openssh.com``
        extension, which replaces the destination atomically.  ``ATOMIC``
        without ``OVERWRITE`` cannot be honoured and fails with
        ``OP_UNSUPPORTED``.  ``NATIVE`` has no effect.
        """
        self._log.debug("sftp.rename", old_path=old_path, new_path=new_path, flags=str(flags))
        if RenameFlags.OVERWRITE in flags:
            with _translated(old_path):
                self._sftp.posix_rename(old_path, new_path)
        elif RenameFlags.ATOMIC in flags:
            raise SFTPError(
                StatusCode.OP_UNSUPPORTED,
                "Atomic rename requires OVERWRITE on SFTP v3",
                old_path,
            )
        else:
            with _translated(old_path):
                self._sftp.rename(old_path, new_path)

    def symlink(self, link_path: str, target_path: str) -> None:
        self._log.debug("sftp.symlink", link_path=link_path, target_path=target_path)
        with _translated(link_path):
            self._sftp.symlink(target_path, link_path)

    def read_link(self, path: str) -> str:
        self._log.debug("sftp.readlink", path=path)
        with _translated(path):
            target = self._sftp.readlink(path)
        if target is None:
            raise SFTPError(StatusCode.BAD_MESSAGE, "Empty readlink reply", path)
        return target

    def canonicalize(self, path: str) -> str:
        self._log.debug("sftp.realpath", path=path)
        with _translated(path):
            return self._sftp.normalize(path)

    def stat(self, path: str) -> FileAttributes:
        self._log.debug("sftp.stat", path=path)
        with _translated(path):
            return attributes_from_paramiko(self._sftp.stat(path))

    def lstat(self, path: str) -> FileAttributes:
        self._log.debug("sftp.lstat", path=path)
        with _translated(path):
            return attributes_from_paramiko(self._sftp.lstat(path))

    def set_attributes(self, path: str, attrs: FileAttributes) -> None:
        self._log.debug("sftp.setstat", path=path, attrs=repr(attrs))
        with _translated(path):
            self._sftp._request(CMD_SETSTAT, path, attributes_to_paramiko(attrs))

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._log.info("sftp.close")
        try:
            self._sftp.close()
        finally:
            if self._ssh_client is not None:
                self._ssh_client.close()
