"""Exceptions for sftpkit."""

from __future__ import annotations

import errno
from enum import IntEnum


class StatusCode(IntEnum):
    """SFTP v3 status codes (``SSH_FX_*``), plus ``UNKNOWN`` for local errors."""
    UNKNOWN = -1
    OK = 0
    EOF = 1
    NO_SUCH_FILE = 2
    PERMISSION_DENIED = 3
    FAILURE = 4
    BAD_MESSAGE = 5
    NO_CONNECTION = 6
    CONNECTION_LOST = 7
    OP_UNSUPPORTED = 8


_STATUS_ERRNO = {
    StatusCode.NO_SUCH_FILE: errno.ENOENT,
    StatusCode.PERMISSION_DENIED: errno.EACCES,
    StatusCode.FAILURE: errno.EIO,
    StatusCode.BAD_MESSAGE: errno.EBADMSG,
    StatusCode.NO_CONNECTION: errno.ENOTCONN,
    StatusCode.CONNECTION_LOST: errno.ECONNRESET,
    StatusCode.OP_UNSUPPORTED: errno.EOPNOTSUPP,
}


class SFTPError(OSError):
    """A failure status returned by the remote peer.

    The status code is kept verbatim so callers can tell "doesn't exist"
    from "permission denied" from "not a directory" without parsing
    messages.

    Attributes:
        status_code: :class:`StatusCode` reported for the request.
        path: Remote path the request named, or ``None``.
    """

    def __init__(self, status_code: StatusCode, message: str = "", path: str | None = None):
        self.status_code = StatusCode(status_code)
        super().__init__(_STATUS_ERRNO.get(self.status_code, 0), message or self.status_code.name, path)

    @classmethod
    def from_status(cls, status_code: StatusCode, message: str = "", path: str | None = None) -> SFTPError:
        """Build the most specific subclass for *status_code*."""
        if status_code == StatusCode.NO_SUCH_FILE:
            return NoSuchFileError(message, path)
        if status_code == StatusCode.PERMISSION_DENIED:
            return PermissionDeniedError(message, path)
        return cls(status_code, message, path)

    @property
    def path(self) -> str | None:
        return self.filename

    def __str__(self) -> str:
        if self.filename is not None:
            return f"[{self.status_code.name}] {self.strerror}: {self.filename!r}"
        return f"[{self.status_code.name}] {self.strerror}"


class NoSuchFileError(SFTPError, FileNotFoundError):
    """The remote path does not exist (``SSH_FX_NO_SUCH_FILE``)."""

    def __init__(self, message: str = "", path: str | None = None):
        super().__init__(StatusCode.NO_SUCH_FILE, message or "No such file", path)


class PermissionDeniedError(SFTPError, PermissionError):
    """The server refused the request (``SSH_FX_PERMISSION_DENIED``)."""

    def __init__(self, message: str = "", path: str | None = None):
        super().__init__(StatusCode.PERMISSION_DENIED, message or "Permission denied", path)


class WrongTypeError(SFTPError, NotADirectoryError):
    """A path exists but is the wrong kind of entry for the operation.

    Raised locally (no status from the server), e.g. by
    :meth:`~sftpkit.SFTPClient.mkdirs` when an ancestor is a regular file.
    """

    def __init__(self, message: str = "", path: str | None = None):
        super().__init__(StatusCode.UNKNOWN, message or "Not a directory", path)
