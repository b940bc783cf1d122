"""sftpkit CLI: POSIX-like file operations over SFTP."""

from ._helpers import main  # noqa: F401

# Import command modules to register Click commands with the main group.
from . import _basic, _transfer  # noqa: F401
