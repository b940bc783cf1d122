from .attributes import FileAttributes, FileType, OpenMode, RenameFlags
from .client import SFTPClient
from .config import ConnectionConfig
from .engine import Engine, ParamikoEngine
from .exceptions import (
    NoSuchFileError,
    PermissionDeniedError,
    SFTPError,
    StatusCode,
    WrongTypeError,
)
from .paths import PathComponents, PathHelper
from .remote import RemoteDirectory, RemoteResourceInfo
from .selectors import SELECT_ALL, Decision, FilterSelector, ResourceSelector, as_selector, first, glob_filter
from .transfer import FileTransfer

__all__ = [
    "SFTPClient", "ConnectionConfig", "Engine", "ParamikoEngine", "FileTransfer",
    "FileAttributes", "FileType", "OpenMode", "RenameFlags",
    "SFTPError", "NoSuchFileError", "PermissionDeniedError", "WrongTypeError", "StatusCode",
    "PathComponents", "PathHelper", "RemoteDirectory", "RemoteResourceInfo",
    "Decision", "ResourceSelector", "FilterSelector", "SELECT_ALL", "as_selector", "first", "glob_filter",
]
