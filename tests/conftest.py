"""Shared fixtures for sftpkit tests.

``MemoryEngine`` is an in-memory SFTP server standing in for
``ParamikoEngine``.  It records every request in ``engine.calls`` so tests
can assert on the exact sequence of round trips.
"""

import io
import posixpath
import stat
from dataclasses import dataclass

import pytest
import structlog
from click.testing import CliRunner

from sftpkit import SFTPClient
from sftpkit.attributes import FileAttributes, FileType, OpenMode, RenameFlags
from sftpkit.exceptions import NoSuchFileError, SFTPError, StatusCode
from sftpkit.remote import RemoteDirectory, RemoteResourceInfo


@dataclass
class Node:
    type: FileType
    data: bytes = b""
    uid: int = 1000
    gid: int = 1000
    perms: int = 0o644
    atime: int = 1_700_000_000
    mtime: int = 1_700_000_000
    target: str | None = None

    def attributes(self) -> FileAttributes:
        return FileAttributes(
            size=len(self.data) if self.type != FileType.SYMLINK else len(self.target or ""),
            uid=self.uid,
            gid=self.gid,
            mode=self.type.ifmt | self.perms,
            atime=self.atime,
            mtime=self.mtime,
        )


class MemoryFile(io.BytesIO):
    """Remote file handle; contents are stored back on close."""

    def __init__(self, engine, path, data, *, append=False, readable=True, writable=True):
        super().__init__(data)
        self._engine = engine
        self._path = path
        self._append = append
        self._readable = readable
        self._writable = writable
        if append:
            self.seek(0, io.SEEK_END)

    def read(self, size=-1):
        if not self._readable:
            raise SFTPError(StatusCode.PERMISSION_DENIED, "not opened for reading", self._path)
        return super().read(size)

    def write(self, data):
        if not self._writable:
            raise SFTPError(StatusCode.PERMISSION_DENIED, "not opened for writing", self._path)
        if self._append:
            self.seek(0, io.SEEK_END)
        return super().write(data)

    def close(self):
        if not self.closed:
            if self._writable:
                self._engine.nodes[self._path].data = self.getvalue()
            self._engine.open_handles -= 1
        super().close()


class MemoryDirectory(RemoteDirectory):
    def __init__(self, engine, path, names, batch_size):
        super().__init__(path)
        self._engine = engine
        self._pending = [".", ".."] + names
        self._batch_size = batch_size

    def read_batch(self):
        self._engine.calls.append(("readdir", self.path))
        if not self._pending:
            return None
        batch, self._pending = self._pending[:self._batch_size], self._pending[self._batch_size:]
        out = []
        for name in batch:
            if name in (".", ".."):
                attrs = self._engine.nodes[self._engine._abs(self.path)].attributes()
                full = self.path
            else:
                full = posixpath.join(self.path, name)
                attrs = self._engine.nodes[self._engine._abs(full)].attributes()
            out.append(RemoteResourceInfo(name=name, path=full, attributes=attrs))
        return out

    def _release(self):
        self._engine.calls.append(("closedir", self.path))
        self._engine.open_handles -= 1


class MemoryEngine:
    """In-memory implementation of the ``Engine`` protocol."""

    def __init__(self, *, cwd="/home/user", batch_size=2):
        self.cwd = cwd
        self.batch_size = batch_size
        self.nodes: dict[str, Node] = {"/": Node(FileType.DIRECTORY, perms=0o755)}
        self.calls: list[tuple] = []
        self.open_handles = 0
        self.close_count = 0
        self.add_dir(cwd)

    # --- test helpers ---

    def _abs(self, path):
        return posixpath.normpath(posixpath.join(self.cwd, path)).replace("//", "/")

    def add_dir(self, path, **kwargs):
        path = self._abs(path)
        parent = posixpath.dirname(path)
        if parent != path and parent not in self.nodes:
            self.add_dir(parent)
        kwargs.setdefault("perms", 0o755)
        self.nodes[path] = Node(FileType.DIRECTORY, **kwargs)
        return path

    def add_file(self, path, data=b"", **kwargs):
        path = self._abs(path)
        if posixpath.dirname(path) not in self.nodes:
            self.add_dir(posixpath.dirname(path))
        self.nodes[path] = Node(FileType.REGULAR, data=data, **kwargs)
        return path

    def read(self, path):
        return self.nodes[self._abs(path)].data

    def ops(self, name):
        return [c[1] for c in self.calls if c[0] == name]

    def _children(self, path):
        prefix = path.rstrip("/") + "/"
        return [
            p[len(prefix):] for p in self.nodes
            if p.startswith(prefix) and "/" not in p[len(prefix):] and p != path
        ]

    def _require(self, path, original):
        node = self.nodes.get(path)
        if node is None:
            raise NoSuchFileError("No such file", original)
        return node

    def _require_parent_dir(self, path, original):
        parent = self.nodes.get(posixpath.dirname(path))
        if parent is None:
            raise NoSuchFileError("No such file", original)
        if parent.type != FileType.DIRECTORY:
            raise SFTPError(StatusCode.FAILURE, "Failure", original)

    def _follow(self, path, original):
        for _ in range(32):
            node = self._require(path, original)
            if node.type != FileType.SYMLINK:
                return path, node
            path = self._abs(posixpath.join(posixpath.dirname(path), node.target))
        raise SFTPError(StatusCode.FAILURE, "Too many links", original)

    # --- Engine protocol ---

    @property
    def protocol_version(self):
        return 3

    def open(self, path, mode, attrs):
        self.calls.append(("open", path, mode))
        full = self._abs(path)
        node = self.nodes.get(full)
        if node is not None and node.type == FileType.SYMLINK:
            full, node = self._follow(full, path)
        if node is None:
            if OpenMode.CREAT not in mode:
                raise NoSuchFileError("No such file", path)
            self._require_parent_dir(full, path)
            perms = attrs.permissions if attrs.permissions is not None else 0o644
            node = self.nodes[full] = Node(FileType.REGULAR, perms=perms)
        elif OpenMode.EXCL in mode and OpenMode.CREAT in mode:
            raise SFTPError(StatusCode.FAILURE, "File exists", path)
        if node.type == FileType.DIRECTORY:
            raise SFTPError(StatusCode.FAILURE, "Is a directory", path)
        if OpenMode.TRUNC in mode:
            node.data = b""
        self.open_handles += 1
        return MemoryFile(
            self, full, node.data,
            append=OpenMode.APPEND in mode,
            readable=OpenMode.READ in mode,
            writable=bool(mode & (OpenMode.WRITE | OpenMode.APPEND)),
        )

    def open_dir(self, path):
        self.calls.append(("opendir", path))
        full, node = self._follow(self._abs(path), path)
        if node.type != FileType.DIRECTORY:
            raise SFTPError(StatusCode.FAILURE, "Not a directory", path)
        self.open_handles += 1
        return MemoryDirectory(self, path, self._children(full), self.batch_size)

    def make_dir(self, path, attrs=FileAttributes.EMPTY):
        self.calls.append(("mkdir", path))
        full = self._abs(path)
        if full in self.nodes:
            raise SFTPError(StatusCode.FAILURE, "File exists", path)
        self._require_parent_dir(full, path)
        perms = attrs.permissions if attrs.permissions is not None else 0o755
        self.nodes[full] = Node(FileType.DIRECTORY, perms=perms)

    def remove(self, path):
        self.calls.append(("remove", path))
        full = self._abs(path)
        node = self._require(full, path)
        if node.type == FileType.DIRECTORY:
            raise SFTPError(StatusCode.FAILURE, "Is a directory", path)
        del self.nodes[full]

    def remove_dir(self, path):
        self.calls.append(("rmdir", path))
        full = self._abs(path)
        node = self._require(full, path)
        if node.type != FileType.DIRECTORY:
            raise SFTPError(StatusCode.FAILURE, "Not a directory", path)
        if self._children(full):
            raise SFTPError(StatusCode.FAILURE, "Directory not empty", path)
        del self.nodes[full]

    def rename(self, old_path, new_path, flags=RenameFlags(0)):
        self.calls.append(("rename", old_path, new_path, flags))
        old, new = self._abs(old_path), self._abs(new_path)
        self._require(old, old_path)
        self._require_parent_dir(new, new_path)
        if new in self.nodes:
            if RenameFlags.OVERWRITE not in flags:
                raise SFTPError(StatusCode.FAILURE, "File exists", old_path)
            del self.nodes[new]
        prefix = old + "/"
        for p in sorted(self.nodes):
            if p == old or p.startswith(prefix):
                self.nodes[new + p[len(old):]] = self.nodes.pop(p)

    def symlink(self, link_path, target_path):
        self.calls.append(("symlink", link_path, target_path))
        full = self._abs(link_path)
        if full in self.nodes:
            raise SFTPError(StatusCode.FAILURE, "File exists", link_path)
        self._require_parent_dir(full, link_path)
        self.nodes[full] = Node(FileType.SYMLINK, perms=0o777, target=target_path)

    def read_link(self, path):
        self.calls.append(("readlink", path))
        node = self._require(self._abs(path), path)
        if node.type != FileType.SYMLINK:
            raise SFTPError(StatusCode.FAILURE, "Not a link", path)
        return node.target

    def canonicalize(self, path):
        self.calls.append(("realpath", path))
        return self._abs(path)

    def stat(self, path):
        self.calls.append(("stat", path))
        _, node = self._follow(self._abs(path), path)
        return node.attributes()

    def lstat(self, path):
        self.calls.append(("lstat", path))
        return self._require(self._abs(path), path).attributes()

    def set_attributes(self, path, attrs):
        self.calls.append(("setstat", path, attrs))
        _, node = self._follow(self._abs(path), path)
        if attrs.size is not None:
            node.data = node.data[:attrs.size].ljust(attrs.size, b"\0")
        if attrs.uid is not None:
            node.uid, node.gid = attrs.uid, attrs.gid
        if attrs.mode is not None:
            node.perms = stat.S_IMODE(attrs.mode)
        if attrs.atime is not None:
            node.atime, node.mtime = attrs.atime, attrs.mtime

    def close(self):
        self.close_count += 1


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()


@pytest.fixture
def engine():
    return MemoryEngine()


@pytest.fixture
def client(engine):
    return SFTPClient(engine)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def populated(engine):
    """Engine with a small tree.

    Tree:
        /srv/data/a.txt, /srv/data/b.csv, /srv/data/c.csv,
        /srv/data/sub/, /srv/notes.txt (uid 10, gid 20)
    """
    engine.add_file("/srv/data/a.txt", b"alpha")
    engine.add_file("/srv/data/b.csv", b"1,2\n")
    engine.add_file("/srv/data/c.csv", b"3,4\n")
    engine.add_dir("/srv/data/sub")
    engine.add_file("/srv/notes.txt", b"notes", uid=10, gid=20)
    engine.calls.clear()
    return engine
