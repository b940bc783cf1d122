"""Selectors deciding which directory entries a listing returns.

A selector is consulted once per entry while a directory is being read
and answers with a :class:`Decision`:

- ``INCLUDE``: keep the entry and keep reading,
- ``EXCLUDE``: drop the entry and keep reading,
- ``STOP``: drop the entry and stop reading the directory.

Plain predicates (``info -> bool``) are adapted with :class:`FilterSelector`
so callers can pass either one to :meth:`~sftpkit.SFTPClient.ls`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from fnmatch import fnmatchcase
from typing import TYPE_CHECKING, Callable, Protocol, Union, runtime_checkable

if TYPE_CHECKING:
    from .remote import RemoteResourceInfo

__all__ = [
    "Decision", "ResourceSelector", "ResourceFilter", "FilterSelector",
    "FirstSelector", "SELECT_ALL", "as_selector", "first", "glob_filter",
]


class Decision(str, Enum):
    """Outcome of a selector for one directory entry."""
    INCLUDE = "include"
    EXCLUDE = "exclude"
    STOP = "stop"

    def __str__(self) -> str:          # noqa: D105
        return self.value


ResourceFilter = Callable[["RemoteResourceInfo"], bool]


@runtime_checkable
class ResourceSelector(Protocol):
    def select(self, info: RemoteResourceInfo) -> Decision:
        ...


class _SelectAll:
    def select(self, info: RemoteResourceInfo) -> Decision:
        return Decision.INCLUDE

    def __repr__(self) -> str:
        return "SELECT_ALL"


SELECT_ALL: ResourceSelector = _SelectAll()


@dataclass(frozen=True)
class FilterSelector:
    """Adapt a predicate into a selector that never stops early."""

    predicate: ResourceFilter

    def select(self, info: RemoteResourceInfo) -> Decision:
        return Decision.INCLUDE if self.predicate(info) else Decision.EXCLUDE


class FirstSelector:
    """Include the first *limit* entries accepted by *predicate*, then stop.

    Stateful: use a fresh instance per listing (see :func:`first`).
    """

    def __init__(self, limit: int, predicate: ResourceFilter | None = None):
        if limit < 0:
            raise ValueError(f"limit must be non-negative: {limit}")
        self._limit = limit
        self._predicate = predicate
        self._taken = 0

    def select(self, info: RemoteResourceInfo) -> Decision:
        if self._taken >= self._limit:
            return Decision.STOP
        if self._predicate is not None and not self._predicate(info):
            return Decision.EXCLUDE
        self._taken += 1
        return Decision.INCLUDE


def first(limit: int, predicate: ResourceFilter | None = None) -> FirstSelector:
    """Return a selector that stops the listing after *limit* matches."""
    return FirstSelector(limit, predicate)


def glob_filter(pattern: str) -> ResourceFilter:
    """Return a predicate matching entry names against a shell glob.

    Matching is case-sensitive, as remote names are.
    """
    def _match(info: RemoteResourceInfo) -> bool:
        return fnmatchcase(info.name, pattern)
    return _match


SelectorLike = Union[ResourceSelector, ResourceFilter, None]


def as_selector(value: SelectorLike) -> ResourceSelector:
    """Normalize a selector, a predicate, or ``None`` into a selector.

    Raises:
        TypeError: If *value* is neither.
    """
    if value is None:
        return SELECT_ALL
    if isinstance(value, ResourceSelector):
        return value
    if callable(value):
        return FilterSelector(value)
    raise TypeError(f"Expected a selector or a predicate, got {type(value).__name__}")
