"""Tests for listing selectors and the directory enumeration routine."""

import stat

import pytest

from sftpkit import FileAttributes
from sftpkit.remote import RemoteDirectory, RemoteResourceInfo
from sftpkit.selectors import (
    SELECT_ALL,
    Decision,
    FilterSelector,
    FirstSelector,
    as_selector,
    first,
    glob_filter,
)


def _info(name, mode=stat.S_IFREG | 0o644):
    return RemoteResourceInfo(name=name, path=f"/d/{name}", attributes=FileAttributes(mode=mode))


class ListDirectory(RemoteDirectory):
    """Directory handle serving fixed batches."""

    def __init__(self, batches):
        super().__init__("/d")
        self._batches = list(batches)
        self.reads = 0
        self.released = 0

    def read_batch(self):
        self.reads += 1
        if not self._batches:
            return None
        return self._batches.pop(0)

    def _release(self):
        self.released += 1


class Recorder:
    def __init__(self, answers):
        self.answers = dict(answers)
        self.seen = []

    def select(self, info):
        self.seen.append(info.name)
        return self.answers.get(info.name, Decision.INCLUDE)


class TestAsSelector:
    def test_none_is_select_all(self):
        assert as_selector(None) is SELECT_ALL

    def test_selector_passes_through(self):
        sel = first(1)
        assert as_selector(sel) is sel

    def test_predicate_is_wrapped(self):
        sel = as_selector(lambda info: info.name == "a")
        assert isinstance(sel, FilterSelector)
        assert sel.select(_info("a")) == Decision.INCLUDE
        assert sel.select(_info("b")) == Decision.EXCLUDE

    def test_rejects_other_values(self):
        with pytest.raises(TypeError):
            as_selector(42)


class TestFirst:
    def test_stops_after_limit(self):
        sel = first(2)
        assert [sel.select(_info(n)) for n in "abc"] == [
            Decision.INCLUDE, Decision.INCLUDE, Decision.STOP,
        ]

    def test_zero_stops_immediately(self):
        assert first(0).select(_info("a")) == Decision.STOP

    def test_predicate_excludes_without_counting(self):
        sel = first(1, lambda info: info.name.endswith(".csv"))
        assert sel.select(_info("a.txt")) == Decision.EXCLUDE
        assert sel.select(_info("b.csv")) == Decision.INCLUDE
        assert sel.select(_info("c.csv")) == Decision.STOP

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            FirstSelector(-1)


class TestGlobFilter:
    def test_matches_name(self):
        pred = glob_filter("*.csv")
        assert pred(_info("a.csv"))
        assert not pred(_info("a.txt"))

    def test_case_sensitive(self):
        assert not glob_filter("*.CSV")(_info("a.csv"))


class TestScan:
    def test_all_entries_in_server_order(self):
        d = ListDirectory([[_info("."), _info("..")], [_info("b"), _info("a")]])
        assert [i.name for i in d.scan()] == ["b", "a"]
        assert d.reads == 3

    def test_dot_entries_never_offered(self):
        rec = Recorder({})
        ListDirectory([[_info("."), _info("x"), _info("..")]]).scan(rec)
        assert rec.seen == ["x"]

    def test_exclude_all(self):
        d = ListDirectory([[_info("a"), _info("b")]])
        assert d.scan(FilterSelector(lambda info: False)) == []

    def test_stop_excludes_current_and_stops_reading(self):
        rec = Recorder({"b": Decision.STOP})
        d = ListDirectory([[_info("a"), _info("b"), _info("c")], [_info("d")]])
        assert [i.name for i in d.scan(rec)] == ["a"]
        assert rec.seen == ["a", "b"]
        assert d.reads == 1

    def test_stop_on_first_entry(self):
        d = ListDirectory([[_info("a")]])
        assert d.scan(first(0)) == []

    def test_empty_directory(self):
        assert ListDirectory([]).scan() == []

    def test_context_manager_releases_once(self):
        d = ListDirectory([])
        with d:
            pass
        d.close()
        assert d.closed
        assert d.released == 1

    def test_released_when_selector_raises(self):
        class Boom:
            def select(self, info):
                raise RuntimeError("boom")

        d = ListDirectory([[_info("a")]])
        with pytest.raises(RuntimeError):
            with d:
                d.scan(Boom())
        assert d.released == 1

    def test_scan_after_close(self):
        d = ListDirectory([])
        d.close()
        with pytest.raises(ValueError):
            d.scan()


class TestResourceInfo:
    def test_predicates(self):
        assert _info("d", stat.S_IFDIR | 0o755).is_directory
        assert _info("f").is_regular_file
        assert _info("l", stat.S_IFLNK | 0o777).is_symlink
        assert not _info("f").is_directory
