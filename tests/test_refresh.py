from __future__ import annotations

import threading

import pytest

from sheetview.data import dataset_signature
from sheetview.dataset import build_dataset
from sheetview.errors import FetchFailed
from sheetview.refresh import RefreshMonitor


class FakeSource:
    def __init__(self):
        self.grid = [["Name"], ["a"]]
        self.error = None
        self.calls = 0

    def load(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return build_dataset(self.grid)


@pytest.fixture()
def source():
    return FakeSource()


@pytest.fixture()
def monitor(source):
    m = RefreshMonitor(source.load, dataset_signature, interval=0.01)
    m.load()
    return m


def test_initial_load(monitor):
    assert monitor.version == 1
    assert len(monitor.current) == 1


def test_unchanged_data_is_not_replaced(monitor):
    before = monitor.current
    assert monitor.refresh() is False
    assert monitor.current is before
    assert monitor.version == 1


def test_changed_data_replaces_dataset(monitor, source):
    source.grid = [["Name"], ["a"], ["b"]]
    assert monitor.refresh() is True
    assert monitor.version == 2
    assert monitor.current.text["Name"].tolist() == ["a", "b"]


def test_failed_refresh_keeps_previous_data(monitor, source):
    before = monitor.current
    source.error = FetchFailed("offline")
    assert monitor.refresh() is False
    assert monitor.current is before
    assert monitor.last_error == "offline"
    source.error = None
    source.grid = [["Name"], ["z"]]
    assert monitor.refresh() is True
    assert monitor.last_error is None


def test_unexpected_errors_are_swallowed(monitor, source):
    source.error = RuntimeError("boom")
    assert monitor.refresh() is False
    assert monitor.last_error == "boom"


def test_initial_load_errors_propagate(source):
    source.error = FetchFailed()
    with pytest.raises(FetchFailed):
        RefreshMonitor(source.load, dataset_signature).load()


def test_overlapping_refresh_is_skipped(source):
    started = threading.Event()
    release = threading.Event()

    def slow_load():
        started.set()
        release.wait(2)
        return build_dataset([["Name"], ["slow"]])

    m = RefreshMonitor(slow_load, dataset_signature)
    worker = threading.Thread(target=m.refresh)
    worker.start()
    started.wait(2)
    assert m.refresh() is False
    release.set()
    worker.join(2)
    assert m.version == 1
    assert m.current.text["Name"].tolist() == ["slow"]


def test_background_thread_picks_up_changes(monitor, source):
    source.grid = [["Name"], ["a"], ["c"]]
    monitor.start()
    try:
        for _ in range(200):
            if monitor.version > 1:
                break
            threading.Event().wait(0.01)
    finally:
        monitor.stop()
    assert monitor.version == 2
