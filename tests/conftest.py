"""Shared fakes for hoststat tests."""

import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from types import SimpleNamespace

import pytest

from hoststat.cpu import LoadEstimator, TickSampler
from hoststat.memory import MemoryProbe
from hoststat.volumes import VolumeProbe

GB = 1024**3


class FakePerCoreSource:
    """
    Per-core tick source that hands out prepared buffers and counts releases.

    Each entry of ``buffers`` is either a flat counter list or an exception
    to raise on acquisition.
    """

    def __init__(self, buffers: Sequence[list[float] | Exception], fail_after_acquire: bool = False):
        self._buffers = list(buffers)
        self._index = 0
        self.fail_after_acquire = fail_after_acquire
        self.acquired = 0
        self.released = 0

    @contextmanager
    def __call__(self) -> Iterator[list[float]]:
        item = self._buffers[min(self._index, len(self._buffers) - 1)]
        self._index += 1
        if isinstance(item, Exception):
            raise item
        self.acquired += 1
        buffer = list(item)
        try:
            if self.fail_after_acquire:
                # Reading an entry that is not a number fails mid-aggregation
                buffer = buffer[:-1] + [None]
            yield buffer
        finally:
            self.released += 1


class SteppingPerCoreSource(FakePerCoreSource):
    """Per-core source whose counters advance by (20, 10, 20, 0) ticks per read."""

    def __init__(self, cores: int = 2):
        super().__init__([])
        self.cores = cores
        self._lock = threading.Lock()

    @contextmanager
    def __call__(self) -> Iterator[list[float]]:
        with self._lock:
            step = self.acquired
            self.acquired += 1
        try:
            yield per_core(*[(100 + 20 * step, 50 + 10 * step, 850 + 20 * step, 0)] * self.cores)
        finally:
            with self._lock:
                self.released += 1


def per_core(*cores: tuple[float, float, float, float]) -> list[float]:
    """Flatten (user, system, idle, nice) tuples into one buffer."""
    return [value for core in cores for value in core]


def virtual_memory(active: int = 4 * GB, wired: int = 2 * GB, total: int = 16 * GB, **extra) -> SimpleNamespace:
    return SimpleNamespace(active=active, wired=wired, total=total, **extra)


def partition(mountpoint: str) -> SimpleNamespace:
    return SimpleNamespace(mountpoint=mountpoint, device="/dev/fake", fstype="apfs")


def disk_usage(total: int, free: int) -> SimpleNamespace:
    return SimpleNamespace(total=total, free=free, used=total - free)


@pytest.fixture
def no_sleep():
    """Sleep replacement that records requested waits."""
    waits: list[float] = []
    return waits.append, waits


@pytest.fixture
def fake_probes(no_sleep):
    """Deterministic probes for SystemMonitor tests."""
    sleep, _ = no_sleep
    source = SteppingPerCoreSource(cores=2)
    sampler = TickSampler(source)
    estimator = LoadEstimator(sampler, window=1.0, sleep=sleep)
    usages = {
        "/": disk_usage(500 * GB, 300 * GB),
        "/Volumes/Data": disk_usage(1000 * GB, 250 * GB),
    }
    return SimpleNamespace(
        source=source,
        sampler=sampler,
        estimator=estimator,
        memory=MemoryProbe(lambda: virtual_memory()),
        volumes=VolumeProbe(
            partitions=lambda: [
                partition("/"),
                partition("/System/Volumes/Data"),
                partition("/Volumes/Data"),
            ],
            usage=lambda path: usages[path],
        ),
    )
