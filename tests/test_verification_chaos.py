"""Verification Test: Chaos Monkey - flaky OS queries.

Probe failures must degrade to zero or stale values; they must never stop the
monitor or reach the owner thread as exceptions.
"""

import random
import time
from types import SimpleNamespace

from conftest import GB, SteppingPerCoreSource, disk_usage, partition, virtual_memory
from hoststat.config import MonitorConfig
from hoststat.cpu import LoadEstimator, TickSampler
from hoststat.memory import MemoryProbe
from hoststat.monitor import SystemMonitor
from hoststat.volumes import VolumeProbe


class FlakySource(SteppingPerCoreSource):
    """Stepping per-core source that randomly fails before or after acquisition."""

    def __init__(self, rng: random.Random, failure_rate: float = 0.3):
        super().__init__(cores=4)
        self._rng = rng
        self._rate = failure_rate

    def __call__(self):
        if self._rng.random() < self._rate:
            raise OSError("host_processor_info: KERN_FAILURE")
        return super().__call__()


def flaky_memory(rng: random.Random, failure_rate: float = 0.3):
    def source():
        if rng.random() < failure_rate:
            raise OSError("host_statistics64: KERN_FAILURE")
        return virtual_memory(active=rng.randint(1, 6) * GB, wired=GB, total=8 * GB)

    return source


class TestChaosMonkey:
    """Chaos Monkey verification suite tests."""

    def test_monitor_survives_flaky_probes(self):
        """Test the monitor keeps publishing sane values while probes fail at random."""
        rng = random.Random(1234)
        source = FlakySource(rng)
        sampler = TickSampler(source)
        monitor = SystemMonitor(
            config=MonitorConfig(interval=0.02),
            tick_sampler=sampler,
            estimator=LoadEstimator(sampler, sleep=lambda _: None),
            memory_probe=MemoryProbe(flaky_memory(rng)),
            volume_probe=VolumeProbe(partitions=lambda: [], usage=lambda path: None),
            is_arm=True,
        )

        monitor.start()
        updates = 0
        try:
            deadline = time.monotonic() + 2.0
            while time.monotonic() < deadline:
                if monitor.apply_pending():
                    updates += 1
                    state = monitor.state
                    assert 0.0 <= state.cpu_load_percent <= 100.0
                    assert state.memory_used_gb <= state.memory_total_gb or state.memory_total_gb == 0.0
                time.sleep(0.01)

            assert monitor.is_running, "Monitor should still be running after chaos"
        finally:
            monitor.stop()

        assert updates >= 5, f"Expected at least 5 updates during chaos, got {updates}"
        assert monitor.state.memory_total_gb in (0.0, 8.0)

    def test_volume_failures_do_not_hide_other_volumes(self):
        """Test random per-volume failures only drop the failing volumes."""
        rng = random.Random(42)
        mounts = [f"/Volumes/Disk{i}" for i in range(50)] + ["/System/Volumes/Data"]
        broken = {m for m in mounts if rng.random() < 0.4}

        def usage(path):
            if path in broken:
                raise OSError(f"statfs {path}")
            return disk_usage(100 * GB, 60 * GB)

        probe = VolumeProbe(partitions=lambda: [partition(m) for m in mounts], usage=usage)
        volumes = probe.enumerate()

        expected = [m for m in mounts if m not in broken and "/System" not in m]
        assert [v.path for v in volumes] == expected
        assert len(probe.failures) == len([m for m in broken if "/System" not in m])

    def test_malformed_memory_reading_is_contained(self):
        """Test a reading missing its counters fails closed."""
        probe = MemoryProbe(lambda: SimpleNamespace(total=8 * GB))
        snapshot, failure = probe.read()
        assert snapshot.used_bytes == 0
        assert failure is not None
