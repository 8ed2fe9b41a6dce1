"""Memory usage probe for hoststat."""

from collections.abc import Callable
from typing import Any

import psutil

from hoststat.config import BYTES_PER_GB
from hoststat.errors import ProbeFailure
from hoststat.log import get_logger, log_probe_failure
from hoststat.models import MemorySnapshot

logger = get_logger("memory")


class MemoryProbe:
    """
    Reads active and wired memory plus total physical memory.

    ``memory_used_gb`` and ``memory_total_gb`` hold the last successful
    reading; a failed query leaves them untouched.
    """

    def __init__(self, source: Callable[[], Any] = psutil.virtual_memory) -> None:
        """
        Initialize the MemoryProbe.

        Args:
            source: Callable returning an object with ``total`` and ``active``
                byte counts, and ``wired`` where the platform has it.
        """
        self._source = source
        self.memory_used_gb = 0.0
        self.memory_total_gb = 0.0
        self.last_failure: ProbeFailure | None = None

    def sample(self) -> MemorySnapshot:
        """Take one memory reading, returning a zero snapshot on failure."""
        snapshot, _ = self.read()
        return snapshot

    def read(self) -> tuple[MemorySnapshot, ProbeFailure | None]:
        """Take one memory reading and return it with this read's failure, if any."""
        try:
            vm = self._source()
            active = int(vm.active)
            # Linux and Windows do not report wired pages
            wired = int(getattr(vm, "wired", 0) or 0)
            total = int(vm.total)
            if active < 0 or wired < 0 or total <= 0:
                raise ValueError(f"implausible counters active={active} wired={wired} total={total}")
        except (psutil.Error, OSError, ValueError, TypeError, AttributeError) as exc:
            failure = ProbeFailure("memory", str(exc) or type(exc).__name__)
            self.last_failure = failure
            log_probe_failure(logger, failure)
            return MemorySnapshot(), failure

        snapshot = MemorySnapshot(active_bytes=active, wired_bytes=wired)
        self.memory_total_gb = total / BYTES_PER_GB
        self.memory_used_gb = snapshot.used_bytes / BYTES_PER_GB
        self.last_failure = None
        return snapshot, None
