"""Mounted volume enumeration for hoststat."""

from collections.abc import Callable
from typing import Any

import psutil

from hoststat.config import BYTES_PER_GB, SYSTEM_VOLUME_MARKER
from hoststat.errors import ProbeFailure
from hoststat.log import get_logger, log_probe_failure
from hoststat.models import VolumeInfo

logger = get_logger("volumes")


class VolumeProbe:
    """
    Lists mounted, non-system volumes with their capacity and usage.

    A volume whose usage cannot be read is skipped; the others are still
    reported.
    """

    def __init__(
        self,
        partitions: Callable[[], list[Any]] = psutil.disk_partitions,
        usage: Callable[[str], Any] = psutil.disk_usage,
        system_marker: str = SYSTEM_VOLUME_MARKER,
    ) -> None:
        """
        Initialize the VolumeProbe.

        Args:
            partitions: Callable listing mounted partitions (objects with a
                ``mountpoint`` attribute).
            usage: Callable returning ``total`` and ``free`` bytes for a path.
            system_marker: Mountpoints containing this string are excluded.
        """
        self._partitions = partitions
        self._usage = usage
        self.system_marker = system_marker
        self.failures: list[ProbeFailure] = []

    def enumerate(self) -> list[VolumeInfo]:
        """Return one VolumeInfo per non-system volume, in mount order."""
        self.failures = []
        try:
            partitions = self._partitions()
        except (psutil.Error, OSError) as exc:
            self._fail("volumes", str(exc) or type(exc).__name__)
            return []

        volumes: list[VolumeInfo] = []
        seen: set[str] = set()
        for partition in partitions:
            path = partition.mountpoint
            if self.system_marker in path or path in seen:
                continue
            seen.add(path)

            try:
                usage = self._usage(path)
                capacity = int(usage.total)
                available = int(usage.free)
            except (psutil.Error, OSError, ValueError, TypeError, AttributeError) as exc:
                self._fail(f"volume:{path}", str(exc) or type(exc).__name__)
                continue

            volumes.append(build_volume_info(path, capacity, available))

        logger.info("volumes_enumerated", count=len(volumes), skipped=len(self.failures))
        return volumes

    def _fail(self, probe: str, reason: str) -> None:
        failure = ProbeFailure(probe, reason)
        self.failures.append(failure)
        log_probe_failure(logger, failure)


def build_volume_info(path: str, capacity_bytes: int, available_bytes: int) -> VolumeInfo:
    """Convert raw byte counts into a VolumeInfo, tolerating zero capacity."""
    capacity_gb = capacity_bytes / BYTES_PER_GB
    available_gb = available_bytes / BYTES_PER_GB
    if capacity_gb <= 0:
        percent_used = 0.0
    else:
        percent_used = (capacity_gb - available_gb) / capacity_gb * 100.0
        percent_used = min(100.0, max(0.0, percent_used))
    return VolumeInfo(path=path, capacity_gb=capacity_gb, percent_used=percent_used)
