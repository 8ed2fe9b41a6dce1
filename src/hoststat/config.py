"""Sampling constants for hoststat."""

from dataclasses import dataclass

# Seconds between sampling ticks
SAMPLE_INTERVAL = 0.7

# Seconds between the two tick snapshots of one load estimate
LOAD_WINDOW = 1.0

# Mountpoints containing this marker belong to the OS itself
SYSTEM_VOLUME_MARKER = "/System"

# user, system, idle, nice
CPU_STATE_MAX = 4

BYTES_PER_GB = 1024**3

# A load estimate outlives one interval, so ticks overlap
SAMPLER_WORKERS = 4


@dataclass(slots=True, frozen=True)
class MonitorConfig:
    """Tunables for SystemMonitor."""

    interval: float = SAMPLE_INTERVAL
    load_window: float = LOAD_WINDOW
    system_volume_marker: str = SYSTEM_VOLUME_MARKER
    max_workers: int = SAMPLER_WORKERS
