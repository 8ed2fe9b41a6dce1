"""Data models for hoststat."""

import uuid
from dataclasses import dataclass, field


@dataclass(slots=True, frozen=True)
class CpuTickSnapshot:
    """Cumulative CPU ticks summed across all logical cores at one instant."""

    user: float = 0.0
    system: float = 0.0
    idle: float = 0.0
    nice: float = 0.0


@dataclass(slots=True, frozen=True)
class MemorySnapshot:
    """Active and wired memory in bytes."""

    active_bytes: int = 0
    wired_bytes: int = 0

    @property
    def used_bytes(self) -> int:
        """Bytes counted as in use (active + wired)."""
        return self.active_bytes + self.wired_bytes


@dataclass(slots=True, frozen=True)
class VolumeInfo:
    """Capacity and usage of one mounted, non-system volume."""

    path: str
    capacity_gb: float
    percent_used: float  # 0.0 - 100.0
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    @property
    def used_space_gb(self) -> float:
        return self.capacity_gb * (self.percent_used / 100.0)

    @property
    def free_space_gb(self) -> float:
        return self.capacity_gb - self.used_space_gb

    @property
    def percent_free(self) -> float:
        return 100.0 - self.percent_used


@dataclass(slots=True, frozen=True)
class PublishedState:
    """
    Latest values published by SystemMonitor for the presentation layer.

    Instances are immutable; the monitor replaces the whole state on each
    update so CPU load and memory always change together.
    """

    core_count: int = 0
    cpu_load_percent: float = 0.0
    memory_used_gb: float = 0.0
    memory_total_gb: float = 0.0
    is_arm: bool = False
    volumes: tuple[VolumeInfo, ...] = ()

    @property
    def memory_used_percent(self) -> float:
        """Memory in use as a percentage of physical memory, 0.0 if unknown."""
        if self.memory_total_gb <= 0:
            return 0.0
        return self.memory_used_gb / self.memory_total_gb * 100.0

    @property
    def load_label(self) -> str:
        """Headline for the load figure."""
        return "SoC load" if self.is_arm else "CPU load"
