"""CPU tick sampling and load estimation for hoststat."""

import platform
import time
from collections.abc import Callable, Iterator, Sequence
from contextlib import AbstractContextManager, contextmanager

import psutil

from hoststat.config import CPU_STATE_MAX, LOAD_WINDOW
from hoststat.errors import ProbeFailure
from hoststat.log import get_logger, log_probe_failure
from hoststat.models import CpuTickSnapshot

logger = get_logger("cpu")

# Offsets of each state inside one core's slice of the per-core buffer
CPU_STATE_USER = 0
CPU_STATE_SYSTEM = 1
CPU_STATE_IDLE = 2
CPU_STATE_NICE = 3

ARM_MACHINES = ("arm64", "aarch64")

PerCoreSource = Callable[[], AbstractContextManager[Sequence[float]]]


@contextmanager
def psutil_per_core_ticks() -> Iterator[list[float]]:
    """
    Acquire a flat per-core tick buffer from psutil.

    The buffer holds CPU_STATE_MAX counters per logical core, in the order
    user, system, idle, nice. It is released (cleared) when the block exits.
    """
    buffer: list[float] = []
    for times in psutil.cpu_times(percpu=True):
        # Windows has no nice counter
        buffer.extend((times.user, times.system, times.idle, getattr(times, "nice", 0.0)))
    try:
        yield buffer
    finally:
        buffer.clear()


class TickSampler:
    """
    Takes point-in-time readings of cumulative CPU ticks summed over all cores.

    Never raises: a failed OS query yields a zero snapshot and is recorded in
    ``last_failure``.
    """

    def __init__(self, source: PerCoreSource = psutil_per_core_ticks) -> None:
        """
        Initialize the TickSampler.

        Args:
            source: Callable returning a context manager that owns the
                per-core buffer for the duration of the ``with`` block.
        """
        self._source = source
        self.core_count = 0
        self.last_failure: ProbeFailure | None = None

    def sample(self) -> CpuTickSnapshot:
        """Read and aggregate the per-core tick counters."""
        snapshot, _ = self.read()
        return snapshot

    def read(self) -> tuple[CpuTickSnapshot, ProbeFailure | None]:
        """
        Like sample(), but also return the failure of this particular read.

        Safe to use when several threads share the sampler, where
        ``last_failure`` may already belong to another read.
        """
        user = system = idle = nice = 0.0
        try:
            with self._source() as buffer:
                if len(buffer) % CPU_STATE_MAX:
                    raise ValueError(f"buffer length {len(buffer)} is not a multiple of {CPU_STATE_MAX}")
                core_count = len(buffer) // CPU_STATE_MAX
                for core in range(core_count):
                    offset = core * CPU_STATE_MAX
                    user += float(buffer[offset + CPU_STATE_USER])
                    system += float(buffer[offset + CPU_STATE_SYSTEM])
                    idle += float(buffer[offset + CPU_STATE_IDLE])
                    nice += float(buffer[offset + CPU_STATE_NICE])
        except (psutil.Error, OSError, ValueError, TypeError, IndexError) as exc:
            failure = ProbeFailure("cpu_ticks", str(exc) or type(exc).__name__)
            self.last_failure = failure
            log_probe_failure(logger, failure)
            return CpuTickSnapshot(), failure

        self.core_count = core_count
        self.last_failure = None
        return CpuTickSnapshot(user=user, system=system, idle=idle, nice=nice), None


def compute_load(first: CpuTickSnapshot, second: CpuTickSnapshot) -> float:
    """
    Compute the busy percentage between two tick snapshots.

    Nice ticks are left out of both the busy and the total figure.

    Raises:
        ProbeFailure: If no user, system or idle ticks elapsed.
    """
    delta_user = second.user - first.user
    delta_system = second.system - first.system
    delta_idle = second.idle - first.idle
    total = delta_user + delta_system + delta_idle
    if total <= 0:
        raise ProbeFailure("cpu_load", f"no ticks elapsed between samples (delta={total})")
    return (delta_user + delta_system) / total * 100.0


class LoadEstimator:
    """Estimates CPU load from two tick samples taken ``window`` seconds apart."""

    def __init__(
        self,
        sampler: TickSampler | None = None,
        window: float = LOAD_WINDOW,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Initialize the LoadEstimator.

        Args:
            sampler: Tick sampler to read from. A psutil-backed one by default.
            window: Seconds to wait between the two samples.
            sleep: Blocking wait function, replaceable in tests.
        """
        self.sampler = sampler or TickSampler()
        self.window = window
        self._sleep = sleep
        self.last_failure: ProbeFailure | None = None

    def estimate_load(self) -> float:
        """
        Sample, wait one window, sample again and return the load percentage.

        Blocks the calling thread for ``window`` seconds. Returns 0.0 when
        either sample failed or no ticks elapsed.
        """
        first, first_failure = self.sampler.read()
        self._sleep(self.window)
        second, second_failure = self.sampler.read()
        failure = first_failure or second_failure

        if failure is not None:
            self.last_failure = failure
            return 0.0

        try:
            load = compute_load(first, second)
        except ProbeFailure as exc:
            self.last_failure = exc
            log_probe_failure(logger, exc)
            return 0.0

        self.last_failure = None
        return load


def detect_arm(machine: Callable[[], str] = platform.machine) -> bool:
    """Return True when the host CPU is an ARM-class (Apple Silicon-like) machine."""
    try:
        name = machine()
    except (OSError, UnicodeError) as exc:
        log_probe_failure(logger, ProbeFailure("architecture", str(exc) or type(exc).__name__))
        return False

    if not name:
        log_probe_failure(logger, ProbeFailure("architecture", "empty machine identifier"))
        return False

    return any(arch in name.lower() for arch in ARM_MACHINES)
