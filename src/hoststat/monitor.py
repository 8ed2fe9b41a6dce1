"""Background sampling engine for hoststat."""

import dataclasses
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from queue import Empty, Queue

from hoststat.config import BYTES_PER_GB, MonitorConfig
from hoststat.cpu import LoadEstimator, TickSampler, detect_arm
from hoststat.log import get_logger
from hoststat.memory import MemoryProbe
from hoststat.models import PublishedState
from hoststat.volumes import VolumeProbe

logger = get_logger("monitor")


class MonitorStatus(Enum):
    """Lifecycle of a SystemMonitor. Construction leaves it INITIALIZING."""

    INITIALIZING = "initializing"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass(slots=True, frozen=True)
class SampleResult:
    """Completion message sent from a sampling work item to the owner thread."""

    generation: int
    cpu_load_percent: float
    # None when the memory probe failed for this tick
    memory_used_gb: float | None
    memory_total_gb: float | None
    # Sampler core count at the end of the work item; 0 if never learned
    core_count: int = 0


class SystemMonitor:
    """
    Periodically samples CPU load and memory and publishes the latest values.

    A daemon timer thread submits one sampling work item per interval to a
    thread pool. Work items post SampleResult messages to a queue; only
    apply_pending(), called on the thread that built the monitor, turns them
    into a new PublishedState.
    """

    def __init__(
        self,
        config: MonitorConfig | None = None,
        tick_sampler: TickSampler | None = None,
        estimator: LoadEstimator | None = None,
        memory_probe: MemoryProbe | None = None,
        volume_probe: VolumeProbe | None = None,
        is_arm: bool | None = None,
    ) -> None:
        """
        Initialize the SystemMonitor.

        Detects the architecture, learns the core count and enumerates
        volumes once. Sampling starts with start().

        Args:
            config: Interval, load window and pool size. Defaults apply if None.
            tick_sampler: Sampler shared with the default estimator.
            estimator: Load estimator. Built from tick_sampler if None.
            memory_probe: Memory probe.
            volume_probe: Volume probe, used exactly once here.
            is_arm: Architecture override; detected from the host if None.
        """
        self.config = config or MonitorConfig()
        self._owner_thread = threading.get_ident()
        self._results: Queue[SampleResult] = Queue()
        self._generation = 0
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._executor: ThreadPoolExecutor | None = None

        self._tick_sampler = tick_sampler or TickSampler()
        self._estimator = estimator or LoadEstimator(self._tick_sampler, window=self.config.load_window)
        self._memory_probe = memory_probe or MemoryProbe()
        self._volume_probe = volume_probe or VolumeProbe(system_marker=self.config.system_volume_marker)

        self._status = MonitorStatus.INITIALIZING
        self._state = self._initial_state(is_arm)

    def _initial_state(self, is_arm: bool | None) -> PublishedState:
        """Collect the values that are fixed for the life of the process."""
        if is_arm is None:
            is_arm = detect_arm()
        # One sample to learn the core count
        self._tick_sampler.sample()
        volumes = self._volume_probe.enumerate()
        return PublishedState(
            core_count=self._tick_sampler.core_count,
            is_arm=is_arm,
            volumes=tuple(volumes),
        )

    @property
    def state(self) -> PublishedState:
        """The latest published state. Immutable."""
        return self._state

    @property
    def status(self) -> MonitorStatus:
        return self._status

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_running(self) -> bool:
        """Check if the timer thread is running and has not been told to stop."""
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    def start(self) -> None:
        """Arm the sampling timer."""
        if self.is_running:
            return

        # Each timer thread owns its stop event, so a thread still winding
        # down after stop() can never be re-armed by this one
        self._stop_event = threading.Event()
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_workers,
            thread_name_prefix="hoststat-sampler",
        )
        self._thread = threading.Thread(
            target=self._timer_loop,
            args=(self._executor, self._generation, self._stop_event),
            daemon=True,
            name="SystemMonitor",
        )
        self._thread.start()
        self._status = MonitorStatus.RUNNING
        logger.info("monitor_started", interval=self.config.interval, generation=self._generation)

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the timer and abandon in-flight sampling work.

        Work items already running finish in the background; their results
        carry the old generation and are dropped by apply_pending().

        Args:
            timeout: How long to wait for the timer thread to stop (seconds).
        """
        self._generation += 1
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                # Keep the handle; the thread exits on its own once its wait returns
                logger.warning("timer_thread_still_running", timeout=timeout)
            else:
                self._thread = None
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
        if self._status is MonitorStatus.RUNNING:
            self._status = MonitorStatus.STOPPED
            logger.info("monitor_stopped", generation=self._generation)

    def _timer_loop(self, executor: ThreadPoolExecutor, generation: int, stop_event: threading.Event) -> None:
        """Submit one sampling work item per interval until stopped."""
        # Event.wait returns True once stop() has been called
        while not stop_event.wait(timeout=self.config.interval):
            try:
                executor.submit(self._sample, generation)
            except RuntimeError:
                # Pool shut down between the wait and the submit
                break

    def _collect(self, generation: int) -> SampleResult | None:
        """Run the memory probe, then the load estimate. Never raises."""
        try:
            snapshot, memory_failure = self._memory_probe.read()
            # Blocks for the load window
            load = self._estimator.estimate_load()
        except Exception:
            logger.exception("sample_failed", generation=generation)
            return None

        core_count = self._estimator.sampler.core_count
        if memory_failure is not None:
            return SampleResult(generation, load, None, None, core_count)
        return SampleResult(
            generation,
            load,
            snapshot.used_bytes / BYTES_PER_GB,
            self._memory_probe.memory_total_gb,
            core_count,
        )

    def _sample(self, generation: int) -> SampleResult | None:
        """Sampling work item. Queues and returns its result."""
        result = self._collect(generation)
        if result is not None:
            self._results.put(result)
        return result

    def sample_once(self) -> SampleResult | None:
        """Run one sampling work item on the calling thread. Blocks for the load window."""
        return self._sample(self._generation)

    def apply_pending(self) -> bool:
        """
        Publish the newest current-generation result, if any.

        Must be called on the thread that created the monitor.

        Returns:
            True if the published state changed.
        """
        if threading.get_ident() != self._owner_thread:
            raise RuntimeError("SystemMonitor state may only be updated from its owner thread")

        latest = None
        while True:
            try:
                result = self._results.get_nowait()
            except Empty:
                break
            if result.generation != self._generation:
                logger.debug("stale_result_dropped", generation=result.generation, current=self._generation)
                continue
            latest = result

        if latest is None:
            return False

        self._state = self._merge(self._state, latest)
        return True

    @staticmethod
    def _merge(state: PublishedState, result: SampleResult) -> PublishedState:
        """Build the next state from the current one and a sampling result."""
        # Core count is fixed once known; a failed startup sample leaves it 0
        core_count = state.core_count or result.core_count
        if result.memory_used_gb is None:
            # Keep the previous memory pair
            return dataclasses.replace(state, cpu_load_percent=result.cpu_load_percent, core_count=core_count)

        total = state.memory_total_gb
        if total <= 0 and result.memory_total_gb:
            # Physical memory is fixed once known
            total = result.memory_total_gb
        return dataclasses.replace(
            state,
            core_count=core_count,
            cpu_load_percent=result.cpu_load_percent,
            memory_used_gb=result.memory_used_gb,
            memory_total_gb=total,
        )

