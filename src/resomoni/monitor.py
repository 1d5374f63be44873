"""Counter sources and the sampling loop for resomoni."""

import logging
import os
import threading
from itertools import islice
from queue import Queue
from typing import Protocol

import psutil

from resomoni.errors import CounterFile, ResomoniError, SourceOpenError, SourceReadError
from resomoni.memory import MemUsageTracker, parse_mem_stat_line
from resomoni.models import CpuSample, MemSample, UsageSnapshot
from resomoni.processor import CpuUsageTracker, parse_cpu_sample

logger = logging.getLogger(__name__)

DEFAULT_POLL_RATE = 2.0

PROC_STAT_PATH = CounterFile.PROCESSOR.value
PROC_MEMINFO_PATH = CounterFile.MEMORY.value

# Zero-based line positions within /proc/meminfo.
MEM_TOTAL_LINE = 0
MEM_AVAILABLE_LINE = 2

# psutil reports CPU times in seconds; /proc/stat counts USER_HZ ticks.
TICKS_PER_SECOND = 100


class CounterSource(Protocol):
    """Something that can produce one CPU and one memory sample per cycle."""

    def read_cpu_sample(self) -> CpuSample: ...

    def read_mem_sample(self) -> MemSample: ...


class ProcCounterSource:
    """Reads samples from the Linux /proc counter files."""

    def __init__(
        self,
        stat_path: str = PROC_STAT_PATH,
        meminfo_path: str = PROC_MEMINFO_PATH,
    ) -> None:
        self.stat_path = stat_path
        self.meminfo_path = meminfo_path

    def read_cpu_sample(self) -> CpuSample:
        """Parse the processor summary line, always the first of the file."""
        (line,) = self._read_lines(self.stat_path, CounterFile.PROCESSOR, 1)
        if not line.strip():
            raise SourceReadError(CounterFile.PROCESSOR, self.stat_path, "empty summary line")
        return parse_cpu_sample(line)

    def read_mem_sample(self) -> MemSample:
        """Parse MemTotal and MemAvailable from their fixed line positions."""
        lines = self._read_lines(self.meminfo_path, CounterFile.MEMORY, MEM_AVAILABLE_LINE + 1)
        return MemSample(
            total=parse_mem_stat_line(lines[MEM_TOTAL_LINE]),
            available=parse_mem_stat_line(lines[MEM_AVAILABLE_LINE]),
        )

    @staticmethod
    def _read_lines(path: str, source: CounterFile, count: int) -> list[str]:
        """Read the first ``count`` lines of a counter file."""
        try:
            handle = open(path, encoding="utf-8")
        except OSError as exc:
            raise SourceOpenError(source, path, exc.strerror) from exc

        with handle:
            try:
                lines = list(islice(handle, count))
            except (OSError, UnicodeDecodeError) as exc:
                raise SourceReadError(source, path, str(exc)) from exc

        if len(lines) < count:
            raise SourceReadError(source, path, f"expected at least {count} lines, got {len(lines)}")
        return lines


class PsutilCounterSource:
    """
    Reads samples through psutil on platforms without /proc.

    CPU times are converted to ticks so they behave like /proc/stat
    counters, and memory is reported in kB like /proc/meminfo.
    """

    def read_cpu_sample(self) -> CpuSample:
        try:
            times = psutil.cpu_times()
        except (psutil.Error, OSError) as exc:
            raise SourceReadError(CounterFile.PROCESSOR, "psutil.cpu_times()", str(exc)) from exc
        # Rounding each field keeps every counter monotonic.
        return CpuSample(
            total=sum(round(value * TICKS_PER_SECOND) for value in times),
            idle=round(times.idle * TICKS_PER_SECOND),
        )

    def read_mem_sample(self) -> MemSample:
        try:
            mem = psutil.virtual_memory()
        except (psutil.Error, OSError) as exc:
            raise SourceReadError(CounterFile.MEMORY, "psutil.virtual_memory()", str(exc)) from exc
        return MemSample(total=mem.total // 1024, available=mem.available // 1024)


def default_source() -> CounterSource:
    """Prefer the /proc files, falling back to psutil where they are missing."""
    if os.path.exists(PROC_STAT_PATH):
        return ProcCounterSource()
    logger.info("%s not found, sampling through psutil", PROC_STAT_PATH)
    return PsutilCounterSource()


class UsageMonitor:
    """
    Samples CPU and memory utilization once per poll period.

    Owns one CPU tracker and one memory tracker. ``collect_snapshot`` runs a
    single cycle and can be driven directly; ``start`` runs cycles on a daemon
    thread and pushes each snapshot to a thread-safe Queue. Only one of the
    two should drive a given monitor, so the trackers keep a single writer.
    """

    def __init__(
        self,
        update_queue: Queue[UsageSnapshot] | None = None,
        poll_rate: float = DEFAULT_POLL_RATE,
        source: CounterSource | None = None,
    ) -> None:
        """
        Initialize the UsageMonitor.

        Args:
            update_queue: Queue that receives snapshots from the thread.
            poll_rate: Seconds between cycles. Default 2.0s.
            source: Counter source; picked by ``default_source`` if omitted.
        """
        self._queue = update_queue
        self._poll_rate = poll_rate
        self._source = source if source is not None else default_source()
        self._cpu = CpuUsageTracker()
        self._memory = MemUsageTracker()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def poll_rate(self) -> float:
        """Seconds between sampling cycles."""
        return self._poll_rate

    @property
    def source(self) -> CounterSource:
        return self._source

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the monitoring thread."""
        if self.is_running:
            return
        if self._queue is None:
            raise RuntimeError("UsageMonitor needs an update queue to run in the background")

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="UsageMonitor",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        assert self._queue is not None
        while not self._stop_event.is_set():
            try:
                self._queue.put(self.collect_snapshot())
            except Exception:
                logger.exception("Sampling cycle failed")

            self._stop_event.wait(timeout=self._poll_rate)

    def collect_snapshot(self) -> UsageSnapshot:
        """Run one sampling cycle."""
        cpu_percent = self._sample_cpu()
        memory_percent = self._sample_memory()
        return UsageSnapshot(
            cpu_percent=cpu_percent,
            memory_percent=memory_percent,
            memory_total=self._memory.total,
            memory_available=self._memory.available,
        )

    def _sample_cpu(self) -> int | None:
        total: int | None = None
        idle: int | None = None
        try:
            sample = self._source.read_cpu_sample()
            total, idle = sample.total, sample.idle
        except ResomoniError as exc:
            logger.warning("Processor sample unavailable: %s", exc)

        try:
            percent: int | None = self._cpu.calculate(total, idle)
        except ResomoniError as exc:
            logger.debug("CPU usage not computed: %s", exc)
            percent = None

        # Always store this cycle's counters so the next delta starts here.
        self._cpu.update(total, idle)
        return percent

    def _sample_memory(self) -> int | None:
        total: int | None = None
        available: int | None = None
        try:
            sample = self._source.read_mem_sample()
            total, available = sample.total, sample.available
        except ResomoniError as exc:
            logger.warning("Memory sample unavailable: %s", exc)

        self._memory.update(total, available)
        try:
            return self._memory.calculate()
        except ResomoniError as exc:
            logger.debug("Memory usage not computed: %s", exc)
            return None
