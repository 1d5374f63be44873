"""Processor counter parsing and CPU utilization tracking."""

import logging

from resomoni.errors import EmptyValueError, InvalidValueError
from resomoni.models import CpuSample, parse_u64

logger = logging.getLogger(__name__)

# Time categories of the aggregate "cpu" line of /proc/stat, in kernel order.
PROC_STAT_FIELDS = (
    "user",
    "nice",
    "system",
    "idle",
    "iowait",
    "irq",
    "softirq",
    "steal",
    "guest",
    "guest_nice",
)
IDLE_FIELD = PROC_STAT_FIELDS.index("idle")


def parse_proc_stat_line(line: str) -> list[int]:
    """
    Parse the processor summary line of /proc/stat.

    The leading label token is skipped and up to ten counters are read
    positionally. Older kernels report fewer categories, so fields missing
    from the end of the line are left at zero. Tokens past the tenth are
    ignored.

    Raises:
        ParseValueError: A present counter is not an unsigned integer.
    """
    fields = [0] * len(PROC_STAT_FIELDS)
    tokens = line.split()[1 : len(fields) + 1]
    for index, token in enumerate(tokens):
        fields[index] = parse_u64(token)

    if len(tokens) < len(fields):
        logger.debug(
            "Processor line has %d of %d fields, padding with zeros",
            len(tokens),
            len(fields),
        )
    return fields


def parse_cpu_sample(line: str) -> CpuSample:
    """Parse a processor summary line into its total and idle tick counts."""
    fields = parse_proc_stat_line(line)
    return CpuSample(total=sum(fields), idle=fields[IDLE_FIELD])


class CpuUsageTracker:
    """
    Derives CPU utilization from consecutive cumulative samples.

    Holds the previous (total, idle) pair. Either field may be ``None``,
    which means no sample has been recorded yet.
    """

    def __init__(self, total: int | None = None, idle: int | None = None) -> None:
        self._total = total
        self._idle = idle

    @property
    def total(self) -> int | None:
        """Total ticks of the previous sample."""
        return self._total

    @property
    def idle(self) -> int | None:
        """Idle ticks of the previous sample."""
        return self._idle

    def update(self, total: int | None, idle: int | None) -> None:
        """Replace the previous sample, whatever ``calculate`` returned."""
        self._total = total
        self._idle = idle

    def calculate(self, total: int | None, idle: int | None) -> int:
        """
        Compute the utilization percentage since the previous sample.

        Args:
            total: Cumulative total ticks of the new sample.
            idle: Cumulative idle ticks of the new sample.

        Returns:
            Utilization in whole percent, truncated toward zero.

        Raises:
            EmptyValueError: No previous sample, or the new one is incomplete.
            InvalidValueError: A counter went backwards or the result is
                outside 0-100.
        """
        if self._total is None or self._idle is None:
            raise EmptyValueError("no previous processor sample")
        if total is None or idle is None:
            raise EmptyValueError("processor sample is incomplete")

        if total < self._total or idle < self._idle:
            raise InvalidValueError("processor counters went backwards")

        total_delta = total - self._total
        idle_delta = idle - self._idle
        if total_delta == 0:
            if idle_delta == 0:
                return 0
            raise InvalidValueError("idle time advanced without total time")

        usage = 100.0 * (1.0 - idle_delta / total_delta)
        if not 0.0 <= usage <= 100.0:
            raise InvalidValueError(f"usage {usage:.1f}% is out of range")
        return int(usage)
