"""Memory counter parsing and utilization tracking."""

from resomoni.errors import EmptyValueError, InvalidValueError
from resomoni.models import parse_u64


def parse_mem_stat_line(line: str) -> int:
    """
    Return the value of a ``<label>: <value> [<unit>]`` line of /proc/meminfo.

    The value is the second whitespace-separated token, so a label glued to
    its value (``MemTotal:123 kB``) yields the unit and fails to parse.
    """
    tokens = line.split()
    if len(tokens) < 2:
        raise EmptyValueError(f"no value in {line.strip()!r}")
    return parse_u64(tokens[1])


class MemUsageTracker:
    """Holds the current (total, available) memory sample, in kB."""

    def __init__(self, total: int | None = None, available: int | None = None) -> None:
        self._total = total
        self._available = available

    @property
    def total(self) -> int | None:
        return self._total

    @property
    def available(self) -> int | None:
        return self._available

    def update(self, total: int | None, available: int | None) -> None:
        self._total = total
        self._available = available

    def calculate(self) -> int:
        """
        Compute the memory utilization percentage of the current sample.

        Raises:
            EmptyValueError: Either value has not been recorded.
            InvalidValueError: Available exceeds total, or total is zero.
        """
        if self._total is None or self._available is None:
            raise EmptyValueError("no memory sample")
        if self._available > self._total:
            raise InvalidValueError("available memory exceeds total")
        if self._total == 0:
            raise InvalidValueError("total memory is zero")

        usage = 100.0 * (1.0 - self._available / self._total)
        return int(usage)
