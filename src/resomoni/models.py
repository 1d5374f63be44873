"""Data models for resomoni."""

from dataclasses import dataclass

from resomoni.errors import ParseValueError

U64_MAX = 2**64 - 1


def parse_u64(token: str) -> int:
    """Parse an unsigned 64-bit integer made only of ASCII digits."""
    if not (token.isascii() and token.isdigit()):
        raise ParseValueError(f"{token!r} is not an unsigned integer")
    value = int(token)
    if value > U64_MAX:
        raise ParseValueError(f"{token!r} does not fit in 64 bits")
    return value


@dataclass(slots=True, frozen=True)
class CpuSample:
    """Cumulative processor counters since boot, in clock ticks."""

    total: int
    idle: int


@dataclass(slots=True, frozen=True)
class MemSample:
    """Absolute memory counters, in kB."""

    total: int
    available: int


@dataclass(slots=True)
class UsageSnapshot:
    """Result of one sampling cycle. ``None`` marks a failed measurement."""

    cpu_percent: int | None
    memory_percent: int | None
    memory_total: int | None = None  # kB
    memory_available: int | None = None  # kB
