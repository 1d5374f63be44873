"""Error types shared by the line parsers, usage trackers and counter sources."""

from enum import Enum


class ErrorKind(Enum):
    """Kinds of failure a sampling cycle can report."""

    EMPTY = "empty"
    INVALID = "invalid"
    PARSE = "parse"
    READ = "read"
    OPEN = "open"
    OUTPUT_FLUSH = "output_flush"


class CounterFile(Enum):
    """Kernel counter files read by the sampling loop."""

    PROCESSOR = "/proc/stat"
    MEMORY = "/proc/meminfo"


class ResomoniError(Exception):
    """
    Base class for every recoverable resomoni failure.

    The caller is expected to show a placeholder and carry on with the next
    cycle, so none of these are fatal on their own.
    """

    kind: ErrorKind
    message = "Unexpected error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail
        super().__init__(self._format())

    def _format(self) -> str:
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message


class EmptyValueError(ResomoniError):
    """A required value is absent."""

    kind = ErrorKind.EMPTY
    message = "Failed to find a value"


class InvalidValueError(ResomoniError):
    """Values violate an ordering or bounds precondition."""

    kind = ErrorKind.INVALID
    message = "Failed to validate value"


class ParseValueError(ResomoniError):
    """A textual field is not an unsigned integer."""

    kind = ErrorKind.PARSE
    message = "Failed to parse value"


class OutputFlushError(ResomoniError):
    """The terminal output could not be flushed."""

    kind = ErrorKind.OUTPUT_FLUSH
    message = "Failed to flush to the output"


class SourceError(ResomoniError):
    """A counter source could not be used."""

    verb = "use"

    def __init__(
        self,
        source: CounterFile,
        path: str | None = None,
        detail: str | None = None,
    ) -> None:
        self.source = source
        self.path = path or source.value
        super().__init__(detail)

    @property
    def message(self) -> str:  # type: ignore[override]
        return f"Failed to {self.verb} {self.path}"


class SourceOpenError(SourceError):
    """The counter file could not be opened."""

    kind = ErrorKind.OPEN
    verb = "open"


class SourceReadError(SourceError):
    """The counter file was opened but its contents could not be read."""

    kind = ErrorKind.READ
    verb = "read"
