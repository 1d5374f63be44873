"""Shared fixtures for resomoni tests."""

import pytest

from resomoni.errors import CounterFile, SourceReadError
from resomoni.models import CpuSample, MemSample


class ScriptedSource:
    """Counter source replaying a fixed list of samples, then repeating the last."""

    def __init__(self, cpu_samples, mem_samples):
        self._cpu_samples = list(cpu_samples)
        self._mem_samples = list(mem_samples)
        self.cpu_reads = 0
        self.mem_reads = 0

    @staticmethod
    def _pick(samples, index, source):
        sample = samples[min(index, len(samples) - 1)]
        if sample is None:
            raise SourceReadError(source, detail="scripted failure")
        return sample

    def read_cpu_sample(self) -> CpuSample:
        self.cpu_reads += 1
        return self._pick(self._cpu_samples, self.cpu_reads - 1, CounterFile.PROCESSOR)

    def read_mem_sample(self) -> MemSample:
        self.mem_reads += 1
        return self._pick(self._mem_samples, self.mem_reads - 1, CounterFile.MEMORY)


@pytest.fixture
def busy_source():
    """A source whose CPU goes 75% busy each cycle and memory is 75% used."""
    cpu_samples = [CpuSample(total=100 * n, idle=25 * n) for n in range(1, 1000)]
    return ScriptedSource(cpu_samples, [MemSample(total=1000, available=250)])


@pytest.fixture
def make_source():
    """Factory for sources replaying given samples; ``None`` entries fail to read."""
    return ScriptedSource
