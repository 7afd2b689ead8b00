"""Shared fixtures and fakes for hostwatch tests."""

import pytest

from hostwatch.auth_log import AuthLogIngestor
from hostwatch.engine import SamplingEngine
from hostwatch.errors import SourceUnavailableError
from hostwatch.models import DiskSpace, ProcessStats
from hostwatch.source import RawSnapshot
from hostwatch.store import MetricsStore

BASE_TS = 1_700_000_000.0
GIB = 1024**3


def make_raw(
    timestamp: float = BASE_TS,
    received: int = 0,
    transmitted: int = 0,
    target: ProcessStats | None = None,
    cpu_percent: float = 25.0,
) -> RawSnapshot:
    """Build a RawSnapshot with plausible defaults."""
    return RawSnapshot(
        timestamp=timestamp,
        cpu_count=4,
        cpu_percent=cpu_percent,
        memory_total=16 * GIB,
        memory_used=4 * GIB,
        disks=[DiskSpace("/", 100 * GIB, 60 * GIB)],
        network_received=received,
        network_transmitted=transmitted,
        target=target or ProcessStats.missing(),
    )


class FakeSource:
    """Scripted metric source; generates snapshots 2s apart once the script runs out."""

    def __init__(self, snapshots: list[RawSnapshot] | None = None) -> None:
        self.snapshots = list(snapshots or [])
        self.refresh_calls = 0
        self.fail = False
        self._next_ts = BASE_TS

    @property
    def cpu_count(self) -> int:
        return 4

    def refresh(self) -> None:
        self.refresh_calls += 1
        if self.fail:
            raise SourceUnavailableError("fake", "refresh failed", OSError("boom"))

    def read(self) -> RawSnapshot:
        if self.snapshots:
            return self.snapshots.pop(0)
        raw = make_raw(timestamp=self._next_ts)
        self._next_ts += 2.0
        return raw


class FakeLogSource:
    """Log source returning fixed lines, or failing on demand."""

    def __init__(self, lines: list[str] | None = None) -> None:
        self.lines = list(lines or [])
        self.fail = False
        self.calls: list[tuple[str, int, int]] = []

    def fetch(self, service: str, since_seconds: int, max_lines: int) -> list[str]:
        self.calls.append((service, since_seconds, max_lines))
        if self.fail:
            raise SourceUnavailableError("fake-journal", "unavailable", FileNotFoundError("journalctl"))
        return list(self.lines)


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: float = BASE_TS) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def store(tmp_path):
    """A fresh on-disk store."""
    s = MetricsStore(tmp_path / "metrics.db")
    yield s
    s.close()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def log_source():
    return FakeLogSource()


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def ingestor(log_source, store, clock):
    return AuthLogIngestor(log_source, store, max_events=1000, clock=clock)


@pytest.fixture
def engine(source, store, ingestor):
    return SamplingEngine(source, store, ingestor, interval=2.0, window_size=100, compact_every=21600)
