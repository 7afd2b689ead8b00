"""Tests for the psutil MetricSource."""

import psutil
import pytest

from hostwatch.errors import SourceUnavailableError
from hostwatch.models import DiskSpace, ProcessStats
from hostwatch.source import MetricSource, RawSnapshot

MISSING_PROCESS = "hostwatch-no-such-process"


def make_snapshot(disks: list[DiskSpace]) -> RawSnapshot:
    return RawSnapshot(
        timestamp=0.0,
        cpu_count=1,
        cpu_percent=0.0,
        memory_total=1,
        memory_used=0,
        disks=disks,
        network_received=0,
        network_transmitted=0,
        target=ProcessStats.missing(),
    )


class TestRawSnapshot:
    """Tests for RawSnapshot.disk_for."""

    def test_disk_for_matches_mountpoint(self):
        disks = [DiskSpace("/boot", 1, 1), DiskSpace("/", 10, 5)]

        assert make_snapshot(disks).disk_for("/").total == 10

    def test_disk_for_falls_back_to_first(self):
        disks = [DiskSpace("/data", 7, 3)]

        assert make_snapshot(disks).disk_for("/").mountpoint == "/data"

    def test_disk_for_no_disks(self):
        assert make_snapshot([]).disk_for("/") is None


class TestMetricSource:
    """Tests for MetricSource against the live system."""

    def test_missing_process_reads_as_zero(self):
        """Test an absent target process yields zero counters, not an error."""
        source = MetricSource(MISSING_PROCESS, settle_delay=0.0)

        source.refresh()
        snapshot = source.read()

        assert snapshot.target == ProcessStats.missing()

    def test_aggregate_counters(self):
        """Test system counters are populated."""
        source = MetricSource(MISSING_PROCESS, settle_delay=0.0)

        source.refresh()
        snapshot = source.read()

        assert snapshot.cpu_count >= 1
        assert snapshot.cpu_count == source.cpu_count
        assert 0.0 <= snapshot.cpu_percent <= 100.0
        assert snapshot.memory_total > 0
        assert 0 < snapshot.memory_used <= snapshot.memory_total
        assert snapshot.network_received >= 0
        assert snapshot.network_transmitted >= 0
        assert snapshot.disks
        assert all(d.total >= d.available for d in snapshot.disks)

    def test_read_without_refresh(self):
        """Test read() refreshes on its own when needed."""
        source = MetricSource(MISSING_PROCESS, settle_delay=0.0)

        snapshot = source.read()

        assert isinstance(snapshot, RawSnapshot)

    def test_tracks_named_process(self):
        """Test the current process can be tracked by its name."""
        own_name = psutil.Process().name()
        source = MetricSource(own_name, settle_delay=0.05)

        source.refresh()
        snapshot = source.read()

        assert snapshot.target.found is True
        assert snapshot.target.memory > 0
        assert snapshot.target.cpu_percent >= 0.0
        assert source.target_name == own_name

    def test_psutil_failure_is_source_unavailable(self, monkeypatch):
        """Test a psutil failure surfaces as SourceUnavailableError."""
        source = MetricSource(MISSING_PROCESS, settle_delay=0.0)
        source.refresh()

        def broken():
            raise OSError("no /proc")

        monkeypatch.setattr(psutil, "virtual_memory", broken)

        with pytest.raises(SourceUnavailableError) as excinfo:
            source.read()
        assert isinstance(excinfo.value.cause, OSError)

    def test_vanished_process_reads_as_missing(self, monkeypatch):
        """Test a process that exits mid-read reads as missing."""
        source = MetricSource(psutil.Process().name(), settle_delay=0.0)

        def gone(proc):
            raise psutil.NoSuchProcess(proc.pid)

        monkeypatch.setattr(MetricSource, "_read_io", staticmethod(gone))
        source.refresh()

        assert source.read().target == ProcessStats.missing()
        assert source._target_proc is None
