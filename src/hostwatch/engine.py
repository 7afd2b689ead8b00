"""Sampling engine: drives collection, retention and persistence."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from hostwatch.auth_log import AuthLogIngestor, JournalLogSource
from hostwatch.config import MonitorConfig
from hostwatch.errors import MonitorError, PersistenceError, SourceUnavailableError
from hostwatch.history import RollingSeries
from hostwatch.models import AuthEvent, MetricSample
from hostwatch.rates import RateState, compute_rate, directory_size, disk_percent, memory_percent
from hostwatch.source import MetricSource, RawSnapshot
from hostwatch.store import MetricsStore

logger = logging.getLogger(__name__)


class SnapshotSource(Protocol):
    """Minimal interface the engine needs from a metric source."""

    @property
    def cpu_count(self) -> int: ...

    def refresh(self) -> None: ...

    def read(self) -> RawSnapshot: ...


@dataclass(slots=True)
class CycleReport:
    """What happened during one sampling cycle."""

    timestamp: float
    sample: MetricSample | None = None
    events: list[AuthEvent] = field(default_factory=list)
    compacted: bool = False
    errors: list[MonitorError] = field(default_factory=list)


class SamplingEngine:
    """
    Samples metrics and auth events on a fixed cadence.

    The engine owns every piece of mutable state: the metric source, the
    store, the five rolling series and the auth ingestor. The caller invokes
    tick() frequently; work only happens once the sample interval has passed.

    Source failures skip their half of the cycle and are reported in the
    CycleReport. A failed metric write raises PersistenceError, since the
    persisted samples are the primary output. Compaction failures are logged
    and ignored.

    Metric rows are keyed by whole second. A reading whose second is not
    newer than the last persisted one (the wall clock stepped back) is
    dropped with a warning, so the stored timeline only moves forward.
    """

    def __init__(
        self,
        source: SnapshotSource,
        store: MetricsStore,
        ingestor: AuthLogIngestor,
        interval: float = 2.0,
        window_size: int = 100,
        compact_every: int = 21600,
        data_dir: Path | None = None,
        disk_mountpoint: str = "/",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._source = source
        self._store = store
        self._ingestor = ingestor
        self._interval = max(0.1, interval)
        self._compact_every = max(1, compact_every)
        self._data_dir = data_dir
        self._disk_mountpoint = disk_mountpoint
        self._clock = clock

        self.cpu = RollingSeries(window_size, "cpu")
        self.memory = RollingSeries(window_size, "memory")
        self.disk = RollingSeries(window_size, "disk")
        self.received = RollingSeries(window_size, "received")
        self.transmitted = RollingSeries(window_size, "transmitted")

        self._received_rate = RateState()
        self._transmitted_rate = RateState()
        self._last_sample_time: float | None = None
        self._cycles_since_compact = 0
        self._latest_sample: MetricSample | None = None
        self._last_persisted_second = store.latest_metric_second()

    @classmethod
    def from_config(cls, config: MonitorConfig) -> "SamplingEngine":
        """Build an engine wired to psutil, journalctl and the configured store."""
        store = MetricsStore(config.db_path)
        source = MetricSource(config.target_process, settle_delay=config.settle_delay)
        ingestor = AuthLogIngestor(
            JournalLogSource(),
            store,
            service=config.auth_service,
            window_seconds=config.auth_window_seconds,
            max_lines=config.auth_max_lines,
            max_events=config.max_events,
        )
        return cls(
            source,
            store,
            ingestor,
            interval=config.sample_interval,
            window_size=config.window_size,
            compact_every=config.compact_every,
            data_dir=config.data_dir,
            disk_mountpoint=config.disk_mountpoint,
        )

    @property
    def interval(self) -> float:
        """Seconds between sampling cycles."""
        return self._interval

    @property
    def store(self) -> MetricsStore:
        return self._store

    @property
    def events(self) -> list[AuthEvent]:
        """Retained auth events, oldest first."""
        return self._ingestor.events

    @property
    def cpu_count(self) -> int:
        return self._source.cpu_count

    @property
    def latest_sample(self) -> MetricSample | None:
        """The most recent successfully collected sample."""
        return self._latest_sample

    @property
    def cycles_since_compact(self) -> int:
        return self._cycles_since_compact

    def series(self) -> tuple[RollingSeries, ...]:
        """All rolling series, in display order."""
        return (self.cpu, self.memory, self.disk, self.received, self.transmitted)

    def is_due(self, now: float) -> bool:
        """
        Check whether a sampling cycle should run at time now.

        If the clock moved backwards the baseline is reset to now and the
        cycle is reported as not due.
        """
        if self._last_sample_time is None:
            return True
        elapsed = now - self._last_sample_time
        if elapsed < 0:
            logger.warning("Clock moved backwards by %.3fs; delaying next sample", -elapsed)
            self._last_sample_time = now
            return False
        return elapsed >= self._interval

    def tick(self, now: float | None = None) -> CycleReport | None:
        """Run one cycle if it is due. Returns None when nothing ran."""
        now = self._clock() if now is None else now
        if not self.is_due(now):
            return None
        self._last_sample_time = now

        report = CycleReport(timestamp=now)

        try:
            report.sample = self.sample()
        except SourceUnavailableError as exc:
            logger.warning("Metric source unavailable, skipping sample: %s", exc)
            report.errors.append(exc)
        except PersistenceError:
            logger.exception("Failed to persist metric sample")
            raise

        try:
            report.events = self._ingestor.poll()
        except (SourceUnavailableError, PersistenceError) as exc:
            logger.warning("Auth log polling failed: %s", exc)
            report.errors.append(exc)

        report.compacted = self._maybe_compact()
        return report

    def sample(self) -> MetricSample | None:
        """
        Collect, derive, retain and persist one metric sample.

        Returns None when the reading falls on or before the last persisted
        second; nothing is pushed or written for it.
        """
        self._source.refresh()
        raw = self._source.read()
        second = int(raw.timestamp)
        if self._last_persisted_second is not None and second <= self._last_persisted_second:
            logger.warning(
                "Clock anomaly: sample second %d is not after last stored second %d; dropping it",
                second,
                self._last_persisted_second,
            )
            return None
        sample = self._derive(raw)

        values = (
            sample.cpu_percent,
            sample.memory_percent,
            sample.disk_percent,
            sample.received_rate,
            sample.transmitted_rate,
        )
        for series, value in zip(self.series(), values):
            series.push(sample.timestamp, value)
        self._latest_sample = sample

        self._store.insert_metric(sample)
        self._last_persisted_second = second
        return sample

    def _derive(self, raw: RawSnapshot) -> MetricSample:
        ts = raw.timestamp
        received_rate = compute_rate(self._received_rate, raw.network_received, ts)
        transmitted_rate = compute_rate(self._transmitted_rate, raw.network_transmitted, ts)

        disk = raw.disk_for(self._disk_mountpoint)
        extra = directory_size(self._data_dir) if self._data_dir is not None else 0
        disk_pct = disk_percent(disk.total, disk.available, extra) if disk else 0.0

        cores = max(1, raw.cpu_count)
        target = raw.target
        return MetricSample(
            timestamp=ts,
            cpu_percent=raw.cpu_percent,
            memory_percent=memory_percent(raw.memory_used, raw.memory_total),
            memory_total_bytes=raw.memory_total,
            memory_used_bytes=raw.memory_used,
            disk_percent=disk_pct,
            network_received_bytes=raw.network_received,
            network_transmitted_bytes=raw.network_transmitted,
            target_cpu_percent=target.cpu_percent / cores,
            target_memory_bytes=target.memory,
            target_disk_read_bytes=target.disk_read,
            target_disk_write_bytes=target.disk_write,
            received_rate=received_rate,
            transmitted_rate=transmitted_rate,
        )

    def _maybe_compact(self) -> bool:
        self._cycles_since_compact += 1
        if self._cycles_since_compact < self._compact_every:
            return False
        self._cycles_since_compact = 0
        try:
            self._store.compact()
        except PersistenceError as exc:
            logger.warning("Compaction failed, will retry next period: %s", exc)
            return False
        return True

    def close(self) -> None:
        """Close the store."""
        self._store.close()
