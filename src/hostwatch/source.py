"""Metric source adapter over psutil."""

import logging
import time
from dataclasses import dataclass

import psutil

from hostwatch.errors import SourceUnavailableError
from hostwatch.models import DiskSpace, ProcessStats

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RawSnapshot:
    """Point-in-time counters as reported by the operating system."""

    timestamp: float
    cpu_count: int
    cpu_percent: float
    memory_total: int
    memory_used: int
    disks: list[DiskSpace]
    network_received: int
    network_transmitted: int
    target: ProcessStats

    def disk_for(self, mountpoint: str) -> DiskSpace | None:
        """Return the disk mounted at mountpoint, falling back to the first disk."""
        for disk in self.disks:
            if disk.mountpoint == mountpoint:
                return disk
        return self.disks[0] if self.disks else None


class MetricSource:
    """
    Reads host and target-process counters using psutil.

    Call refresh() before every read(). refresh() blocks for the settle delay
    so that CPU percentages cover a real interval rather than returning 0.0.
    A missing target process is not an error; its counters read as zero.
    """

    def __init__(self, target_name: str, settle_delay: float = 0.2) -> None:
        """
        Initialize the MetricSource.

        Args:
            target_name: Process name to track, e.g. "kaspad".
            settle_delay: Seconds to wait between priming and reading CPU usage.
        """
        self._target_name = target_name
        self._settle_delay = max(0.0, settle_delay)
        self._target_proc: psutil.Process | None = None
        self._cpu_count = psutil.cpu_count(logical=True) or 1
        self._cpu_percent = 0.0
        self._target = ProcessStats.missing()
        self._refreshed = False
        # Initialize CPU percent (first call returns 0.0)
        psutil.cpu_percent(interval=None)

    @property
    def target_name(self) -> str:
        """Name of the tracked process."""
        return self._target_name

    @property
    def cpu_count(self) -> int:
        """Logical core count."""
        return self._cpu_count

    def refresh(self) -> None:
        """Prime CPU counters, wait for them to settle, then capture them."""
        try:
            psutil.cpu_percent(interval=None)
            proc = self._find_target()
            if proc is not None:
                self._prime_target(proc)

            time.sleep(self._settle_delay)

            self._cpu_percent = float(psutil.cpu_percent(interval=None))
            self._target = self._read_target(proc) if proc is not None else ProcessStats.missing()
        except (psutil.Error, OSError) as exc:
            raise SourceUnavailableError("psutil", "refresh failed", exc) from exc
        self._refreshed = True

    def read(self) -> RawSnapshot:
        """Read the aggregate counters captured by the latest refresh."""
        if not self._refreshed:
            self.refresh()
        self._refreshed = False

        try:
            mem = psutil.virtual_memory()
            net = psutil.net_io_counters()
            disks = self._read_disks()
        except (psutil.Error, OSError) as exc:
            raise SourceUnavailableError("psutil", "read failed", exc) from exc

        return RawSnapshot(
            timestamp=time.time(),
            cpu_count=self._cpu_count,
            cpu_percent=self._cpu_percent,
            memory_total=int(mem.total),
            memory_used=int(mem.used),
            disks=disks,
            # net_io_counters() returns None on hosts without interfaces
            network_received=int(net.bytes_recv) if net else 0,
            network_transmitted=int(net.bytes_sent) if net else 0,
            target=self._target,
        )

    def _find_target(self) -> psutil.Process | None:
        """Return the cached target process, looking it up again if it exited."""
        proc = self._target_proc
        if proc is not None:
            try:
                if proc.is_running() and proc.name() == self._target_name:
                    return proc
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                pass
            self._target_proc = None

        for candidate in psutil.process_iter(attrs=["name"]):
            if candidate.info.get("name") == self._target_name:
                self._target_proc = candidate
                logger.info("Tracking %s (pid %s)", self._target_name, candidate.pid)
                return candidate
        return None

    def _prime_target(self, proc: psutil.Process) -> None:
        try:
            proc.cpu_percent(interval=None)
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            self._target_proc = None

    def _read_target(self, proc: psutil.Process) -> ProcessStats:
        """Read target counters; a process that vanished mid-read reads as missing."""
        try:
            with proc.oneshot():
                cpu = proc.cpu_percent(interval=None)
                rss = proc.memory_info().rss
                disk_read, disk_write = self._read_io(proc)
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            self._target_proc = None
            return ProcessStats.missing()

        return ProcessStats(
            found=True,
            cpu_percent=float(cpu),
            memory=int(rss),
            disk_read=disk_read,
            disk_write=disk_write,
        )

    @staticmethod
    def _read_io(proc: psutil.Process) -> tuple[int, int]:
        # io_counters() is unavailable on macOS and often denied for other users
        try:
            io = proc.io_counters()
        except (AttributeError, psutil.AccessDenied, NotImplementedError):
            return 0, 0
        return int(io.read_bytes), int(io.write_bytes)

    @staticmethod
    def _read_disks() -> list[DiskSpace]:
        disks: list[DiskSpace] = []
        for part in psutil.disk_partitions(all=False):
            try:
                usage = psutil.disk_usage(part.mountpoint)
            except (PermissionError, OSError):
                # Unmounted media, restricted mounts
                continue
            disks.append(DiskSpace(part.mountpoint, int(usage.total), int(usage.free)))
        if not disks:
            # Containers often report no physical partitions
            usage = psutil.disk_usage("/")
            disks.append(DiskSpace("/", int(usage.total), int(usage.free)))
        return disks
