"""Data models for hostwatch."""

from dataclasses import dataclass
from enum import Enum


class AuthStatus(Enum):
    """Outcome of an SSH authentication attempt."""

    SUCCESS = "Success"
    FAILED = "Failed"


@dataclass(slots=True, frozen=True)
class ProcessStats:
    """Immutable snapshot of the target process counters."""

    found: bool
    cpu_percent: float  # 0.0 - 100.0 * core_count
    memory: int  # RSS bytes
    disk_read: int  # Cumulative bytes
    disk_write: int  # Cumulative bytes

    @classmethod
    def missing(cls) -> "ProcessStats":
        """Zeroed stats for a process that is not running."""
        return cls(found=False, cpu_percent=0.0, memory=0, disk_read=0, disk_write=0)


@dataclass(slots=True, frozen=True)
class DiskSpace:
    """Space figures for one mounted partition."""

    mountpoint: str
    total: int
    available: int


@dataclass(slots=True, frozen=True)
class MetricSample:
    """One sampling cycle, as persisted to the metrics table."""

    timestamp: float
    cpu_percent: float
    memory_percent: float
    memory_total_bytes: int
    memory_used_bytes: int
    disk_percent: float
    network_received_bytes: int  # Cumulative
    network_transmitted_bytes: int  # Cumulative
    target_cpu_percent: float  # Normalised by core count
    target_memory_bytes: int
    target_disk_read_bytes: int
    target_disk_write_bytes: int
    received_rate: float = 0.0  # MiB/s, not persisted
    transmitted_rate: float = 0.0  # MiB/s, not persisted


@dataclass(slots=True, frozen=True)
class AuthEvent:
    """
    A single authentication attempt seen in the SSH log.

    Events are unique per (timestamp, identifier); two attempts from the same
    address within one second collapse into one record.
    """

    timestamp: int
    identifier: str
    status: AuthStatus
