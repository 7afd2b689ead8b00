"""Derived metrics: counter rates, percentages and directory sizes."""

import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

BYTES_PER_MIB = 1_048_576


@dataclass(slots=True)
class RateState:
    """Previous observation of a cumulative counter."""

    last_value: int | None = None
    last_time: float | None = None

    @property
    def has_baseline(self) -> bool:
        """True once a first observation has been recorded."""
        return self.last_value is not None and self.last_time is not None


def compute_rate(state: RateState, value: int, timestamp: float) -> float:
    """
    Convert a cumulative byte counter into MiB/s.

    Returns 0.0 on the first observation, when time has not moved forward, or
    when the counter went backwards (reset or wrap). The state always moves to
    the new observation.
    """
    rate = 0.0
    if state.has_baseline:
        elapsed = timestamp - state.last_time
        delta = value - state.last_value
        if elapsed > 0 and delta >= 0:
            rate = delta / (elapsed * BYTES_PER_MIB)

    state.last_value = value
    state.last_time = timestamp
    return rate


def memory_percent(used: int, total: int) -> float:
    """Used memory as a percentage of total."""
    if total <= 0:
        return 0.0
    return used / total * 100.0


def disk_percent(total: int, available: int, extra_used: int = 0) -> float:
    """Used disk space, plus extra_used bytes, as a percentage of total."""
    if total <= 0:
        return 0.0
    return (total - available + extra_used) / total * 100.0


def directory_size(path: str | Path) -> int:
    """
    Sum the sizes of all regular files below path.

    Entries that cannot be read are skipped. Symlinks are not followed, and
    each directory is visited once per (device, inode) so bind-mount loops
    terminate. A missing path has size 0.
    """
    total = 0
    visited: set[tuple[int, int]] = set()
    stack = [os.fspath(path)]

    while stack:
        current = stack.pop()
        try:
            st = os.stat(current, follow_symlinks=False)
        except OSError:
            continue
        key = (st.st_dev, st.st_ino)
        if key in visited:
            continue
        visited.add(key)

        try:
            with os.scandir(current) as entries:
                for entry in entries:
                    try:
                        if entry.is_dir(follow_symlinks=False):
                            stack.append(entry.path)
                        elif entry.is_file(follow_symlinks=False):
                            total += entry.stat(follow_symlinks=False).st_size
                    except OSError:
                        logger.debug("Skipping unreadable entry %s", entry.path)
        except NotADirectoryError:
            if stat.S_ISREG(st.st_mode):
                total += st.st_size
        except OSError:
            logger.debug("Skipping unreadable directory %s", current)

    return total
