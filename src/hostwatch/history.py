"""Fixed-capacity rolling series for chart rendering."""

from collections import deque
from collections.abc import Iterator


class RollingSeries:
    """
    Time-ordered (x, y) points with a fixed capacity.

    Pushing past capacity evicts the single oldest point. The engine is the
    only writer; the UI reads values() and the axis bounds between ticks.
    """

    def __init__(self, capacity: int = 100, name: str = "") -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self._points: deque[tuple[float, float]] = deque(maxlen=capacity)
        self._name = name

    @property
    def name(self) -> str:
        """Series label."""
        return self._name

    @property
    def capacity(self) -> int:
        """Maximum number of points retained."""
        return self._points.maxlen

    def push(self, x: float, y: float) -> None:
        """Append a point, evicting the oldest one when full."""
        self._points.append((x, y))

    def latest(self) -> float | None:
        """Most recent value."""
        return self._points[-1][1] if self._points else None

    def first(self) -> float | None:
        """Timestamp of the oldest point."""
        return self._points[0][0] if self._points else None

    def last(self) -> float | None:
        """Timestamp of the newest point."""
        return self._points[-1][0] if self._points else None

    def max_value(self) -> float:
        """Largest value held, 0.0 when empty."""
        return max((y for _, y in self._points), default=0.0)

    def values(self) -> list[float]:
        """Values in push order."""
        return [y for _, y in self._points]

    def __iter__(self) -> Iterator[tuple[float, float]]:
        return iter(tuple(self._points))

    def __len__(self) -> int:
        return len(self._points)

    def __repr__(self) -> str:
        return f"RollingSeries(name={self._name!r}, len={len(self)}, capacity={self.capacity})"
