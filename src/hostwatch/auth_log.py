"""SSH authentication event ingestion from the system journal."""

import logging
import subprocess
import time
from collections import deque
from collections.abc import Callable
from typing import Protocol

from hostwatch.errors import SourceUnavailableError
from hostwatch.models import AuthEvent, AuthStatus
from hostwatch.store import MetricsStore

logger = logging.getLogger(__name__)

FAILURE_MARKER = "Failed password"
SUCCESS_MARKER = "Accepted password"
SOURCE_MARKER = "from "
UNKNOWN_SOURCE = "unknown"


class LogSource(Protocol):
    """Anything that can return recent log lines for a service."""

    def fetch(self, service: str, since_seconds: int, max_lines: int) -> list[str]: ...


class JournalLogSource:
    """Reads recent unit logs with journalctl."""

    def __init__(self, executable: str = "journalctl", timeout: float = 1.0) -> None:
        self._executable = executable
        self._timeout = timeout

    def fetch(self, service: str, since_seconds: int, max_lines: int) -> list[str]:
        """Return up to max_lines lines logged by service in the last since_seconds."""
        cmd = [
            self._executable,
            "-u", service,
            "--since", f"-{since_seconds}s",
            "-n", str(max_lines),
            "--no-pager",
        ]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self._timeout,
                check=True,
            )
        except FileNotFoundError as exc:
            raise SourceUnavailableError("journalctl", f"{self._executable} not found", exc) from exc
        except subprocess.TimeoutExpired as exc:
            raise SourceUnavailableError("journalctl", "timed out", exc) from exc
        except subprocess.CalledProcessError as exc:
            raise SourceUnavailableError(
                "journalctl", f"exited with {exc.returncode}: {exc.stderr.strip()}", exc
            ) from exc
        return result.stdout.splitlines()


def extract_source(line: str) -> str | None:
    """Return the token following "from ", or None if there is none."""
    _, sep, rest = line.partition(SOURCE_MARKER)
    if not sep:
        return None
    tokens = rest.split()
    return tokens[0] if tokens else None


def parse_auth_line(line: str, now: float) -> AuthEvent | None:
    """
    Turn an sshd log line into an AuthEvent.

    Lines without a password success or failure marker give None. The event
    is stamped with now, not with the journal's own timestamp.
    """
    if FAILURE_MARKER in line:
        status = AuthStatus.FAILED
    elif SUCCESS_MARKER in line:
        status = AuthStatus.SUCCESS
    else:
        return None

    identifier = extract_source(line)
    if identifier is None:
        logger.debug("No source address in auth line: %r", line)
        identifier = UNKNOWN_SOURCE

    return AuthEvent(timestamp=int(now), identifier=identifier, status=status)


class AuthLogIngestor:
    """
    Polls a log source for SSH auth attempts and records new ones.

    The store's (timestamp, identifier) key is the only deduplication: the
    same attempt seen by overlapping polls is recorded once, and two attempts
    from one address within the same second also collapse into one.
    """

    def __init__(
        self,
        source: LogSource,
        store: MetricsStore,
        service: str = "ssh",
        window_seconds: int = 60,
        max_lines: int = 50,
        max_events: int = 1000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._source = source
        self._store = store
        self._service = service
        self._window_seconds = window_seconds
        self._max_lines = max_lines
        self._clock = clock
        self._events: deque[AuthEvent] = deque(maxlen=max_events)

    @property
    def events(self) -> list[AuthEvent]:
        """Retained events, oldest first."""
        return list(self._events)

    @property
    def max_events(self) -> int:
        return self._events.maxlen

    def ingest(self, lines: list[str]) -> list[AuthEvent]:
        """Parse lines, persist new events and return those accepted."""
        now = self._clock()
        parsed = [event for event in (parse_auth_line(line, now) for line in lines) if event]
        if not parsed:
            return []

        accepted = self._store.insert_auth_events(parsed)
        self._events.extend(accepted)
        if accepted:
            logger.info("Recorded %d auth event(s)", len(accepted))
        return accepted

    def poll(self) -> list[AuthEvent]:
        """Fetch the recent window from the log source and ingest it."""
        lines = self._source.fetch(self._service, self._window_seconds, self._max_lines)
        return self.ingest(lines)
