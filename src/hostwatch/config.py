"""Configuration loading for hostwatch."""

import logging
from dataclasses import dataclass, fields
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)


@dataclass
class MonitorConfig:
    """Runtime settings for the sampler, store and dashboard."""

    db_path: str = "metrics.db"
    sample_interval: float = 2.0
    input_poll_interval: float = 0.25
    settle_delay: float = 0.2
    window_size: int = 100
    max_events: int = 1000
    compact_every: int = 21600
    target_process: str = "kaspad"
    target_data_dir: str = "~/.kaspa"
    disk_mountpoint: str = "/"
    auth_service: str = "ssh"
    auth_window_seconds: int = 60
    auth_max_lines: int = 50
    log_file: str = "hostwatch.log"
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        """Fix invalid values."""
        if self.sample_interval <= 0:
            self.sample_interval = 2.0
        if self.input_poll_interval <= 0:
            self.input_poll_interval = 0.25
        if self.settle_delay < 0:
            self.settle_delay = 0.2
        if self.window_size <= 0:
            self.window_size = 100
        if self.max_events <= 0:
            self.max_events = 1000
        if self.compact_every <= 0:
            self.compact_every = 21600
        if self.auth_window_seconds <= 0:
            self.auth_window_seconds = 60
        if self.auth_max_lines <= 0:
            self.auth_max_lines = 50
        self.log_level = str(self.log_level).upper()

    @property
    def data_dir(self) -> Path | None:
        """Expanded target data directory, or None when not configured."""
        if not self.target_data_dir:
            return None
        return Path(self.target_data_dir).expanduser()


def load_config(config_path: str | Path | None = None) -> MonitorConfig:
    """
    Load configuration from a YAML file.

    A missing path gives the defaults. Unknown keys are ignored; a malformed
    file raises.
    """
    if config_path is None:
        return MonitorConfig()

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"{config_path}: expected a mapping at the top level")

    known = {f.name for f in fields(MonitorConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        logger.warning("Ignoring unknown config keys: %s", ", ".join(unknown))
    return MonitorConfig(**{k: v for k, v in data.items() if k in known})


def configure_logging(config: MonitorConfig) -> None:
    """Send log records to the configured file; the terminal belongs to the UI."""
    logging.basicConfig(
        filename=config.log_file,
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
