"""hostwatch - host metrics and SSH auth monitor."""

__version__ = "0.1.0"
