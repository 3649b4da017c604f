"""Shared installer services for settings and logging."""

from .config import DEFAULT_CONFIG, InstallerConfig, load_config
from .logging_setup import JsonFormatter, configure_logging, get_logger, log_dir

__all__ = [
    "DEFAULT_CONFIG",
    "InstallerConfig",
    "JsonFormatter",
    "configure_logging",
    "get_logger",
    "load_config",
    "log_dir",
]
