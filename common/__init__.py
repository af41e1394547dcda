"""Common utilities for the restart announcer."""
from .config import configure_logger, configure_logging, get_log_level, load_config

__all__ = ['configure_logger', 'configure_logging', 'get_log_level', 'load_config']
