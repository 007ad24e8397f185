"""
Centralized logging configuration for the application.
"""

import logging
import sys
from typing import Optional


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: Optional[str] = None) -> None:
    """
    Setup centralized logging configuration.

    Args:
        level: Log level name; uses the configured log_level if None
    """
    if level is None:
        from weave.config import get_setting
        level = get_setting("log_level")

    logging.basicConfig(level=getattr(logging, str(level).upper(), logging.INFO),
                        format=LOG_FORMAT,
                        handlers=[logging.StreamHandler(sys.stdout)])


def get_logger(name: str) -> logging.Logger:
    """Get a module logger (usually called with __name__)."""
    return logging.getLogger(name)
