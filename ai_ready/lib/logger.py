"""
Logging setup for ai-ready.
"""

import logging
import sys
from typing import Optional

from ai_ready.config import Settings


def setup_logging(
    settings: Settings,
    level: Optional[str] = None,
    format_string: Optional[str] = None,
) -> None:
    """Set up logging configuration."""
    log_level = getattr(logging, (level or settings.log_level).upper(), logging.INFO)
    log_format = format_string or settings.log_format

    # Root logger configuration
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Clear existing handlers
    root_logger.handlers.clear()

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(log_format))
    root_logger.addHandler(console_handler)
