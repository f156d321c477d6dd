# sis/core/logging.py
"""Logging configuration."""
import logging
import sys
from typing import Optional

from .config import Settings, settings as default_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(config: Optional[Settings] = None) -> logging.Logger:
    config = config or default_settings
    level = logging.getLevelName(config.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # SQL echo is controlled by db_echo, keep the engine logger quiet otherwise
    if not config.db_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    return logging.getLogger("sis")
