"""
Core Module - Logging Setup.

Configures the root logger once per process. Level comes
from the LOG_LEVEL environment variable unless overridden.
"""

import logging
import os
from typing import Optional

from dotenv import load_dotenv


LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging.

    Args:
        level: Level name; falls back to LOG_LEVEL, then INFO
    """
    load_dotenv()
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()

    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
    )

    # Quiet noisy libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
