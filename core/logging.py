"""
Logging configuration
"""

import logging
import sys
from typing import Optional

from core.config import Settings


def setup_logging(settings: Optional[Settings] = None):
    """Configure application logging"""

    level_name = settings.LOG_LEVEL if settings else "INFO"
    log_level = getattr(logging, level_name.upper(), logging.INFO)

    # Diagnostic stream, keeps stdout free for fetch_source output
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stderr)
        ]
    )

    # Per-request chatter from the HTTP stack and the scheduler
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    environment = settings.ENVIRONMENT if settings else "development"
    logger.info(f"Logging configured at {level_name} level ({environment})")
