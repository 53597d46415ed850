"""
Script to run the document sync service until a fatal error
"""

import argparse
import asyncio
import logging
import os
import sys

# Add current directory to path to allow imports from core, replication, etc.
sys.path.append(os.getcwd())

from core.config import load_settings
from core.exceptions import SyncException
from core.logging import setup_logging
from replication.service import SyncService

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="docsync",
        description="Incrementally replicate documents from a source to a target REST endpoint."
    )
    parser.add_argument(
        "--config", "-c",
        metavar="<file>",
        help="YAML configuration file (settings may also come from the environment)"
    )
    return parser.parse_args(argv)


async def run_service(config_path=None) -> int:
    """Run the service; returns the process exit code."""
    try:
        settings = load_settings(config_path)
        setup_logging(settings)
        service = SyncService(settings)
    except SyncException as e:
        setup_logging()
        logger.error(f"Cannot start sync service: {e}")
        return 2

    fatal_error = await service.run()
    if fatal_error is not None:
        logger.error(f"Sync service terminated: {fatal_error}")
        return 1
    return 0


def main(argv=None):
    args = parse_args(argv)
    sys.exit(asyncio.run(run_service(args.config)))


if __name__ == "__main__":
    main()
