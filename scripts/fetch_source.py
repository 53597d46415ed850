"""
One-shot inspection: fetch the source endpoint and pretty-print its JSON.

Uses the same settings (and client certificate) as the sync service, but
only needs SOURCE_URI.
"""

import argparse
import asyncio
import json
import logging
import os
import sys

# Add current directory to path to allow imports from core, replication, etc.
sys.path.append(os.getcwd())

from core.config import load_settings
from core.exceptions import SyncException
from core.logging import setup_logging
from replication.service import build_source

logger = logging.getLogger(__name__)


async def fetch(config_path=None, uri=None) -> int:
    settings = load_settings(config_path)
    setup_logging(settings)
    if uri:
        settings.SOURCE_URI = uri
    if not settings.SOURCE_URI:
        logger.error("No source URI configured")
        return 2

    async with build_source(settings) as source:
        try:
            data = await source.fetch_all()
        except SyncException as e:
            logger.error(f"Fetch failed: {e}")
            return 1

    print(json.dumps(data, indent=2, ensure_ascii=False))
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(prog="docsync-fetch", description=__doc__.strip().splitlines()[0])
    parser.add_argument("--config", "-c", metavar="<file>", help="YAML configuration file")
    parser.add_argument("--uri", metavar="<uri>", help="Source URI, overrides the configured one")
    args = parser.parse_args(argv)
    sys.exit(asyncio.run(fetch(args.config, args.uri)))


if __name__ == "__main__":
    main()
