"""Command line entry point."""

from __future__ import annotations
import argparse

from . import __version__
from .config_loader import ConfigStorage
from .engine import start_engine
from .exceptions import ConfigurationError
from .utils import get_logger, set_log_level
from .utils.logging_config import LOG_LEVEL_MAPPING

logger = get_logger()


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="ami-refresh",
        description="Periodically rebuild AMIs from source images and retire old ones",
    )
    parser.add_argument(
        "-c", "--config", required=True, help="Config directory/file path"
    )
    parser.add_argument(
        "-l",
        "--loglevel",
        default="info",
        type=str.lower,
        choices=sorted(LOG_LEVEL_MAPPING),
        help="Log level (panic, fatal, error, warn, info, debug). Default: info",
    )
    parser.add_argument(
        "-v", "--version", action="version", version=f"%(prog)s {__version__}"
    )
    args = parser.parse_args(argv)
    args.config = args.config.strip()
    if not args.config:
        parser.error("Mandatory field missing: -c/--config")
    return args


def main(argv=None) -> int:
    args = parse_args(argv)
    set_log_level(args.loglevel)

    storage = ConfigStorage().process_path(args.config)
    try:
        storage.raise_if_errors()
        start_engine(storage)
    except ConfigurationError as e:
        logger.error(f"Exiting: {e}", extra={"config_path": args.config})
        return 1
    return 0
