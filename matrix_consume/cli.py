"""
Command line entry point.

    matrix-consume [-c CONFIG] [-t TIMEOUT] [--watch | --no-watch]
                   [--one-shot | --no-one-shot] [run]
    matrix-consume [-c CONFIG] install-service [--interval DURATION]
    matrix-consume [-c CONFIG] remove-service

Exit status is 0 on normal completion and 1 on any fatal error, which is
reported as a single line on stderr.
"""

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import default_config_path, load_config, parse_timeout
from .errors import MatrixConsumeError
from .pipeline import run
from .service import install_service, remove_service

logger = logging.getLogger(__name__)

LOG_FORMAT: str = "%(asctime)s [%(levelname)s] %(message)s"
DEFAULT_SERVICE_INTERVAL: str = "5m"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="matrix-consume",
        description="Post images from a directory to a Matrix room, one at a time.",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        help="Path to the config file (default: $MATRIX_CONSUME_CONFIG "
        f"or {default_config_path()})",
    )
    parser.add_argument(
        "-t",
        "--timeout",
        help="Delay between uploads, e.g. 30, 10s, 5m, 1h, 1d (overrides config)",
    )
    parser.add_argument(
        "--watch",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Keep watching the directory for new files (overrides config)",
    )
    parser.add_argument(
        "--one-shot",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Exit after posting a single file (overrides config)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.add_parser("run", help="Consume the directory (default)")
    install = subparsers.add_parser(
        "install-service", help="Install and enable a systemd user service and timer"
    )
    install.add_argument(
        "--interval",
        default=DEFAULT_SERVICE_INTERVAL,
        help=f"Restart the service after it has been inactive this long "
        f"(default: {DEFAULT_SERVICE_INTERVAL})",
    )
    subparsers.add_parser("remove-service", help="Disable and delete the systemd user units")
    return parser


def _raise_exit(signum, frame) -> None:
    # unwind with-blocks so temporary files are removed
    raise SystemExit(128 + signum)


def install_signal_handlers() -> None:
    for sig in (signal.SIGTERM, signal.SIGHUP):
        signal.signal(sig, _raise_exit)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    install_signal_handlers()

    try:
        timeout = parse_timeout(args.timeout) if args.timeout is not None else None
        config = load_config(
            args.config, timeout=timeout, watch=args.watch, one_shot=args.one_shot
        )
        if args.command == "install-service":
            install_service(config.source, parse_timeout(args.interval, "interval"))
        elif args.command == "remove-service":
            remove_service(config.source)
        else:
            run(config)
    except MatrixConsumeError as exc:
        logger.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
