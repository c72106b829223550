"""Command line entry point"""

import argparse
import logging
import sys
from pathlib import Path

from fzc import __version__
from fzc.app import AppState
from fzc.catalog import RuntimeContext, load_catalog
from fzc.config import ConfigError
from fzc.launcher import FzcLauncher
from fzc.log import resolve_log_file, setup_logging
from fzc.terminal import Terminal
from fzc.usage import UsageStore, default_usage_path

logger = logging.getLogger(__name__)


def fatal(message):
    print(f"\033[91m❌ {message}\033[0m", file=sys.stderr)
    sys.exit(1)


def build_parser():
    parser = argparse.ArgumentParser(
        prog='fzc',
        description='fzc - fuzzy command launcher',
        epilog='Type to search, Enter to run, ? for help',
    )
    parser.add_argument('-c', '--config', metavar='PATH', help='Use this config file instead of the usual lookup')
    parser.add_argument('--log-file', metavar='PATH', help='Write a debug log to this file (or set FZC_LOG_FILE)')
    parser.add_argument('--debug', action='store_true', help='Log at DEBUG level')
    parser.add_argument('--version', action='version', version=f'fzc {__version__}')
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    try:
        setup_logging(resolve_log_file(args.log_file), logging.DEBUG if args.debug else logging.INFO)
    except OSError as e:
        fatal(f"Cannot open log file: {e}")

    runtime = RuntimeContext(Path.cwd(), Path(args.config) if args.config else None)
    try:
        catalog = load_catalog(runtime)
    except ConfigError as e:
        fatal(f"Config error: {e}")

    if not sys.stdin.isatty() or not sys.stdout.isatty():
        fatal("fzc needs an interactive terminal")

    usage = UsageStore.load(default_usage_path())
    state = AppState(catalog, usage)
    launcher = FzcLauncher(state, Terminal(), runtime)

    try:
        exit_code = launcher.interactive_mode()
    except KeyboardInterrupt:
        exit_code = 0
    logger.info("Exiting with %s", exit_code)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
