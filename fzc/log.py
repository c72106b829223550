"""
Logging setup

The TUI owns the terminal, so log records only ever go to a file. Without
--log-file (or FZC_LOG_FILE) the package's NullHandler keeps everything quiet.
"""

import logging
import os

LOG_FILE_ENV = 'FZC_LOG_FILE'
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'


def resolve_log_file(cli_value=None):
    return cli_value or os.environ.get(LOG_FILE_ENV) or None


def setup_logging(log_file=None, level=logging.INFO):
    """
    Attach a file handler to the 'fzc' logger.

    Args:
        log_file: path of the log file, or None to stay silent.
        level: logging level for the package logger.

    Returns the handler, or None when logging stays disabled.
    """
    if not log_file:
        return None

    directory = os.path.dirname(os.path.abspath(log_file))
    os.makedirs(directory, exist_ok=True)

    handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    package_logger = logging.getLogger('fzc')
    # Avoid duplicate records when called twice
    for old in package_logger.handlers[:]:
        if isinstance(old, logging.FileHandler):
            package_logger.removeHandler(old)
            old.close()

    package_logger.addHandler(handler)
    package_logger.setLevel(level)
    package_logger.propagate = False
    return handler
