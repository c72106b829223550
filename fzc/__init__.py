"""
fzc - Fuzzy Command Launcher
Fuzzy-search a catalog of shell commands and run them inline or in your shell
"""

import logging

__version__ = "0.4.0"

# The TUI owns the terminal, so nothing may reach stderr unless a log file is set up
logging.getLogger(__name__).addHandler(logging.NullHandler())
