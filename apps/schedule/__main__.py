"""
Schedule Module Entry Point

Allows execution via: python -m apps.schedule

Delegates to the CLI for every subcommand (show, install, update, clear, next).
"""

import sys

from apps.schedule.cli import main

if __name__ == "__main__":
    sys.exit(main())
