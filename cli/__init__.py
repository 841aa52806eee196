"""CLI package for Goal Tracker cloud sync

This package provides the command-line interface for signing in to
Dropbox and backing up or restoring the goal tracker data.
"""

from cli.cli_app import GoalTrackerSyncCLI
from cli.main import main

__all__ = [
    "GoalTrackerSyncCLI",
    "main",
]
