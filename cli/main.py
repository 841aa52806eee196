"""CLI entry point and argument parsing"""

import sys
import argparse
from rich.console import Console
from cli.cli_app import GoalTrackerSyncCLI
from cli.debug_setup import setup_logging


console = Console()

COMMANDS = ["menu", "login", "logout", "status", "sync", "restore", "auto-sync"]


def main(argv=None) -> int:
    """Entry point for the CLI"""
    parser = argparse.ArgumentParser(description="Goal Tracker Dropbox backup and restore")
    parser.add_argument(
        "command",
        nargs="?",
        default="menu",
        choices=COMMANDS,
        help="Action to run (default: interactive menu)"
    )
    parser.add_argument("--debug", "-d", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--yes",
        "-y",
        action="store_true",
        help="Do not ask for confirmation before restoring"
    )

    args = parser.parse_args(argv)
    debug_logger = setup_logging(args.debug)

    exit_code = 0
    cli = None
    try:
        cli = GoalTrackerSyncCLI(debug=args.debug, debug_logger=debug_logger)

        if args.command == "menu":
            cli.run()
            cli = None
        elif args.command == "login":
            exit_code = 0 if cli.sign_in() else 1
        elif args.command == "logout":
            cli.sign_out()
        elif args.command == "status":
            cli.display_status()
        elif args.command == "sync":
            exit_code = 0 if cli.sync() else 1
        elif args.command == "restore":
            exit_code = 0 if cli.restore(assume_yes=args.yes) else 1
        elif args.command == "auto-sync":
            exit_code = 0 if cli.auto_sync() else 1

    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        console.print("Goodbye!")
        exit_code = 130
    except Exception as e:
        console.print(f"\n[red]Fatal error:[/red] {e}")
        if args.debug:
            import traceback
            traceback.print_exc()
        exit_code = 1
    finally:
        # The interactive menu closes itself on exit
        if cli is not None:
            cli.close()

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
