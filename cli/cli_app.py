"""Main CLI application class for Goal Tracker cloud sync"""

import asyncio
import logging
from typing import Awaitable, Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt, Confirm
from rich.table import Table

import settings
from dropbox_oauth import DropboxAuthFlow
from dropbox_storage import DropboxRemoteStore
from secret_store import password_store, refresh_token_store
from sync import BackupService, SyncOrchestrator
from sync import state_machine as sm
from utils.errors import SafeStorageError
from utils.storage import ProfileStorage
from cli.debug_setup import setup_debug_console

logger = logging.getLogger(__name__)


class GoalTrackerSyncCLI:
    """Command line front end for Dropbox backup and restore"""

    def __init__(
        self,
        debug: bool = False,
        debug_logger: Optional[logging.Logger] = None,
        orchestrator: Optional[SyncOrchestrator] = None,
        console: Optional[Console] = None,
    ):
        self.debug = debug
        self.console = console or setup_debug_console(debug, debug_logger)

        if debug:
            self.console.print("[yellow]Debug mode enabled - verbose logging will be written to the debug log[/yellow]")

        # Create event loop
        self.loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.loop)

        self.orchestrator = orchestrator or self._build_orchestrator()

    @staticmethod
    def _build_orchestrator() -> SyncOrchestrator:
        passwords = password_store()
        refresh_tokens = refresh_token_store()
        auth = DropboxAuthFlow(refresh_tokens, ProfileStorage())
        remote = DropboxRemoteStore(refresh_tokens)
        backup = BackupService(remote, passwords)
        return SyncOrchestrator(auth, remote, passwords, backup)

    @property
    def state(self) -> sm.SyncState:
        return self.orchestrator.state

    @property
    def signed_in(self) -> bool:
        return not isinstance(self.state, sm.SignedOut)

    def _run(self, awaitable: Awaitable):
        """Run a flow to completion; Ctrl+C cancels it instead of leaving it dangling"""
        task = self.loop.create_task(awaitable)
        try:
            result = self.loop.run_until_complete(task)
        except KeyboardInterrupt:
            self.console.print("\n[yellow]Cancelling...[/yellow]")
            self.orchestrator.cancel_operation()
            self.orchestrator.cancel_sign_in()
            result = self.loop.run_until_complete(task)
        self.loop.run_until_complete(self.orchestrator.settled())
        return result

    def clear_screen(self):
        """Clear the terminal screen"""
        self.console.clear()

    def display_header(self):
        """Display application header"""
        self.console.print("\n")
        self.console.print(Panel.fit(
            "[bold cyan]Goal Tracker Cloud Sync[/bold cyan]\n"
            "[dim]Encrypted backup of your goals to Dropbox[/dim]",
            border_style="cyan"
        ))

    def display_status(self):
        """Display account and backup status"""
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column(style="cyan", width=20)
        table.add_column()

        status = self.orchestrator.auth_status
        if self.signed_in:
            table.add_row("Dropbox:", "[green]✓ Signed in[/green]")
            user = status.user
            if user and user.name:
                table.add_row("Account:", user.name)
            if user and user.email:
                table.add_row("Email:", user.email)
        else:
            table.add_row("Dropbox:", "[red]✗ Not signed in[/red]")

        last_synced = self.orchestrator.backup.last_synced
        table.add_row("Last synced:", last_synced or "[dim]Never[/dim]")

        try:
            has_password = bool(self.orchestrator.passwords.get())
        except SafeStorageError:
            has_password = False
        table.add_row("Saved password:", "Yes" if has_password else "[dim]No[/dim]")
        table.add_row("Data directory:", f"[dim]{settings.DATA_DIR}[/dim]")

        self.console.print(table)
        self.console.print()

    def display_menu(self):
        """Display main menu options"""
        self.console.print("[bold]Main Menu:[/bold]")
        self.console.print()

        if not self.signed_in:
            self.console.print("  [cyan]1[/cyan]. Sign in to Dropbox")
            self.console.print("  [dim]2. Back up now (requires sign-in)[/dim]")
            self.console.print("  [dim]3. Restore from Dropbox (requires sign-in)[/dim]")
        else:
            self.console.print("  [cyan]1[/cyan]. Sign out")
            self.console.print("  [cyan]2[/cyan]. Back up now")
            self.console.print("  [cyan]3[/cyan]. Restore from Dropbox")

        self.console.print("  [cyan]4[/cyan]. Exit")
        self.console.print()

    def sign_in(self) -> bool:
        """Run the Dropbox OAuth flow"""
        self.console.print("\n[bold cyan]Dropbox Sign-in[/bold cyan]\n")
        self.console.print("A browser window will open. Approve access to finish signing in.")
        self.console.print("[dim]Press Ctrl+C to cancel[/dim]\n")

        if self._run(self.orchestrator.sign_in()):
            user = self.orchestrator.auth_status.user
            self.console.print("\n[bold green]✓ Signed in to Dropbox[/bold green]")
            if user and user.email:
                self.console.print(f"[dim]Account: {user.email}[/dim]")
            return True

        error = self.orchestrator.auth_error
        if error:
            self.console.print(f"[red]✗ Sign-in failed: {error.message or error.code.value}[/red]")
            self.orchestrator.clear_auth_error()
        else:
            self.console.print("[yellow]Sign-in cancelled[/yellow]")
        return False

    def sign_out(self):
        """Forget the Dropbox account and cached password"""
        self.orchestrator.sign_out()
        self.console.print("\n[green]✓ Signed out of Dropbox[/green]\n")

    def sync(self) -> bool:
        """Back up local data to Dropbox"""
        if not self._require_sign_in():
            return False
        self.console.print("\n[cyan]Backing up to Dropbox...[/cyan] [dim](Ctrl+C to cancel)[/dim]")
        self._run(self.orchestrator.request_sync())
        return self._drive_to_idle()

    def restore(self, assume_yes: bool = False) -> bool:
        """Replace local data with the Dropbox backup"""
        if not self._require_sign_in():
            return False

        self.orchestrator.request_restore()
        confirmed = assume_yes or Confirm.ask(
            "[yellow]This will overwrite your local goals, sounds and theme. Continue?[/yellow]",
            default=False,
            console=self.console,
        )
        if not confirmed:
            self.orchestrator.back_to_idle()
            self.console.print("[dim]Restore cancelled[/dim]")
            return False

        self.console.print("\n[cyan]Restoring from Dropbox...[/cyan] [dim](Ctrl+C to cancel)[/dim]")
        self._run(self.orchestrator.confirm_restore())
        return self._drive_to_idle()

    def auto_sync(self) -> bool:
        """Silent sync with the saved password, as done on app exit"""
        if not self.signed_in:
            logger.info("Auto-sync skipped, not signed in")
            return False
        return bool(self._run(self.orchestrator.auto_sync()))

    def _require_sign_in(self) -> bool:
        if self.signed_in:
            return True
        self.console.print("[red]✗ Not signed in to Dropbox. Sign in first.[/red]")
        return False

    def _drive_to_idle(self) -> bool:
        """Answer prompts until the flow ends; returns True on success"""
        while True:
            state = self.state

            if isinstance(state, sm.PasswordPrompt):
                if state.hint:
                    self.console.print(f"[red]{state.hint}[/red]")
                label = "Backup password" if state.purpose == sm.Operation.SYNC else "Password used for the backup"
                password = Prompt.ask(label, password=True, default="", show_default=False, console=self.console)
                if not password:
                    self.orchestrator.back_to_idle()
                    self.console.print("[dim]Cancelled[/dim]")
                    return False
                self._run(self.orchestrator.submit_password(password))

            elif isinstance(state, sm.OfferSavePassword):
                if Confirm.ask("Save this password in the system keychain?", default=True, console=self.console):
                    try:
                        self.orchestrator.confirm_save_password()
                        self.console.print("[green]✓ Password saved[/green]")
                    except SafeStorageError as e:
                        self.console.print(f"[yellow]⚠ Could not save password: {e}[/yellow]")
                else:
                    self.orchestrator.decline_save_password()
                # Result of a fresh-password run
                self.console.print("[bold green]✓ Done[/bold green]")
                return True

            elif isinstance(state, sm.Success):
                self.console.print(f"[bold green]✓ {state.message}[/bold green]")
                self.orchestrator.back_to_idle()
                return True

            elif isinstance(state, sm.Error):
                detail = f" [dim](HTTP {state.status})[/dim]" if state.status else ""
                self.console.print(Panel(f"[red]{state.message}[/red]{detail}", title="Error", border_style="red"))
                self.orchestrator.back_to_idle()
                return False

            else:
                # Cancelled runs settle straight back to idle
                return False

    def run(self):
        """Main CLI loop"""
        while True:
            self.clear_screen()
            self.display_header()
            self.display_status()
            self.display_menu()

            choice = Prompt.ask("Select option", choices=["1", "2", "3", "4"], console=self.console)

            if choice == "1":
                if self.signed_in:
                    if Confirm.ask("Sign out of Dropbox?", console=self.console):
                        self.sign_out()
                else:
                    self.sign_in()
                input("\nPress Enter to continue...")

            elif choice == "2":
                self.sync()
                input("\nPress Enter to continue...")

            elif choice == "3":
                self.restore()
                input("\nPress Enter to continue...")

            elif choice == "4":
                self.close()
                self.console.print("\n[cyan]Goodbye![/cyan]\n")
                break

    def close(self):
        """Abort anything in flight and release the event loop"""
        self.orchestrator.close()
        self.loop.close()
