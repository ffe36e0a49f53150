import logging
from datetime import datetime, timezone
from typing import Any, Optional

from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from pincho.domain.models.notification import RateLimitInfo, SendResponse
from pincho.infrastructure.config.settings import ClientSettings
from pincho.infrastructure.monitoring.logger_setup import truncate_token

logger = logging.getLogger(__name__)


class ConsoleDisplay:
    """Console output for the pincho CLI, rendered with rich."""

    def __init__(self, console: Optional[Console] = None):
        self._console = console or Console()

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    @console.setter
    def console(self, value: Console) -> None:
        self._console = value

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style."""
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_send_result(self, response: Optional[SendResponse]) -> None:
        """Displays the outcome of a successful send."""
        if response is None or not (response.status or response.message):
            self.display_info("Notification sent.")
            return
        details = response.message or response.status
        self.display_info(f"Notification sent ({response.status or 'ok'}): {details}")

    def display_rate_limit(self, info: Optional[RateLimitInfo]) -> None:
        """Displays the rate limit snapshot as a table."""
        if info is None:
            logger.debug("No rate limit headers in response")
            self.console.print("[dim]No rate limit information in response.[/dim]")
            return

        table = Table(title="Rate Limit", show_header=False, box=ROUNDED, border_style="cyan", padding=(0, 1))
        table.add_column("Field", style="bold cyan")
        table.add_column("Value")
        table.add_row("Limit", str(info.limit))
        table.add_row("Remaining", str(info.remaining))
        if info.has_reset:
            until_reset = info.reset - datetime.now(timezone.utc)
            seconds = max(0, int(until_reset.total_seconds()))
            table.add_row("Resets at", f"{info.reset.isoformat()} (in {seconds}s)")
        else:
            table.add_row("Resets at", "-")
        self.console.print(table)

    def display_settings(self, settings: ClientSettings) -> None:
        """Displays resolved client settings with the token truncated."""
        table = Table(title="Effective Settings", show_header=False, box=ROUNDED, border_style="cyan", padding=(0, 1))
        table.add_column("Setting", style="bold cyan")
        table.add_column("Value")
        table.add_row("token", truncate_token(settings.token) or "[red](not set)[/red]")
        table.add_row("api_url", settings.api_url)
        table.add_row("timeout", f"{settings.timeout:g}s")
        table.add_row("max_retries", str(settings.max_retries))
        self.console.print(table)
