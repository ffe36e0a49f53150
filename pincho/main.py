"""Main entry point for the pincho command line tool.

Sets up the Typer CLI application, builds a PinchoClient from flags,
environment and config files, and reports results through ConsoleDisplay.
"""

import asyncio
import logging
from typing import Any, Coroutine, List, Optional

import typer
from typing_extensions import Annotated

from pincho.core.client import PinchoClient
from pincho.domain.errors import ConfigurationError, PinchoError, RequestCancelled
from pincho.domain.models.notification import NotificationRequest
from pincho.infrastructure.cli.display import ConsoleDisplay
from pincho.infrastructure.config.settings import load_configuration, resolve_settings
from pincho.infrastructure.monitoring.logger_setup import setup_logging
from pincho.infrastructure.resilience.cancellation import CancellationToken
from pincho.version import __version__

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="pincho",
    help=f"pincho v{__version__}: send push notifications through the Pincho API.",
    add_completion=False,
)

display = ConsoleDisplay()


def run_async(coro: Coroutine[Any, Any, Any]) -> Any:
    """Runs a coroutine from a sync Typer command."""
    return asyncio.run(coro)


def _configure(verbose: bool) -> None:
    setup_logging(log_level=logging.DEBUG if verbose else logging.WARNING)
    load_configuration()


# Shared connection options
TokenOption = Annotated[Optional[str], typer.Option("--token", help="API token (default: PINCHO_TOKEN).")]
ApiUrlOption = Annotated[Optional[str], typer.Option("--api-url", help="Send endpoint (default: PINCHO_API_URL or the public API).")]
TimeoutOption = Annotated[Optional[float], typer.Option("--timeout", help="Per-attempt timeout in seconds.")]
RetriesOption = Annotated[Optional[int], typer.Option("--max-retries", help="Retries after the first attempt; 0 disables.")]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")]


@app.command()
def send(
    title: Annotated[str, typer.Argument(help="Notification title.")],
    message: Annotated[Optional[str], typer.Argument(help="Notification body.")] = None,
    type_: Annotated[Optional[str], typer.Option("--type", "-t", help="Notification type, e.g. 'alert'.")] = None,
    tag: Annotated[Optional[List[str]], typer.Option("--tag", help="Tag (repeatable).")] = None,
    image_url: Annotated[Optional[str], typer.Option("--image-url", help="Image to show with the notification.")] = None,
    action_url: Annotated[Optional[str], typer.Option("--action-url", help="URL opened on tap.")] = None,
    encrypt_password: Annotated[Optional[str], typer.Option("--encrypt-password", help="Encrypt title, message and URLs with this password.")] = None,
    deadline: Annotated[Optional[float], typer.Option("--deadline", help="Give up after this many seconds, retries included.")] = None,
    token: TokenOption = None,
    api_url: ApiUrlOption = None,
    timeout: TimeoutOption = None,
    max_retries: RetriesOption = None,
    verbose: VerboseOption = False,
):
    """Send a notification."""
    _configure(verbose)
    request = NotificationRequest(
        title=title,
        message=message,
        type=type_,
        tags=tag or None,
        image_url=image_url,
        action_url=action_url,
        encryption_password=encrypt_password,
    )

    async def _send():
        async with PinchoClient(token=token, api_url=api_url, timeout=timeout, max_retries=max_retries) as client:
            cancel_token = CancellationToken.with_timeout(deadline) if deadline else None
            response = await client.send(request, cancel_token=cancel_token)
            return response, client.get_rate_limit_info()

    try:
        response, rate_limit = run_async(_send())
    except ConfigurationError as e:
        display.display_error(f"Configuration error: {e}")
        raise typer.Exit(code=2)
    except RequestCancelled as e:
        display.display_error(f"Send cancelled: {e.reason}")
        raise typer.Exit(code=1)
    except PinchoError as e:
        logger.debug(f"Send failed: {e!r}")
        display.display_error(str(e))
        raise typer.Exit(code=1)

    display.display_send_result(response)
    display.display_rate_limit(rate_limit)


@app.command(name="config")
def config_command(
    token: TokenOption = None,
    api_url: ApiUrlOption = None,
    timeout: TimeoutOption = None,
    max_retries: RetriesOption = None,
    verbose: VerboseOption = False,
):
    """Show the effective client settings."""
    _configure(verbose)
    display.display_settings(resolve_settings(token, api_url, timeout, max_retries))


@app.command()
def version():
    """Print the library version."""
    typer.echo(__version__)


def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
