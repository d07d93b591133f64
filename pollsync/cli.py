"""Click CLI: loads config, builds the sheet store and chat transport, runs the bot."""

import asyncio
import logging
import os
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from config.config_loader import AppConfig, load_config
from pollsync.adapters.base import ChatTransport, TabularStore
from pollsync.adapters.console import ConsoleTransport
from pollsync.adapters.google_sheets import GoogleSheetsStore, load_credentials
from pollsync.adapters.telegram import TelegramTransport
from pollsync.bot import BotRunner
from pollsync.engine import ConversationEngine
from pollsync.errors import TransportError
from pollsync.healthcheck import run_health_checks
from pollsync.votes import PollRegistry

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
    # googleapiclient logs every discovery fetch at INFO
    logging.getLogger("googleapiclient").setLevel(logging.WARNING)


def _build_store(config: AppConfig) -> GoogleSheetsStore:
    """Raises RuntimeError/ValueError/FileNotFoundError on missing or bad credentials."""
    if not config.has_store:
        raise RuntimeError(f"{config.google.spreadsheet_id_env} is not set. Check your .env.")
    spreadsheet_id = os.environ[config.google.spreadsheet_id_env].strip()
    credentials = load_credentials(config.google)
    return GoogleSheetsStore(spreadsheet_id, credentials=credentials)


def _build_transport(config: AppConfig, use_console: bool) -> ChatTransport:
    if use_console:
        return ConsoleTransport(console)
    if not config.has_transport:
        raise RuntimeError(f"{config.telegram.token_env} is not set. Check your .env or use --console.")
    return TelegramTransport(config.telegram)


def _report_health(results: dict[str, tuple[bool, str]]) -> list[str]:
    """Print health results and return the names that failed."""
    failed: list[str] = []
    for name in sorted(results):
        ok, err = results[name]
        if ok:
            console.print(f"  [green]OK  [/green] {name}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {name}: {short_err}")
            failed.append(name)
    return failed


async def _serve(
    store: TabularStore,
    transport: ChatTransport,
    engine: ConversationEngine,
    skip_health_check: bool,
    check_only: bool,
) -> int:
    """Run health checks, then the bot loop. Returns the process exit code."""
    if not skip_health_check or check_only:
        console.print("\n[bold]Checking collaborators...[/bold]")
        results = await run_health_checks({"sheet": store, transport.name(): transport})
        failed = _report_health(results)
        if check_only:
            await transport.close()
            return 1 if failed else 0
        if failed and not click.confirm("Continue anyway?", default=False):
            await transport.close()
            return 1
        console.print()

    await BotRunner(transport, engine).run()
    return 0


@click.command()
@click.option("--console", "use_console", is_flag=True, help="Chat in this terminal instead of Telegram")
@click.option("--settings", "settings_path", default=None, type=click.Path(exists=True, dir_okay=False),
              help="Path to settings.yaml (default: bundled config)")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the sheet/transport connectivity check at startup")
@click.option("--check-only", is_flag=True, default=False,
              help="Run the connectivity check and exit")
def main(
    use_console: bool,
    settings_path: str | None,
    verbose: bool,
    skip_health_check: bool,
    check_only: bool,
) -> None:
    """pollsync -- collect attendance from chat polls into a Google Sheet.

    \b
    Examples:
      pollsync
      pollsync --console
      pollsync --check-only
      pollsync --settings ./my_settings.yaml --verbose
    """
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config(Path(settings_path)) if settings_path else load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    try:
        store = _build_store(config)
        transport = _build_transport(config, use_console)
    except (RuntimeError, ValueError, FileNotFoundError, TransportError) as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)

    registry = PollRegistry(capacity=config.polls.capacity, ttl_sec=config.polls.ttl_sec)
    engine = ConversationEngine(store, config.sheet, registry, transport)

    try:
        code = asyncio.run(_serve(store, transport, engine, skip_health_check, check_only))
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped.[/dim]")
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    main()
