"""Command-line interface for Jellyfin Migration."""

import asyncio
import os
import sys
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from jfm.core.config import ConfigurationError, Settings, get_settings, log_settings
from jfm.core.logger import setup_logging
from jfm.models.report import RunReport

app = typer.Typer(
    name="jfm",
    help="Jellyfin Migration - copy watched state between Jellyfin servers",
    add_completion=False,
)

# Force UTF-8 output on Windows
if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8", errors="replace")

console = Console(force_terminal=True)

EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2


def _load_settings(config_path: Optional[Path] = None) -> Settings:
    """Load settings, exiting on configuration errors."""
    if config_path:
        # config.yml is read while the settings are built
        os.environ["CONFIG_PATH"] = str(config_path)
        get_settings.cache_clear()

    try:
        settings = get_settings()
    except (ConfigurationError, ValueError) as e:
        setup_logging()
        logger.critical(f"Invalid configuration: {e}")
        raise typer.Exit(EXIT_CONFIG_ERROR)

    return settings


def print_report(report: RunReport) -> None:
    """Print per-user counts."""
    table = Table(title="Watched state migration")
    table.add_column("User", style="cyan")
    table.add_column("Watched", justify="right")
    table.add_column("Matched", justify="right", style="green")
    table.add_column("Unmatched", justify="right", style="yellow")
    table.add_column("Match rate", justify="right")

    for user in report.users:
        table.add_row(
            user.username,
            str(user.watched),
            str(user.matched),
            str(user.unmatched),
            f"{user.match_rate:.0f}%",
        )
    for username in report.skipped_users:
        table.add_row(username, "-", "-", "-", "[dim]no destination user[/dim]")

    console.print(table)


@app.command()
def run(
    dry_run: bool = typer.Option(
        False, "--dry-run", "-n", help="Match without changing the destination"
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", help="Path to config directory"
    ),
) -> None:
    """Run one watched-state migration."""
    settings = _load_settings(config_path)
    if dry_run:
        settings.dry_run = True

    setup_logging(level=settings.log_level, log_dir=settings.get_log_path())
    log_settings(settings)

    from jfm.services.runner import Runner

    async def _run() -> RunReport:
        runner = Runner(settings)
        try:
            return await runner.run()
        finally:
            await runner.close()

    try:
        report = asyncio.run(_run())
    except ConfigurationError as e:
        logger.critical(f"Invalid configuration: {e}")
        raise typer.Exit(EXIT_CONFIG_ERROR)
    except Exception as e:
        logger.opt(exception=e).critical("Fatal error")
        raise typer.Exit(EXIT_FAILURE)

    print_report(report)
    if not report.completed:
        console.print("[red]Run aborted[/red] - last run timestamp not updated")
        raise typer.Exit(EXIT_FAILURE)

    console.print(
        f"\n[green]Completed![/green] {len(report.users)} users, "
        f"{report.total_matched} items marked watched"
    )


@app.command()
def validate(
    config_path: Optional[Path] = typer.Option(
        None, "--config", help="Path to config directory"
    ),
) -> None:
    """Validate configuration without contacting the servers."""
    settings = _load_settings(config_path)

    try:
        settings.validate_required()
    except ConfigurationError as e:
        console.print(f"[red]Validation error:[/red] {e}")
        raise typer.Exit(EXIT_CONFIG_ERROR)

    console.print(f"[green]Source:[/green]      {settings.source.url}")
    console.print(f"[green]Destination:[/green] {settings.destination.url}")
    console.print(f"[green]Admin:[/green]       {settings.destination.admin_username}")
    console.print("\n[green]Configuration is valid![/green]")


@app.command()
def show_config() -> None:
    """Log the effective configuration (API keys masked)."""
    settings = _load_settings()
    setup_logging(level=settings.log_level)
    log_settings(settings)


@app.command()
def test_connections() -> None:
    """Test connections to both servers."""
    settings = _load_settings()
    setup_logging(level="WARNING")

    from jfm.clients.jellyfin import JellyfinClient

    async def _test() -> list[tuple[str, str, str]]:
        results = []
        for label, server in (("Source", settings.source), ("Destination", settings.destination)):
            if not server.url:
                results.append((label, "SKIP", "URL not set"))
                continue

            client = JellyfinClient(
                server.url,
                server.api_key,
                identity=settings.identity,
                timeout=settings.http_timeout,
            )
            try:
                users = await client.get_users()
                names = ", ".join(u.name for u in users[:5])
                more = f" (+{len(users) - 5})" if len(users) > 5 else ""
                results.append((label, "OK", f"{len(users)} users: {names}{more}"))
            except Exception as e:
                results.append((label, "FAIL", str(e)))
            finally:
                await client.close()
        return results

    results = asyncio.run(_test())

    table = Table(title="Connection Tests")
    table.add_column("Server", style="cyan")
    table.add_column("Status")
    table.add_column("Details")

    for name, status, details in results:
        style = {"OK": "green", "FAIL": "red"}.get(status, "yellow")
        table.add_row(name, f"[{style}]{status}[/{style}]", details)

    console.print(table)

    if any(status == "FAIL" for _, status, _ in results):
        raise typer.Exit(EXIT_FAILURE)


@app.command()
def version() -> None:
    """Show version information."""
    from jfm import __version__

    console.print(f"Jellyfin Migration v{__version__}")


if __name__ == "__main__":
    app()
