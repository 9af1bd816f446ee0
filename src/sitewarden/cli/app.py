# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Typer CLI application root."""

from __future__ import annotations

import asyncio
import sys
from enum import StrEnum
from pathlib import Path
from typing import Annotated

import typer

from sitewarden.core.config import Settings

app = typer.Typer(
    name="sitewarden",
    help="Resumable malware scanner for web-hosted sites",
    no_args_is_help=True,
)


class OutputFormat(StrEnum):
    CONSOLE = "console"
    JSON = "json"


SiteRootOption = Annotated[
    Path | None, typer.Option("--site-root", "-r", help="Site document root to scan")
]
StateDbOption = Annotated[
    Path | None, typer.Option("--state-db", help="SQLite file holding the scan state")
]
SiteDbOption = Annotated[
    Path | None, typer.Option("--site-db", help="SQLite copy of the site's database")
]
FormatOption = Annotated[
    OutputFormat, typer.Option("--format", "-f", help="Output format")
]


def _settings(
    site_root: Path | None = None,
    state_db: Path | None = None,
    site_db: Path | None = None,
) -> Settings:
    overrides: dict[str, object] = {}
    if site_root is not None:
        overrides["site_root"] = site_root
    if state_db is not None:
        overrides["state_db_path"] = state_db
    if site_db is not None:
        overrides["site_db_path"] = site_db
    return Settings(**overrides)


@app.callback()
def main(
    log_level: Annotated[
        str | None, typer.Option("--log-level", help="Override SITEWARDEN_LOG_LEVEL")
    ] = None,
) -> None:
    from sitewarden.core.logging import setup_logging

    settings = Settings()
    setup_logging(log_level or settings.log_level, settings.log_format)


@app.command()
def scan(
    site_root: SiteRootOption = None,
    state_db: StateDbOption = None,
    site_db: SiteDbOption = None,
    fmt: FormatOption = OutputFormat.CONSOLE,
    ticks: Annotated[
        int | None, typer.Option("--ticks", help="Stop after this many ticks")
    ] = None,
    scheduled: Annotated[
        bool, typer.Option("--scheduled", help="Mark the run as a scheduled scan")
    ] = False,
) -> None:
    """Start a scan (or resume the running one) and tick it to completion."""
    settings = _settings(site_root, state_db, site_db)
    asyncio.run(_async_scan(settings, fmt, ticks, scheduled))


async def _async_scan(
    settings: Settings, fmt: OutputFormat, ticks: int | None, scheduled: bool
) -> None:
    from sitewarden.core.exceptions import ConfigurationError
    from sitewarden.sdk import run_scan

    try:
        state = await run_scan(settings=settings, scheduled=scheduled, max_ticks=ticks)
    except ConfigurationError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1) from exc
    _output_state(state, fmt)


@app.command()
def start(
    site_root: SiteRootOption = None,
    state_db: StateDbOption = None,
    scheduled: Annotated[
        bool, typer.Option("--scheduled", help="Mark the run as a scheduled scan")
    ] = False,
) -> None:
    """Write a fresh running scan state without ticking it."""
    asyncio.run(_async_start(_settings(site_root, state_db), scheduled))


async def _async_start(settings: Settings, scheduled: bool) -> None:
    from sitewarden.core.exceptions import ScanError
    from sitewarden.sdk import start_scan

    try:
        await start_scan(settings=settings, scheduled=scheduled)
    except ScanError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1) from exc
    typer.echo("Scan started")


@app.command()
def tick(
    site_root: SiteRootOption = None,
    state_db: StateDbOption = None,
    site_db: SiteDbOption = None,
    fmt: FormatOption = OutputFormat.CONSOLE,
) -> None:
    """Run one bounded slice of the running scan."""
    settings = _settings(site_root, state_db, site_db)
    asyncio.run(_async_tick(settings, fmt))


async def _async_tick(settings: Settings, fmt: OutputFormat) -> None:
    from sitewarden.core.exceptions import ConfigurationError
    from sitewarden.sdk import get_progress
    from sitewarden.sdk import tick as run_tick

    try:
        await run_tick(settings=settings)
    except ConfigurationError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1) from exc
    progress = await get_progress(settings=settings)
    _output_progress(progress, fmt)


@app.command()
def cancel(state_db: StateDbOption = None) -> None:
    """Cancel the running scan, keeping findings gathered so far."""
    asyncio.run(_async_cancel(_settings(state_db=state_db)))


async def _async_cancel(settings: Settings) -> None:
    from sitewarden.core.constants import ScanStatus
    from sitewarden.sdk import cancel_scan

    state = await cancel_scan(settings=settings)
    if state.status == ScanStatus.CANCELLED and state.final_message is not None:
        typer.echo(state.final_message.detail or state.final_message.text)
    else:
        typer.echo(f"No scan running (status: {state.status})")


@app.command()
def status(
    state_db: StateDbOption = None,
    fmt: FormatOption = OutputFormat.CONSOLE,
    full: Annotated[
        bool, typer.Option("--full", help="Show the whole state with findings")
    ] = False,
) -> None:
    """Show progress of the current or last scan."""
    asyncio.run(_async_status(_settings(state_db=state_db), fmt, full))


async def _async_status(settings: Settings, fmt: OutputFormat, full: bool) -> None:
    from sitewarden.sdk import get_progress

    progress = await get_progress(settings=settings)
    if full:
        _output_state(progress.state, fmt)
    else:
        _output_progress(progress, fmt)


@app.command(name="file")
def scan_file(
    path: Annotated[Path, typer.Argument(help="File to scan")],
    state_db: StateDbOption = None,
    fmt: FormatOption = OutputFormat.CONSOLE,
    no_ai: Annotated[bool, typer.Option("--no-ai", help="Skip the AI verdict")] = False,
) -> None:
    """Scan a single file outside of any scan run."""
    asyncio.run(_async_scan_file(path, _settings(state_db=state_db), fmt, no_ai))


async def _async_scan_file(path: Path, settings: Settings, fmt: OutputFormat, no_ai: bool) -> None:
    from sitewarden.core.exceptions import ScanError
    from sitewarden.sdk import scan_single_file

    try:
        detections = await scan_single_file(path, settings=settings, use_ai=not no_ai)
    except ScanError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1) from exc
    _output_detections(str(path), detections, fmt)


@app.command()
def content(
    text: Annotated[
        str | None, typer.Argument(help="Text to scan; omit or use '-' to read stdin")
    ] = None,
    state_db: StateDbOption = None,
    fmt: FormatOption = OutputFormat.CONSOLE,
) -> None:
    """Scan an ad hoc text blob."""
    if text is None or text == "-":
        text = sys.stdin.read()
    asyncio.run(_async_scan_content(text, _settings(state_db=state_db), fmt))


async def _async_scan_content(text: str, settings: Settings, fmt: OutputFormat) -> None:
    from sitewarden.sdk import scan_content

    detections = await scan_content(text, settings=settings)
    _output_detections("content", detections, fmt)


@app.command()
def version() -> None:
    """Show version information."""
    from sitewarden import __version__

    typer.echo(f"sitewarden v{__version__}")


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _output_state(state, fmt: OutputFormat) -> None:
    if fmt == OutputFormat.JSON:
        from sitewarden.cli.formatters.json_fmt import format_state_json

        typer.echo(format_state_json(state))
    else:
        from sitewarden.cli.formatters.console import format_scan_state

        format_scan_state(state)


def _output_progress(progress, fmt: OutputFormat) -> None:
    if fmt == OutputFormat.JSON:
        from sitewarden.cli.formatters.json_fmt import format_progress_json

        typer.echo(format_progress_json(progress))
    else:
        from sitewarden.cli.formatters.console import format_progress

        format_progress(progress)


def _output_detections(label: str, detections, fmt: OutputFormat) -> None:
    if fmt == OutputFormat.JSON:
        from sitewarden.cli.formatters.json_fmt import format_detections_json

        typer.echo(format_detections_json(label, detections))
    else:
        from sitewarden.cli.formatters.console import format_detections

        format_detections(label, detections)
