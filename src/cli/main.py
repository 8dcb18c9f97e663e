"""Command line interface (Typer + Rich).

Commands:
- `scan`: fingerprint one or more `host:port` targets.
- `plugins`: list the registered plugins in priority order.
- `doctor`: environment diagnostics.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from adapters.json_exporter import export_services_json, services_to_json
from adapters.targets import parse_targets
from cli import doctor
from cli.ui_components import (
    build_errors_panel,
    build_plugins_table,
    build_services_table,
    print_banner,
)
from core.config import ScanSettings
from core.domain.errors import ProxyConfigError, ScanError, TargetParseError
from core.domain.models import Target
from core.services.plugin_registry import default_registry
from core.services.scan_pipeline import ScanHooks, scan_targets

app = typer.Typer(no_args_is_help=True, help="Identify the service running behind host:port endpoints.")
app.add_typer(doctor.app, name="doctor")

_console = Console()
_err_console = Console(stderr=True)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=_err_console, show_path=False, rich_tracebacks=True)],
        force=True,
    )


def build_settings(**overrides: object) -> ScanSettings:
    """Settings from env/.env, with explicit CLI values taking precedence."""

    values = {key: value for key, value in overrides.items() if value is not None}
    try:
        return ScanSettings(**values)
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc


@app.command()
def scan(
    targets: Optional[List[str]] = typer.Argument(None, help="Targets as host:port."),
    targets_file: Optional[Path] = typer.Option(
        None, "--list", "-l", exists=True, dir_okay=False, help="File with one host:port per line."
    ),
    fast: Optional[bool] = typer.Option(None, "--fast/--no-fast", help="Only try default-port plugins."),
    udp: Optional[bool] = typer.Option(None, "--udp/--tcp", help="Scan over UDP instead of TCP/TLS."),
    verbose: Optional[bool] = typer.Option(None, "--verbose/--quiet", "-v", help="Log every probe."),
    proxy: Optional[str] = typer.Option(None, "--proxy", help="SOCKS5 proxy, e.g. socks5://127.0.0.1:1080."),
    timeout: Optional[float] = typer.Option(None, "--timeout", "-w", help="Per-probe timeout (seconds)."),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", "-c", help="Targets scanned at once."),
    json_output: bool = typer.Option(False, "--json", help="Print results as JSON."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Also write JSON results to this file."),
) -> None:
    """Fingerprint the given targets."""

    settings = build_settings(
        fast_mode=fast,
        udp=udp,
        verbose=verbose,
        proxy=proxy,
        default_timeout_seconds=timeout,
        target_concurrency=concurrency,
    )
    configure_logging(settings.verbose)

    raw_targets = list(targets or [])
    if targets_file is not None:
        raw_targets.extend(targets_file.read_text(encoding="utf-8").splitlines())
    try:
        parsed = parse_targets(raw_targets)
    except TargetParseError as exc:
        raise typer.BadParameter(str(exc)) from exc
    if not parsed:
        raise typer.BadParameter("no targets given")

    if not json_output:
        print_banner(_console)

    errors: list[tuple[str, str]] = []

    def on_error(target: Target, exc: ScanError) -> None:
        errors.append((str(target), str(exc)))

    try:
        services = asyncio.run(scan_targets(parsed, settings, hooks=ScanHooks(error=on_error)))
    except ProxyConfigError as exc:
        _err_console.print(f"[bold red]Configuration error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc

    if json_output:
        typer.echo(services_to_json(services))
    else:
        _console.print(build_services_table(services))
        if errors:
            _console.print(build_errors_panel(errors))
        _console.print(f"[dim]{len(services)} service(s) identified on {len(parsed)} target(s).[/dim]")

    if output is not None:
        path = export_services_json(services=services, output_path=output)
        if not json_output:
            _console.print(f"[green]Saved JSON to:[/green] {path}")


@app.command()
def plugins() -> None:
    """List registered plugins per transport, in the order they are tried."""

    _console.print(build_plugins_table(default_registry()))


def run() -> None:
    app()
