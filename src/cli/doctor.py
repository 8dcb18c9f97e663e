"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio
import ssl
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from adapters.dialer import Dialer, tls_context
from adapters.targets import parse_target
from core.config import ScanSettings, get_user_env_file
from core.domain.errors import ScanError
from core.domain.models import Target
from core.services.plugin_registry import default_registry

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()


async def _check_dial(dialer: Dialer, target: Target) -> tuple[bool, str]:
    try:
        conn = await dialer.dial_tcp(target)
    except ScanError as exc:
        return False, str(exc)
    conn.close()
    via = "via proxy" if dialer.proxy_url else "direct"
    return True, f"TCP connect OK ({via})"


def _check_tls() -> tuple[bool, str]:
    try:
        context = tls_context()
    except ssl.SSLError as exc:
        return False, str(exc)
    ciphers = len(context.get_ciphers())
    return True, f"min {context.minimum_version.name}, {ciphers} cipher suites, no verification"


@app.command()
def run(
    target: Optional[str] = typer.Option(None, "--target", "-t", help="host:port to test connectivity against."),
) -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = ScanSettings()

    table = Table(title="protoscope doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    table.add_row("User config", "OK" if get_user_env_file().exists() else "OPTIONAL", str(get_user_env_file()))

    # Proxy
    dialer: Dialer | None = None
    try:
        dialer = Dialer.from_settings(settings)
        table.add_row("Proxy", "OK", dialer.proxy_url or "direct connections")
    except ScanError as exc:
        table.add_row("Proxy", "FAIL", str(exc))

    # TLS
    ok_tls, detail_tls = _check_tls()
    table.add_row("TLS context", "OK" if ok_tls else "FAIL", detail_tls)

    # Plugins
    registry = default_registry()
    counts = ", ".join(
        f"{name}={len(plugins)}"
        for name, plugins in (("tcp", registry.tcp), ("tls", registry.tcp_tls), ("udp", registry.udp))
    )
    table.add_row("Plugins", "OK" if len(registry) else "FAIL", counts)

    # Connectivity (best-effort)
    if target and dialer is not None:
        try:
            parsed = parse_target(target)
        except ScanError as exc:
            table.add_row("Connectivity", "FAIL", str(exc))
        else:
            ok_dial, detail_dial = asyncio.run(_check_dial(dialer, parsed))
            table.add_row("Connectivity", "OK" if ok_dial else "FAIL", detail_dial)

    _console.print(table)

    if dialer is None:
        _console.print(
            "\n[yellow]Note:[/yellow] set PROTOSCOPE_PROXY to a socks5://host:port URL or leave it empty."
        )
