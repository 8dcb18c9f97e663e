"""UI components for the CLI (Rich).

Why separate components:
- Keeps command logic apart from presentation details.
- Lets several commands reuse the same tables and panels.
"""

from __future__ import annotations

from typing import Iterable

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.models import Service, Transport
from core.services.plugin_registry import PluginRegistry


def print_banner(console: Console) -> None:
    """Print the welcome banner.

    Why here:
    - Avoids circular dependencies (main <-> doctor).
    - Can be skipped in non-interactive modes (JSON/pipelines).
    """

    title = Text("protoscope", style="bold cyan")
    subtitle = Text("Service fingerprinting • TCP • TLS • UDP", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def build_services_table(services: Iterable[Service]) -> Table:
    table = Table(title="Services")
    table.add_column("Endpoint", style="cyan", no_wrap=True)
    table.add_column("Host", style="white")
    table.add_column("Transport", style="green")
    table.add_column("Protocol", style="bold magenta")
    table.add_column("Version", style="dim")
    for service in services:
        endpoint = f"[{service.ip}]:{service.port}" if ":" in service.ip else f"{service.ip}:{service.port}"
        table.add_row(
            endpoint,
            service.host or "-",
            service.transport.value,
            service.protocol,
            service.version or "",
        )
    return table


def build_plugins_table(registry: PluginRegistry) -> Table:
    table = Table(title="Registered plugins")
    table.add_column("Transport", style="green", no_wrap=True)
    table.add_column("Priority", style="white", justify="right")
    table.add_column("Plugin", style="bold cyan")
    table.add_column("Default ports", style="dim")
    for transport in Transport:
        for plugin in registry.plugins_for(transport):
            ports = getattr(plugin, "default_ports", ())
            table.add_row(
                transport.value,
                str(plugin.priority),
                plugin.name,
                ", ".join(str(p) for p in sorted(ports)),
            )
    return table


def build_errors_panel(errors: list[tuple[str, str]]) -> Panel:
    """Panel listing per-target failures (endpoint, message)."""

    body = Text()
    for endpoint, message in errors:
        body.append(f"{endpoint}", style="bold")
        body.append(f"  {message}\n")
    return Panel(body, title=Text("Errors", style="bold red"), border_style="red")
