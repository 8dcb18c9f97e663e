"""Plugin contract.

Why Protocol:
- Structural contract (duck typing) without a rigid hierarchy.
- Keeps the scan engine independent from concrete protocol detectors, which
  are interchangeable and testable on their own.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from core.domain.models import Service, Target, Transport
from core.interfaces.connection import Connection


@runtime_checkable
class ServicePlugin(Protocol):
    """Minimal contract for a protocol detector.

    Design rules:
    - `run` is asynchronous because it does network I/O.
    - Returns a `Service` on a match and `None` when the peer is not speaking
      this protocol; raises on I/O failure.
    - Plugins are stateless and shared by concurrent scans.
    """

    name: str
    transport: Transport
    priority: int

    def port_priority(self, port: int) -> bool:
        """True if `port` is one of this protocol's well-known ports."""

        ...

    async def run(self, conn: Connection, timeout: float, target: Target) -> Service | None:
        """Probe `conn` and return the identified service, if any."""

        ...


def plugin_id(plugin: ServicePlugin) -> str:
    """Stable identifier used in logs and errors, e.g. `mysql/tcp`."""

    return f"{plugin.name}/{plugin.transport.value}"
