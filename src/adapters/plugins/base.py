"""Shared plumbing for the built-in plugins."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from core.domain.models import Service, Target, Transport
from core.interfaces.connection import Connection


class BasePlugin(ABC):
    """Default-port matching and `Service` construction.

    Subclasses set `name`, `transport`, `priority`, `default_ports` and
    implement `run`.
    """

    name: str = ""
    transport: Transport = Transport.TCP
    priority: int = 100
    default_ports: frozenset[int] = frozenset()

    def port_priority(self, port: int) -> bool:
        return port in self.default_ports

    @abstractmethod
    async def run(self, conn: Connection, timeout: float, target: Target) -> Service | None:
        ...

    def service(
        self,
        target: Target,
        *,
        version: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Service:
        return Service.from_target(
            target,
            protocol=self.name,
            transport=self.transport,
            version=version,
            metadata=metadata,
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}/{self.transport.value} priority={self.priority}>"


async def recv_until(
    conn: Connection,
    timeout: float,
    *,
    limit: int = 65536,
    terminator: bytes | None = None,
) -> bytes:
    """Read until EOF, silence, `limit` bytes or `terminator`."""

    buffer = b""
    while len(buffer) < limit:
        chunk = await conn.recv(timeout, limit - len(buffer))
        if not chunk:
            break
        buffer += chunk
        if terminator is not None and terminator in buffer:
            break
    return buffer


def first_line(data: bytes) -> str:
    return data.split(b"\n", 1)[0].rstrip(b"\r").decode("utf-8", errors="replace")
