"""Plugin: Echo (RFC 862). Random bytes must come back unchanged."""

from __future__ import annotations

import secrets

from adapters.plugins.base import BasePlugin, recv_until
from core.domain.models import Service, Target, Transport
from core.interfaces.connection import Connection
from core.services.plugin_registry import register_plugin


@register_plugin
class EchoPlugin(BasePlugin):
    name = "echo"
    transport = Transport.TCP
    priority = 999
    default_ports = frozenset({7})

    async def run(self, conn: Connection, timeout: float, target: Target) -> Service | None:
        payload = secrets.token_bytes(16)
        await conn.send(payload)
        reply = await recv_until(conn, timeout, limit=len(payload))
        if reply != payload:
            return None
        return self.service(target)
