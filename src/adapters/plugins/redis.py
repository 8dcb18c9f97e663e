"""Plugin: Redis.

Sends `PING` as a RESP array. A `+PONG` reply, or an authentication error,
identifies Redis.
"""

from __future__ import annotations

from adapters.plugins.base import BasePlugin, first_line
from core.domain.models import Service, Target, Transport
from core.interfaces.connection import Connection
from core.services.plugin_registry import register_plugin

_PING = b"*1\r\n$4\r\nPING\r\n"
_AUTH_ERRORS = (b"-NOAUTH", b"-WRONGPASS", b"-DENIED")


@register_plugin
class RedisPlugin(BasePlugin):
    name = "redis"
    transport = Transport.TCP
    priority = 413
    default_ports = frozenset({6379})

    async def run(self, conn: Connection, timeout: float, target: Target) -> Service | None:
        reply = await conn.send_recv(_PING, timeout)
        if reply.startswith(b"+PONG"):
            auth_required = False
        elif reply.startswith(_AUTH_ERRORS):
            auth_required = True
        else:
            return None
        return self.service(
            target,
            metadata={"auth_required": auth_required, "reply": first_line(reply)},
        )
