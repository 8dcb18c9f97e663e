"""Plugin: SSH.

The server speaks first with an identification string
`SSH-protoversion-softwareversion [comments]`.
"""

from __future__ import annotations

from adapters.plugins.base import BasePlugin, first_line, recv_until
from core.domain.models import Service, Target, Transport
from core.interfaces.connection import Connection
from core.services.plugin_registry import register_plugin


@register_plugin
class SSHPlugin(BasePlugin):
    name = "ssh"
    transport = Transport.TCP
    priority = 2
    default_ports = frozenset({22, 2222})

    async def run(self, conn: Connection, timeout: float, target: Target) -> Service | None:
        data = await recv_until(conn, timeout, limit=1024, terminator=b"\n")
        # Servers may send other lines before the identification string.
        for chunk in data.split(b"\n"):
            banner = first_line(chunk)
            if banner.startswith("SSH-"):
                break
        else:
            return None

        ident, _, comments = banner.partition(" ")
        parts = ident.split("-", 2)
        if len(parts) < 3 or not parts[1] or not parts[2]:
            return None

        return self.service(
            target,
            version=parts[2],
            metadata={
                "banner": banner,
                "protocol_version": parts[1],
                "software": parts[2],
                "comments": comments or None,
            },
        )
