"""Plugin: NTP (client mode request, server mode reply)."""

from __future__ import annotations

from adapters.plugins.base import BasePlugin
from core.domain.models import Service, Target, Transport
from core.interfaces.connection import Connection
from core.services.plugin_registry import register_plugin

# LI = 0, VN = 3, Mode = 3 (client)
_REQUEST = bytes([0x1B]) + bytes(47)
_MODE_SERVER = 4


def parse_reply(data: bytes) -> dict[str, object] | None:
    if len(data) < 48:
        return None
    mode = data[0] & 0x07
    version = (data[0] >> 3) & 0x07
    if mode != _MODE_SERVER or not 1 <= version <= 4:
        return None
    return {
        "version": version,
        "stratum": data[1],
        "leap_indicator": data[0] >> 6,
    }


@register_plugin
class NTPPlugin(BasePlugin):
    name = "ntp"
    transport = Transport.UDP
    priority = 100
    default_ports = frozenset({123})

    async def run(self, conn: Connection, timeout: float, target: Target) -> Service | None:
        info = parse_reply(await conn.send_recv(_REQUEST, timeout))
        if info is None:
            return None
        return self.service(target, version=f"NTPv{info['version']}", metadata=info)
