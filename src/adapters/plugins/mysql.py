"""Plugin: MySQL / MariaDB.

The server speaks first with an initial handshake packet:

    3-byte little-endian payload length | sequence id (0) | payload

The payload starts with protocol version 10 (or 9 for very old servers)
followed by a NUL-terminated server version and a 4-byte connection id.
Servers refusing the client host send an error packet (0xFF) instead, which
still identifies MySQL.
"""

from __future__ import annotations

from adapters.plugins.base import BasePlugin, recv_until
from core.domain.models import Service, Target, Transport
from core.interfaces.connection import Connection
from core.services.plugin_registry import register_plugin

_ERROR_MARKER = 0xFF
_MAX_PACKET = 4096


def _printable(text: str) -> bool:
    return bool(text) and all(32 <= ord(ch) < 127 for ch in text)


def parse_greeting(data: bytes) -> dict[str, object] | None:
    if len(data) < 5:
        return None
    length = int.from_bytes(data[:3], "little")
    sequence = data[3]
    payload = data[4 : 4 + length]
    if sequence != 0 or length == 0 or len(payload) < length:
        return None

    if payload[0] == _ERROR_MARKER:
        if len(payload) < 4:
            return None
        code = int.from_bytes(payload[1:3], "little")
        message = payload[3:].decode("utf-8", errors="replace").strip()
        if not 1000 <= code < 5000 or not _printable(message):
            return None
        return {"error_code": code, "error_message": message}

    if payload[0] not in (9, 10):
        return None
    end = payload.find(b"\x00", 1)
    if end == -1:
        return None
    try:
        server_version = payload[1:end].decode("ascii")
    except UnicodeDecodeError:
        return None
    if not _printable(server_version):
        return None

    info: dict[str, object] = {
        "protocol_version": payload[0],
        "server_version": server_version,
        "flavor": "mariadb" if "mariadb" in server_version.lower() else "mysql",
    }
    if len(payload) >= end + 5:
        info["connection_id"] = int.from_bytes(payload[end + 1 : end + 5], "little")
    return info


@register_plugin
class MySQLPlugin(BasePlugin):
    name = "mysql"
    transport = Transport.TCP
    priority = 133
    default_ports = frozenset({3306, 3307})

    async def run(self, conn: Connection, timeout: float, target: Target) -> Service | None:
        data = await conn.recv(timeout, _MAX_PACKET)
        if len(data) >= 4:
            expected = 4 + int.from_bytes(data[:3], "little")
            if len(data) < expected <= _MAX_PACKET:
                data += await recv_until(conn, timeout, limit=expected - len(data))
        info = parse_greeting(data)
        if info is None:
            return None
        version = info.get("server_version")
        return self.service(
            target,
            version=version if isinstance(version, str) else None,
            metadata=info,
        )
