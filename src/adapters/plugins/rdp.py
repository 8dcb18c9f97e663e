"""Plugin: RDP.

Sends an X.224 Connection Request (inside a TPKT header) carrying an RDP
negotiation request, and expects an X.224 Connection Confirm. The
negotiation response, when present, tells which security protocol the
server selected.
"""

from __future__ import annotations

import struct

from adapters.plugins.base import BasePlugin
from core.domain.models import Service, Target, Transport
from core.interfaces.connection import Connection
from core.services.plugin_registry import register_plugin

_COOKIE = b"Cookie: mstshash=protoscope\r\n"
# RDP_NEG_REQ: type 1, flags 0, length 8, requested TLS | CredSSP | CredSSP-EX
_NEG_REQUEST = struct.pack("<BBHI", 0x01, 0x00, 8, 0x0000000B)

_X224_CONNECTION_CONFIRM = 0xD0
_NEG_RESPONSE = 0x02
_NEG_FAILURE = 0x03

_PROTOCOLS = {
    0x00: "rdp",
    0x01: "ssl",
    0x02: "hybrid",
    0x04: "rdstls",
    0x08: "hybrid_ex",
}


def build_connection_request() -> bytes:
    # X.224 CR TPDU after the length indicator: code, dst-ref, src-ref, class.
    x224 = bytes([0xE0, 0x00, 0x00, 0x00, 0x00, 0x00]) + _COOKIE + _NEG_REQUEST
    tpkt = struct.pack(">BBH", 3, 0, 4 + 1 + len(x224))
    return tpkt + bytes([len(x224)]) + x224


def parse_connection_confirm(data: bytes) -> dict[str, object] | None:
    if len(data) < 11 or data[0] != 3 or data[1] != 0:
        return None
    (length,) = struct.unpack(">H", data[2:4])
    if length < 11 or data[5] & 0xF0 != _X224_CONNECTION_CONFIRM:
        return None

    info: dict[str, object] = {}
    if len(data) >= 19:
        kind = data[11]
        (value,) = struct.unpack("<I", data[15:19])
        if kind == _NEG_RESPONSE:
            info["selected_protocol"] = _PROTOCOLS.get(value, hex(value))
        elif kind == _NEG_FAILURE:
            info["negotiation_failure"] = value
    return info


@register_plugin
class RDPPlugin(BasePlugin):
    name = "rdp"
    transport = Transport.TCP
    priority = 89
    default_ports = frozenset({3389})

    async def run(self, conn: Connection, timeout: float, target: Target) -> Service | None:
        reply = await conn.send_recv(build_connection_request(), timeout)
        info = parse_connection_confirm(reply)
        if info is None:
            return None
        return self.service(target, metadata=info)
