"""Plugin: DNS over UDP.

Asks for the root NS records. Any reply with the same transaction id and the
QR bit set is a DNS server, whatever its response code.
"""

from __future__ import annotations

import secrets
import struct

from adapters.plugins.base import BasePlugin
from core.domain.models import Service, Target, Transport
from core.interfaces.connection import Connection
from core.services.plugin_registry import register_plugin

_HEADER = struct.Struct(">HHHHHH")
_FLAG_QR = 0x8000
_FLAG_AA = 0x0400
_FLAG_RA = 0x0080
_RD = 0x0100
_TYPE_NS = 2
_CLASS_IN = 1


def build_query(transaction_id: int) -> bytes:
    header = _HEADER.pack(transaction_id, _RD, 1, 0, 0, 0)
    question = b"\x00" + struct.pack(">HH", _TYPE_NS, _CLASS_IN)
    return header + question


def parse_reply(data: bytes, transaction_id: int) -> dict[str, object] | None:
    if len(data) < _HEADER.size:
        return None
    ident, flags, _, answers, authority, _ = _HEADER.unpack(data[: _HEADER.size])
    if ident != transaction_id or not flags & _FLAG_QR:
        return None
    return {
        "rcode": flags & 0x000F,
        "answers": answers,
        "authority_records": authority,
        "authoritative": bool(flags & _FLAG_AA),
        "recursion_available": bool(flags & _FLAG_RA),
    }


@register_plugin
class DNSPlugin(BasePlugin):
    name = "dns"
    transport = Transport.UDP
    priority = 50
    default_ports = frozenset({53, 5353})

    async def run(self, conn: Connection, timeout: float, target: Target) -> Service | None:
        transaction_id = secrets.randbelow(0x10000)
        reply = await conn.send_recv(build_query(transaction_id), timeout)
        info = parse_reply(reply, transaction_id)
        if info is None:
            return None
        return self.service(target, metadata=info)
