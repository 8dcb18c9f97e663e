"""Plugin: FTP.

A `220` greeting alone is shared with SMTP, so the greeting is confirmed by
sending `USER anonymous` and expecting an FTP login reply.

Replies may span several lines (`220-...` continuation lines); a reply is
complete once a line starts with its code followed by a space.
"""

from __future__ import annotations

import re

from adapters.plugins.base import BasePlugin, first_line, recv_until
from core.domain.models import Service, Target, Transport
from core.interfaces.connection import Connection
from core.services.plugin_registry import register_plugin

_MAX_REPLY = 4096
_GREETING = re.compile(rb"^220[- ]")
_USER_REPLY = re.compile(rb"^(230|331|332|530)[- ]")
_FINAL_LINE = re.compile(rb"^(\d{3}) [^\n]*\n", re.MULTILINE)


def reply_complete(data: bytes) -> bool:
    code = data[:3]
    return any(match.group(1) == code for match in _FINAL_LINE.finditer(data))


async def read_reply(conn: Connection, timeout: float) -> bytes:
    """Read one (possibly multi-line) reply."""

    data = b""
    while len(data) < _MAX_REPLY:
        chunk = await recv_until(conn, timeout, limit=_MAX_REPLY - len(data), terminator=b"\n")
        if not chunk:
            break
        data += chunk
        if not data[:3].isdigit() or reply_complete(data):
            break
    return data


@register_plugin
class FTPPlugin(BasePlugin):
    name = "ftp"
    transport = Transport.TCP
    priority = 10
    default_ports = frozenset({21})

    async def run(self, conn: Connection, timeout: float, target: Target) -> Service | None:
        greeting = await read_reply(conn, timeout)
        if not _GREETING.match(greeting):
            return None

        await conn.send(b"USER anonymous\r\n")
        reply = await read_reply(conn, timeout)
        match = _USER_REPLY.match(reply)
        if match is None:
            return None

        code = int(match.group(1))
        return self.service(
            target,
            metadata={
                "banner": first_line(greeting)[4:].strip(),
                "user_reply_code": code,
                "anonymous_login": code in (230, 331),
            },
        )
