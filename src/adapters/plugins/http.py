"""Plugin: HTTP, plain and over TLS.

Sends a minimal `GET /` and recognizes an HTTP/1.x status line. The page
title and meta description are kept as metadata when the body is HTML.
"""

from __future__ import annotations

import re
from typing import Any

from bs4 import BeautifulSoup

from adapters.plugins.base import BasePlugin, recv_until
from core.domain.models import Service, Target, Transport
from core.interfaces.connection import Connection
from core.services.plugin_registry import register_plugin

_USER_AGENT = "protoscope/0.1"
_MAX_RESPONSE = 64 * 1024
_STATUS_LINE = re.compile(rb"^HTTP/(\d(?:\.\d)?) (\d{3})(?: ([^\r\n]*))?\r?\n")
_KEPT_HEADERS = ("server", "content-type", "location", "www-authenticate", "x-powered-by")


def build_request(target: Target) -> bytes:
    host = f"{target.host}:{target.port}" if target.host else target.endpoint
    return (
        f"GET / HTTP/1.1\r\n"
        f"Host: {host}\r\n"
        f"User-Agent: {_USER_AGENT}\r\n"
        f"Accept: */*\r\n"
        f"Connection: close\r\n\r\n"
    ).encode("ascii", errors="ignore")


def parse_response(data: bytes) -> dict[str, Any] | None:
    """Status line and headers of an HTTP/1.x response; `None` if not HTTP."""

    match = _STATUS_LINE.match(data)
    if match is None:
        return None

    head, _, body = data.partition(b"\r\n\r\n")
    headers: dict[str, str] = {}
    for raw_line in head.split(b"\r\n")[1:]:
        name, sep, value = raw_line.partition(b":")
        if not sep:
            continue
        key = name.strip().decode("latin-1").lower()
        if key:
            headers[key] = value.strip().decode("latin-1")

    return {
        "http_version": match.group(1).decode("ascii"),
        "status_code": int(match.group(2)),
        "reason": (match.group(3) or b"").decode("latin-1").strip(),
        "headers": headers,
        "body": body,
    }


def extract_html_metadata(*, html: str) -> dict[str, Any]:
    """Lightweight HTML metadata.

    Returns optional keys:
    - title
    - meta_description
    """

    if not html:
        return {}

    soup = BeautifulSoup(html, "html.parser")

    out: dict[str, Any] = {}
    if soup.title and soup.title.string:
        out["title"] = soup.title.string.strip()

    tag = soup.find("meta", attrs={"name": "description"})
    if tag and tag.get("content"):
        out["meta_description"] = str(tag.get("content")).strip()
    return out


@register_plugin
class HTTPPlugin(BasePlugin):
    name = "http"
    transport = Transport.TCP
    priority = 0
    default_ports = frozenset({80, 3000, 5000, 8000, 8008, 8080, 8081, 8888})

    async def run(self, conn: Connection, timeout: float, target: Target) -> Service | None:
        await conn.send(build_request(target))
        data = await recv_until(conn, timeout, limit=_MAX_RESPONSE)

        response = parse_response(data)
        if response is None:
            return None

        headers = response["headers"]
        metadata: dict[str, Any] = {
            "status_code": response["status_code"],
            "reason": response["reason"],
            "http_version": response["http_version"],
            "headers": {k: headers[k] for k in _KEPT_HEADERS if k in headers},
        }
        if "html" in headers.get("content-type", "").lower():
            html = response["body"].decode("utf-8", errors="replace")
            metadata.update(extract_html_metadata(html=html))

        return self.service(target, version=headers.get("server"), metadata=metadata)


@register_plugin
class HTTPSPlugin(HTTPPlugin):
    transport = Transport.TLS
    priority = 1
    default_ports = frozenset({443, 4443, 8443, 9443})
