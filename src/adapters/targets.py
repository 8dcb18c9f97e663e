"""Parsing of `host:port` input into `Target`s.

Accepted forms:
- `10.0.0.1:3306`
- `[2001:db8::1]:443`
- `db.example.com:5432` (resolved; the name is kept for SNI and logs)
"""

from __future__ import annotations

import ipaddress
import socket
from typing import Iterable

from core.domain.errors import TargetParseError
from core.domain.models import Target


def _split(value: str) -> tuple[str, str]:
    if value.startswith("["):
        host, sep, rest = value[1:].partition("]")
        if not sep or not rest.startswith(":"):
            raise TargetParseError(f"invalid target {value!r}: expected [ipv6]:port")
        return host, rest[1:]

    host, sep, port = value.rpartition(":")
    if not sep or not host:
        raise TargetParseError(f"invalid target {value!r}: expected host:port")
    if ":" in host:
        raise TargetParseError(f"invalid target {value!r}: bracket IPv6 addresses, e.g. [::1]:80")
    return host, port


def _resolve(hostname: str, port: int) -> str:
    try:
        infos = socket.getaddrinfo(hostname, port, type=socket.SOCK_STREAM)
    except (socket.gaierror, UnicodeError) as exc:
        raise TargetParseError(f"cannot resolve {hostname!r}: {exc}") from exc
    if not infos:
        raise TargetParseError(f"cannot resolve {hostname!r}")
    return str(infos[0][4][0])


def parse_target(value: str) -> Target:
    text = value.strip()
    host, port_text = _split(text)
    try:
        port = int(port_text)
    except ValueError as exc:
        raise TargetParseError(f"invalid port in {value!r}") from exc
    if not 0 <= port <= 65535:
        raise TargetParseError(f"port out of range in {value!r}")

    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return Target(address=ipaddress.ip_address(_resolve(host, port)), port=port, host=host.lower())
    return Target(address=address, port=port)


def parse_targets(values: Iterable[str]) -> list[Target]:
    """Parse many targets, skipping blank lines and `#` comments."""

    targets: list[Target] = []
    for raw in values:
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        targets.append(parse_target(line))
    return targets
