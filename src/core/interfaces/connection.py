"""Connection contract handed to plugins.

Why Protocol:
- Plugins only need send/recv/close, whether the bytes travel over plain TCP,
  a TLS session, a SOCKS5 tunnel or a UDP socket.
- Tests can pass an in-memory fake without opening sockets.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Connection(Protocol):
    """An open, exclusively owned transport connection.

    Design rules:
    - `recv` returns `b""` on timeout or EOF: silence means "not my protocol",
      not an I/O failure.
    - Real I/O failures (reset, ICMP unreachable) raise `OSError`.
    """

    tls: bool
    remote: str

    async def send(self, data: bytes) -> None:
        ...

    async def recv(self, timeout: float, max_bytes: int = 65535) -> bytes:
        ...

    async def send_recv(self, data: bytes, timeout: float) -> bytes:
        ...

    def close(self) -> None:
        ...
