"""Connection wrappers over asyncio transports.

Why wrappers:
- Plugins get one small surface (`send`/`recv`/`close`) for TCP, TLS,
  SOCKS5-tunnelled and UDP connections alike.
- Timeouts on reads are normalized to `b""` so plugins treat silence as a
  decline instead of an error.
"""

from __future__ import annotations

import asyncio


class StreamConnection:
    """TCP or TLS connection backed by an asyncio stream pair."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        *,
        remote: str,
        tls: bool = False,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self.remote = remote
        self.tls = tls

    async def send(self, data: bytes) -> None:
        self._writer.write(data)
        await self._writer.drain()

    async def recv(self, timeout: float, max_bytes: int = 65535) -> bytes:
        try:
            return await asyncio.wait_for(self._reader.read(max_bytes), timeout)
        except asyncio.TimeoutError:
            return b""

    async def send_recv(self, data: bytes, timeout: float) -> bytes:
        await self.send(data)
        return await self.recv(timeout)

    @property
    def closed(self) -> bool:
        return self._writer.is_closing()

    def close(self) -> None:
        if not self._writer.is_closing():
            self._writer.close()

    async def __aenter__(self) -> "StreamConnection":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        kind = "tls" if self.tls else "tcp"
        return f"<StreamConnection {kind} {self.remote}>"


class DatagramReceiver(asyncio.DatagramProtocol):
    """Collects datagrams and socket errors for `DatagramConnection`."""

    def __init__(self) -> None:
        self.queue: asyncio.Queue[bytes | None] = asyncio.Queue()
        self.error: Exception | None = None

    def datagram_received(self, data: bytes, addr: object) -> None:
        self.queue.put_nowait(data)

    def error_received(self, exc: Exception) -> None:
        # ICMP port unreachable surfaces here as ConnectionRefusedError.
        self.error = exc
        self.queue.put_nowait(None)

    def connection_lost(self, exc: Exception | None) -> None:
        if exc is not None:
            self.error = exc
        self.queue.put_nowait(None)


class DatagramConnection:
    """Connected UDP socket: one remote peer, one datagram per `recv`."""

    tls = False

    def __init__(
        self,
        transport: asyncio.DatagramTransport,
        protocol: DatagramReceiver,
        *,
        remote: str,
    ) -> None:
        self._transport = transport
        self._protocol = protocol
        self.remote = remote

    async def send(self, data: bytes) -> None:
        self._raise_pending()
        self._transport.sendto(data)

    async def recv(self, timeout: float, max_bytes: int = 65535) -> bytes:
        self._raise_pending()
        try:
            data = await asyncio.wait_for(self._protocol.queue.get(), timeout)
        except asyncio.TimeoutError:
            return b""
        if data is None:
            self._raise_pending()
            return b""
        return data[:max_bytes]

    async def send_recv(self, data: bytes, timeout: float) -> bytes:
        await self.send(data)
        return await self.recv(timeout)

    @property
    def closed(self) -> bool:
        return self._transport.is_closing()

    def close(self) -> None:
        if not self._transport.is_closing():
            self._transport.close()

    async def __aenter__(self) -> "DatagramConnection":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    def _raise_pending(self) -> None:
        error = self._protocol.error
        if error is not None:
            self._protocol.error = None
            raise error

    def __repr__(self) -> str:
        return f"<DatagramConnection udp {self.remote}>"
