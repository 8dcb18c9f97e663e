"""Transport dialers: TCP, UDP, TLS and SOCKS5 tunnels.

Why one module:
- Standardizes dial timeouts, the TLS client policy and proxy handling, so
  every stage of a scan opens connections the same way.
- Dial failures surface as `DialError` and are never retried here; the scan
  orchestrator decides what to try next.

TLS policy is permissive (legacy ciphers, TLS 1.0, no
certificate validation): the goal is to learn whether TLS is spoken at all,
not to establish trust.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import socket
import ssl
import warnings
from urllib.parse import urlsplit

from python_socks import ProxyConnectionError, ProxyError, ProxyTimeoutError
from python_socks.async_.asyncio import Proxy

from adapters.connection import DatagramConnection, DatagramReceiver, StreamConnection
from core.config import ScanSettings
from core.domain.errors import DialError, ProxyConfigError
from core.domain.models import Target

logger = logging.getLogger(__name__)

DEFAULT_DIAL_TIMEOUT = 2.0

_DIAL_ERRORS = (
    OSError,
    asyncio.TimeoutError,
    ProxyError,
    ProxyConnectionError,
    ProxyTimeoutError,
)


@functools.lru_cache(maxsize=None)
def tls_context() -> ssl.SSLContext:
    """Shared client context, built once and never modified afterwards.

    The server name is passed per handshake, so concurrent scans of different
    hosts can share this object safely.
    """

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    with warnings.catch_warnings():
        # ssl warns when TLS 1.0 is allowed.
        warnings.simplefilter("ignore", DeprecationWarning)
        context.minimum_version = ssl.TLSVersion.TLSv1
    try:
        context.set_ciphers("ALL:@SECLEVEL=0")
    except ssl.SSLError:
        # LibreSSL does not know security levels.
        context.set_ciphers("ALL")
    return context


def parse_proxy_url(url: str | None) -> str | None:
    """Validate a proxy URL; `None` means direct connections.

    Only `socks5://host:port` is accepted.
    """

    value = (url or "").strip()
    if not value:
        return None

    parsed = urlsplit(value)
    if parsed.scheme.lower() != "socks5":
        scheme = parsed.scheme or "no scheme"
        raise ProxyConfigError(f"only socks5 proxies are supported, got {scheme!r} in {value!r}")
    try:
        port = parsed.port
    except ValueError as exc:
        raise ProxyConfigError(f"invalid proxy port in {value!r}") from exc
    if not parsed.hostname or port is None:
        raise ProxyConfigError(f"proxy URL must include host and port: {value!r}")
    return value


def _describe(exc: BaseException) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return "timed out"
    return str(exc) or type(exc).__name__


class Dialer:
    """Opens connections to targets, directly or through a SOCKS5 proxy.

    The proxy URL is validated in the constructor, before any dial and before
    any network I/O. UDP is always dialled directly.
    """

    def __init__(self, *, proxy: str = "", timeout: float = DEFAULT_DIAL_TIMEOUT) -> None:
        self._proxy_url = parse_proxy_url(proxy)
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: ScanSettings) -> "Dialer":
        return cls(proxy=settings.proxy, timeout=settings.dial_timeout_seconds)

    @property
    def proxy_url(self) -> str | None:
        return self._proxy_url

    @property
    def timeout(self) -> float:
        return self._timeout

    async def dial_tcp(self, target: Target) -> StreamConnection:
        try:
            if self._proxy_url is None:
                reader, writer = await asyncio.wait_for(
                    asyncio.open_connection(target.ip, target.port),
                    self._timeout,
                )
            else:
                sock = await self._tunnel(target)
                try:
                    reader, writer = await asyncio.open_connection(sock=sock)
                except BaseException:
                    sock.close()
                    raise
        except _DIAL_ERRORS as exc:
            raise DialError(target.endpoint, _describe(exc)) from exc
        return StreamConnection(reader, writer, remote=target.endpoint)

    async def dial_tls(self, target: Target) -> StreamConnection:
        """TLS handshake with the target (SNI = `target.host` when set).

        Through a proxy the tunnel is established first and the handshake runs
        over the tunnelled socket as a client-side upgrade.
        """

        context = tls_context()
        server_hostname = target.host or target.ip
        try:
            if self._proxy_url is None:
                reader, writer = await asyncio.wait_for(
                    asyncio.open_connection(
                        target.ip,
                        target.port,
                        ssl=context,
                        server_hostname=server_hostname,
                        ssl_handshake_timeout=self._timeout,
                    ),
                    self._timeout,
                )
            else:
                sock = await self._tunnel(target)
                try:
                    reader, writer = await asyncio.wait_for(
                        asyncio.open_connection(
                            sock=sock,
                            ssl=context,
                            server_hostname=server_hostname,
                            ssl_handshake_timeout=self._timeout,
                        ),
                        self._timeout,
                    )
                except BaseException:
                    sock.close()
                    raise
        except _DIAL_ERRORS as exc:
            raise DialError(target.endpoint, f"TLS: {_describe(exc)}") from exc
        return StreamConnection(reader, writer, remote=target.endpoint, tls=True)

    async def dial_udp(self, target: Target) -> DatagramConnection:
        loop = asyncio.get_running_loop()
        try:
            transport, protocol = await asyncio.wait_for(
                loop.create_datagram_endpoint(
                    DatagramReceiver,
                    remote_addr=(target.ip, target.port),
                ),
                self._timeout,
            )
        except _DIAL_ERRORS as exc:
            raise DialError(target.endpoint, _describe(exc)) from exc
        return DatagramConnection(transport, protocol, remote=target.endpoint)

    async def _tunnel(self, target: Target) -> socket.socket:
        proxy = Proxy.from_url(self._proxy_url)
        logger.debug("Opening SOCKS5 tunnel to %s", target.endpoint)
        return await proxy.connect(
            dest_host=target.ip,
            dest_port=target.port,
            timeout=self._timeout,
        )
