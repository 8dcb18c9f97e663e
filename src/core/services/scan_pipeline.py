"""Scan orchestration.

Decides, for one target, which plugins to try, over which transport,
sequentially or concurrently, and when to stop.

TCP/TLS pipeline (early exit at every stage):

1. fast lane, plaintext: default-port plugins in priority order;
2. TLS detection: one handshake decides the transport class for the rest of
   the scan;
3. fast lane, TLS: default-port TLS plugins in priority order;
4. fast mode stops here;
5. slow lane: race the remaining plugins of the detected class, at most
   `max_concurrency` at a time; the first match wins.

UDP has no detection step and its slow lane is sequential.

The CLI and any other entry point delegate here, so side effects (printing,
progress) stay out of the engine and are reported through `ScanHooks`.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, Sequence

from adapters.dialer import Dialer
from core.config import ScanSettings
from core.domain.errors import DialError, ProbeError, ScanError
from core.domain.models import Service, Target
from core.interfaces.connection import Connection
from core.interfaces.plugin import ServicePlugin, plugin_id
from core.services.plugin_registry import PluginRegistry, default_registry
from core.services.probe_runner import run_plugin

logger = logging.getLogger(__name__)

DialFn = Callable[[Target], Awaitable[Connection]]


@dataclass
class ScanHooks:
    """Optional callbacks for UI layers (progress, per-target errors)."""

    result: Callable[[Target, Service | None], None] | None = None
    error: Callable[[Target, ScanError], None] | None = None


@dataclass
class _ScanState:
    """Bookkeeping for the sequential stages of one scan."""

    tried: set[str] = field(default_factory=set)
    probe_error: ProbeError | None = None


@dataclass
class _Race:
    """Slots shared by slow-lane racers.

    Racers run on one event loop, so slot writes never interleave. The first
    match is kept; errors keep the last one written.
    """

    result: Service | None = None
    dial_error: DialError | None = None
    probe_error: ProbeError | None = None

    @property
    def settled(self) -> bool:
        return self.result is not None or self.dial_error is not None


def _log_probe_error(settings: ScanSettings, target: Target, exc: ProbeError) -> None:
    if settings.verbose:
        logger.info("error: %s scanning %s", exc, target.endpoint)


async def _probe(
    conn: Connection,
    target: Target,
    settings: ScanSettings,
    plugin: ServicePlugin,
    state: _ScanState,
) -> Service | None:
    state.tried.add(plugin_id(plugin))
    try:
        return await run_plugin(conn, target, settings, plugin)
    except ProbeError as exc:
        state.probe_error = exc
        _log_probe_error(settings, target, exc)
        return None


async def _walk_default_ports(
    plugins: Sequence[ServicePlugin],
    dial: DialFn,
    target: Target,
    settings: ScanSettings,
    state: _ScanState,
    *,
    conn: Connection | None = None,
) -> Service | None:
    """Fast lane: plugins claiming the target's port, in priority order.

    `conn` is an already-open connection to use for the first candidate;
    every other candidate gets a fresh one, since a probe may leave the
    previous connection in an unusable state.
    """

    try:
        for plugin in plugins:
            if not plugin.port_priority(target.port):
                continue
            if conn is None:
                conn = await dial(target)
            current, conn = conn, None
            service = await _probe(current, target, settings, plugin, state)
            if service is not None:
                return service
        return None
    finally:
        if conn is not None:
            conn.close()


async def _detect_tls(dialer: Dialer, target: Target, settings: ScanSettings) -> Connection | None:
    try:
        return await dialer.dial_tls(target)
    except DialError as exc:
        if settings.verbose:
            logger.info("%s: no TLS (%s)", target.endpoint, exc.reason)
        return None


async def _race(
    plugins: Sequence[ServicePlugin],
    dial: DialFn,
    target: Target,
    settings: ScanSettings,
    *,
    fallback_error: ProbeError | None = None,
) -> Service | None:
    """Slow lane: race `plugins`, each on its own connection.

    Stops launching once a match or a dial error is recorded. Racers already
    in flight run to completion and their outcomes are discarded.
    """

    race = _Race()
    pool = asyncio.Semaphore(settings.max_concurrency)

    async def racer(plugin: ServicePlugin) -> None:
        try:
            try:
                conn = await dial(target)
            except DialError as exc:
                race.dial_error = exc
                return
            try:
                service = await run_plugin(conn, target, settings, plugin)
            except ProbeError as exc:
                race.probe_error = exc
                _log_probe_error(settings, target, exc)
                return
            if service is not None and race.result is None:
                race.result = service
        finally:
            pool.release()

    racers: list[asyncio.Task[None]] = []
    for plugin in plugins:
        if race.settled:
            break
        await pool.acquire()
        if race.settled:
            pool.release()
            break
        racers.append(asyncio.create_task(racer(plugin), name=f"racer:{plugin_id(plugin)}"))

    outcomes = await asyncio.gather(*racers, return_exceptions=True)
    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            raise outcome

    if race.result is not None:
        return race.result
    if race.dial_error is not None:
        raise race.dial_error
    error = race.probe_error or fallback_error
    if error is not None:
        raise error
    return None


async def scan_target(
    target: Target,
    settings: ScanSettings,
    *,
    registry: PluginRegistry | None = None,
    dialer: Dialer | None = None,
) -> Service | None:
    """Identify the TCP service behind `target`, trying TLS when it is offered.

    Returns `None` when no plugin recognizes the service. Raises
    `ProxyConfigError` for a bad proxy, `DialError` when the target cannot be
    reached, and the last `ProbeError` when plugins failed and none matched.
    """

    registry = registry or default_registry()
    dialer = dialer or Dialer.from_settings(settings)
    state = _ScanState()

    service = await _walk_default_ports(registry.tcp, dialer.dial_tcp, target, settings, state)
    if service is not None:
        return service

    tls_conn = await _detect_tls(dialer, target, settings)
    is_tls = tls_conn is not None
    if is_tls:
        service = await _walk_default_ports(
            registry.tcp_tls, dialer.dial_tls, target, settings, state, conn=tls_conn
        )
        if service is not None:
            return service

    if settings.fast_mode:
        return None

    pool = registry.tcp_tls if is_tls else registry.tcp
    candidates = [p for p in pool if plugin_id(p) not in state.tried]
    dial = dialer.dial_tls if is_tls else dialer.dial_tcp
    return await _race(candidates, dial, target, settings, fallback_error=state.probe_error)


async def scan_target_udp(
    target: Target,
    settings: ScanSettings,
    *,
    registry: PluginRegistry | None = None,
    dialer: Dialer | None = None,
) -> Service | None:
    """Identify the UDP service behind `target`; fully sequential."""

    registry = registry or default_registry()
    dialer = dialer or Dialer.from_settings(settings)
    state = _ScanState()

    service = await _walk_default_ports(registry.udp, dialer.dial_udp, target, settings, state)
    if service is not None:
        return service

    if settings.fast_mode:
        return None

    for plugin in registry.udp:
        if plugin_id(plugin) in state.tried:
            continue
        conn = await dialer.dial_udp(target)
        service = await _probe(conn, target, settings, plugin, state)
        if service is not None:
            return service

    if state.probe_error is not None:
        raise state.probe_error
    return None


async def scan_targets(
    targets: Iterable[Target],
    settings: ScanSettings,
    *,
    registry: PluginRegistry | None = None,
    dialer: Dialer | None = None,
    hooks: ScanHooks | None = None,
) -> list[Service]:
    """Scan every target; return the identified services in input order.

    Per-target errors are logged and skipped. A bad proxy raises
    `ProxyConfigError` before any target is scanned.
    """

    hooks = hooks or ScanHooks()
    registry = registry or default_registry()
    dialer = dialer or Dialer.from_settings(settings)
    scan = scan_target_udp if settings.udp else scan_target
    gate = asyncio.Semaphore(settings.target_concurrency)

    async def scan_one(target: Target) -> Service | None:
        async with gate:
            try:
                service = await scan(target, settings, registry=registry, dialer=dialer)
            except ScanError as exc:
                if settings.verbose:
                    logger.warning("%s", exc)
                else:
                    logger.debug("%s: %s", target.endpoint, exc)
                if hooks.error:
                    hooks.error(target, exc)
                return None
        if hooks.result:
            hooks.result(target, service)
        return service

    results = await asyncio.gather(*(scan_one(target) for target in targets))
    return [service for service in results if service is not None]
