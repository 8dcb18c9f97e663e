"""Runs one plugin against one open connection."""

from __future__ import annotations

import asyncio
import logging

from core.config import ScanSettings
from core.domain.errors import ProbeError, ProbeTimeoutError
from core.domain.models import Service, Target
from core.interfaces.connection import Connection
from core.interfaces.plugin import ServicePlugin, plugin_id

logger = logging.getLogger(__name__)

# Plugins bound each read by the per-probe timeout; the overall deadline
# leaves room for one more round trip.
DEADLINE_FACTOR = 2.0


async def run_plugin(
    conn: Connection,
    target: Target,
    settings: ScanSettings,
    plugin: ServicePlugin,
) -> Service | None:
    """Probe `conn` with `plugin` and close the connection afterwards.

    Returns the matched service, or `None` if the plugin declined. Any failure
    inside the plugin is raised as `ProbeError`. Never retries.
    """

    pid = plugin_id(plugin)
    timeout = settings.default_timeout_seconds
    if settings.verbose:
        logger.info("%s %s-> scanning %s", target.endpoint, target.host, pid)

    try:
        return await asyncio.wait_for(
            plugin.run(conn, timeout, target),
            timeout * DEADLINE_FACTOR,
        )
    except asyncio.TimeoutError as exc:
        raise ProbeTimeoutError(pid, target.endpoint, "probe deadline exceeded") from exc
    except ProbeError:
        raise
    except Exception as exc:
        raise ProbeError(pid, target.endpoint, f"{type(exc).__name__}: {exc}") from exc
    finally:
        conn.close()
        if settings.verbose:
            logger.info("%s %s-> completed %s", target.endpoint, target.host, pid)
