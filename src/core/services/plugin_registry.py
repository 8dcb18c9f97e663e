"""Plugin registry.

Holds the detection plugins per transport class, each list sorted once by
ascending priority. The orchestrator treats "first match in priority order"
as a plain forward walk over these tuples.

Lifecycle:
- plugins register while their modules are imported (`@register_plugin`);
- `initialize()` sorts them exactly once, behind a lock;
- afterwards the tuples are immutable and read concurrently without locking.
"""

from __future__ import annotations

import importlib
import logging
import threading
from typing import Iterable, TypeVar

from core.domain.errors import RegistryError
from core.domain.models import Transport
from core.interfaces.plugin import ServicePlugin, plugin_id

logger = logging.getLogger(__name__)

_PluginT = TypeVar("_PluginT")

BUILTIN_PLUGIN_PACKAGE = "adapters.plugins"


class PluginRegistry:
    def __init__(self, plugins: Iterable[ServicePlugin] = ()) -> None:
        self._registered: list[ServicePlugin] = []
        self._sorted: dict[Transport, tuple[ServicePlugin, ...]] | None = None
        self._lock = threading.Lock()
        for plugin in plugins:
            self.register(plugin)

    def register(self, plugin: ServicePlugin) -> None:
        with self._lock:
            if self._sorted is not None:
                raise RegistryError(
                    f"cannot register {plugin_id(plugin)}: registry is already initialized"
                )
            for existing in self._registered:
                if plugin_id(existing) == plugin_id(plugin):
                    logger.warning(
                        "Plugin %s is being overridden. Original: %s, New: %s",
                        plugin_id(plugin),
                        type(existing).__qualname__,
                        type(plugin).__qualname__,
                    )
                    self._registered.remove(existing)
                    break
            self._registered.append(plugin)
        logger.debug("Registered plugin %s", plugin_id(plugin))

    def initialize(self) -> None:
        """Sort the registered plugins once; later calls are no-ops."""

        self._sorted_plugins()

    def _sorted_plugins(self) -> dict[Transport, tuple[ServicePlugin, ...]]:
        with self._lock:
            if self._sorted is None:
                # sorted() is stable: equal priorities keep registration order.
                self._sorted = {
                    transport: tuple(
                        sorted(
                            (p for p in self._registered if p.transport is transport),
                            key=lambda p: p.priority,
                        )
                    )
                    for transport in Transport
                }
            return self._sorted

    @property
    def initialized(self) -> bool:
        return self._sorted is not None

    def plugins_for(self, transport: Transport) -> tuple[ServicePlugin, ...]:
        if self._sorted is not None:
            return self._sorted[transport]
        return self._sorted_plugins()[transport]

    @property
    def tcp(self) -> tuple[ServicePlugin, ...]:
        return self.plugins_for(Transport.TCP)

    @property
    def tcp_tls(self) -> tuple[ServicePlugin, ...]:
        return self.plugins_for(Transport.TLS)

    @property
    def udp(self) -> tuple[ServicePlugin, ...]:
        return self.plugins_for(Transport.UDP)

    def __len__(self) -> int:
        return len(self._registered)


_default_registry = PluginRegistry()


def register_plugin(cls: type[_PluginT]) -> type[_PluginT]:
    """Class decorator: instantiate `cls` and add it to the default registry."""

    _default_registry.register(cls())  # type: ignore[arg-type]
    return cls


def default_registry() -> PluginRegistry:
    """The process-wide registry with the built-in plugins, initialized."""

    if not _default_registry.initialized:
        # Importing the package runs every @register_plugin decorator.
        importlib.import_module(BUILTIN_PLUGIN_PACKAGE)
        _default_registry.initialize()
    return _default_registry

