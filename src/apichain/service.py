"""API service base class -- protocols, plugin scopes and cleanup.

A service groups the protocol instances that talk to one backend and owns
the per-service plugin bookkeeping:

* **service-local plugins** (``service.plugins.add``), kept for
  introspection; protocols do not run them,
* **excluded global plugin classes** (``service.plugins.exclude``), which
  every protocol of the service filters out of the global scope,
* **registered plugins** (:meth:`BaseApiService.register_plugin`), stored per
  protocol without being activated. The mock sync effect reads them through
  :meth:`BaseApiService.get_plugins` and decides what to activate.

Example::

    class AccountsService(BaseApiService):
        def __init__(self) -> None:
            self.rest = RestProtocol()
            super().__init__(ApiServiceConfig(base_url="/api/accounts"), self.rest)
            self.plugins.exclude(AuthPlugin)
            self.register_plugin(self.rest, RestMockPlugin(RestMockConfig(mock_map=ACCOUNTS_MOCKS)))

        async def current_user(self) -> dict:
            return await self.protocol(RestProtocol).get("/user/current")
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Optional, TypeVar

from apichain.exceptions import ConfigurationError
from apichain.models import ApiServiceConfig
from apichain.plugins.base import ApiPluginBase, destroy_plugin
from apichain.protocols.base import ApiProtocol

if TYPE_CHECKING:
    from apichain.registry import PluginRegistry

logger = logging.getLogger(__name__)

P = TypeVar("P", bound=ApiPluginBase)
T = TypeVar("T", bound=ApiProtocol)


class ServicePlugins:
    """Service-scoped plugin namespace, exposed as ``service.plugins``."""

    def __init__(self) -> None:
        self._plugins: list[ApiPluginBase] = []
        self._excluded: dict[type, None] = {}

    def add(self, *plugins: ApiPluginBase) -> None:
        """Append service-local plugins.

        Several plugins of the same class are allowed; the same reference is
        kept once.
        """
        for plugin in plugins:
            if any(existing is plugin for existing in self._plugins):
                continue
            self._plugins.append(plugin)

    def exclude(self, *plugin_classes: type) -> None:
        """Filter global plugins of *plugin_classes* out of this service.

        Exclusions accumulate and cannot be undone.
        """
        for cls in plugin_classes:
            self._excluded[cls] = None

    def get_excluded(self) -> tuple[type, ...]:
        """Return the excluded classes in the order they were first excluded."""
        return tuple(self._excluded)

    def get_all(self) -> tuple[ApiPluginBase, ...]:
        """Return the service-local plugins in FIFO order."""
        return tuple(self._plugins)

    def get_plugin(self, plugin_cls: type[P]) -> Optional[P]:
        """Return the first service-local plugin that is an instance of *plugin_cls*."""
        for plugin in self._plugins:
            if isinstance(plugin, plugin_cls):
                return plugin
        return None

    def excluded_set(self) -> frozenset[type]:
        return frozenset(self._excluded)

    def clear(self, *, destroy: bool = True) -> None:
        """Drop the service-local plugins, destroying them unless told otherwise."""
        plugins, self._plugins = self._plugins, []
        if destroy:
            for plugin in plugins:
                destroy_plugin(plugin)


class BaseApiService:
    """Base class for API services.

    Every protocol passed in is initialized with the service configuration
    and two accessors: one returning the global plugins registered for the
    protocol's class, one returning this service's excluded classes. Both
    are evaluated on every call, so later registrations and exclusions take
    effect immediately.

    Args:
        config: Base URL, default headers and timeout shared by the protocols.
        *protocols: Protocol instances; at most one per protocol class.
        plugin_registry: Global plugin scope. When omitted the service runs
            without global plugins until an
            :class:`~apichain.registry.ApiRegistry` binds one.

    Raises:
        ConfigurationError: If two protocols share a class.
    """

    def __init__(
        self,
        config: ApiServiceConfig,
        *protocols: ApiProtocol,
        plugin_registry: Optional[PluginRegistry] = None,
    ) -> None:
        self.config = config
        self.plugins = ServicePlugins()
        self._protocols: dict[type, ApiProtocol] = {}
        self._registered: dict[ApiProtocol, list[ApiPluginBase]] = {}
        self._plugin_registry = plugin_registry
        self._owns_registry = plugin_registry is not None

        for protocol in protocols:
            key = type(protocol)
            if key in self._protocols:
                raise ConfigurationError(
                    f"Protocol \"{key.__name__}\" is already registered on {type(self).__name__}"
                )
            protocol.initialize(
                config,
                get_global_plugins=self._global_plugins_for(key),
                get_excluded_classes=self.plugins.excluded_set,
            )
            self._protocols[key] = protocol

    # ------------------------------------------------------------------
    # Global scope binding
    # ------------------------------------------------------------------

    def _global_plugins_for(self, protocol_cls: type):
        def accessor() -> tuple[ApiPluginBase, ...]:
            if self._plugin_registry is None:
                return ()
            return self._plugin_registry.get_all(protocol_cls)

        return accessor

    @property
    def plugin_registry(self) -> Optional[PluginRegistry]:
        """The global plugin scope this service reads, if any."""
        return self._plugin_registry

    def bind_plugin_registry(self, registry: PluginRegistry) -> None:
        """Use *registry* as the global scope.

        A registry passed to the constructor takes precedence and is kept.
        """
        if self._owns_registry:
            return
        self._plugin_registry = registry

    # ------------------------------------------------------------------
    # Registered plugins
    # ------------------------------------------------------------------

    def register_plugin(self, protocol: ApiProtocol, plugin: ApiPluginBase) -> None:
        """Record *plugin* for *protocol* without activating it.

        Raises:
            ConfigurationError: If *protocol* is not one of this service's
                protocol instances.
        """
        if self._protocols.get(type(protocol)) is not protocol:
            raise ConfigurationError(
                f"Protocol \"{type(protocol).__name__}\" not registered on this service"
            )
        registered = self._registered.setdefault(protocol, [])
        if any(existing is plugin for existing in registered):
            return
        registered.append(plugin)
        logger.debug(
            "Registered plugin '%s' on %s.%s",
            plugin.name,
            type(self).__name__,
            type(protocol).__name__,
        )

    def get_plugins(self) -> Mapping[ApiProtocol, tuple[ApiPluginBase, ...]]:
        """Return a read-only mapping of protocol to registered plugins."""
        return MappingProxyType(
            {protocol: tuple(plugins) for protocol, plugins in self._registered.items()}
        )

    # ------------------------------------------------------------------
    # Protocol access
    # ------------------------------------------------------------------

    def protocol(self, protocol_cls: type[T]) -> T:
        """Return this service's instance of *protocol_cls*.

        Raises:
            ConfigurationError: If the service has no such protocol.
        """
        protocol = self._protocols.get(protocol_cls)
        if protocol is None:
            raise ConfigurationError(
                f"Protocol \"{protocol_cls.__name__}\" is not registered on {type(self).__name__}"
            )
        return protocol  # type: ignore[return-value]

    @property
    def protocols(self) -> tuple[ApiProtocol, ...]:
        """The service's protocol instances in construction order."""
        return tuple(self._protocols.values())

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    def cleanup(self) -> None:
        """Destroy the service's plugins and release its protocols.

        Active instance plugins, registered plugins and service-local plugins
        are each destroyed once, even when a plugin sits in several of them.
        Global plugins are left alone; they belong to the registry.
        """
        destroyed: set[int] = set()
        for protocol in self._protocols.values():
            destroyed.update(id(plugin) for plugin in protocol.plugins.get_all())
            protocol.cleanup()

        for plugins in self._registered.values():
            for plugin in plugins:
                if id(plugin) not in destroyed:
                    destroyed.add(id(plugin))
                    destroy_plugin(plugin)

        for plugin in self.plugins.get_all():
            if id(plugin) not in destroyed:
                destroyed.add(id(plugin))
                destroy_plugin(plugin)
        self.plugins.clear(destroy=False)

        self._registered.clear()
        self._protocols.clear()
        logger.debug("Cleaned up service %s", type(self).__name__)
