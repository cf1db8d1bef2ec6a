"""Registries -- the global plugin scope and the set of known services.

This module contains the two registry objects the rest of the framework is
wired through:

* :class:`PluginRegistry` -- global plugins keyed by protocol class. Every
  protocol instance of that class, in every service bound to the registry,
  runs these plugins first.
* :class:`ApiRegistry` -- every service the application knows about, plus
  the :class:`PluginRegistry` it injects into them. The mock sync effect
  iterates :meth:`ApiRegistry.get_all`.

Neither is a process-wide singleton. Create one per application (or per
test) and pass it where it is needed::

    registry = ApiRegistry()
    registry.plugins.add(RestProtocol, LoggingPlugin())
    accounts = registry.register(AccountsService)
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any, Optional, TypeVar, Union, overload

from apichain.exceptions import ConfigurationError
from apichain.plugins.base import ApiPluginBase, destroy_plugin

if TYPE_CHECKING:
    from apichain.service import BaseApiService

logger = logging.getLogger(__name__)

P = TypeVar("P", bound=ApiPluginBase)
S = TypeVar("S", bound="BaseApiService")


class PluginRegistry:
    """Global plugin scope: one ordered identity-set per protocol class.

    Reads return tuples, never live views, so a caller iterating a result is
    unaffected by later registrations.
    """

    def __init__(self) -> None:
        self._plugins: dict[type, list[ApiPluginBase]] = {}

    def add(self, protocol_cls: type, *plugins: ApiPluginBase) -> None:
        """Register *plugins* for every instance of *protocol_cls*.

        Adding a reference that is already registered for that class is a
        no-op; its position does not change.
        """
        registered = self._plugins.setdefault(protocol_cls, [])
        for plugin in plugins:
            if any(existing is plugin for existing in registered):
                continue
            registered.append(plugin)
            logger.debug("Registered global plugin '%s' for %s", plugin.name, protocol_cls.__name__)

    def remove(self, protocol_cls: type, plugin_cls: type) -> None:
        """Destroy and remove the first plugin whose type is *plugin_cls*.

        No-op if no such plugin is registered.
        """
        registered = self._plugins.get(protocol_cls, [])
        for index, plugin in enumerate(registered):
            if type(plugin) is plugin_cls:
                del registered[index]
                logger.debug("Removed global plugin '%s' from %s", plugin.name, protocol_cls.__name__)
                destroy_plugin(plugin)
                return

    def has(self, protocol_cls: type, plugin_cls: type) -> bool:
        """Return whether a plugin of type *plugin_cls* is registered for *protocol_cls*."""
        return any(type(plugin) is plugin_cls for plugin in self._plugins.get(protocol_cls, ()))

    def get_all(self, protocol_cls: type) -> tuple[ApiPluginBase, ...]:
        """Return a snapshot of the plugins for *protocol_cls* in registration order."""
        return tuple(self._plugins.get(protocol_cls, ()))

    def get_plugin(self, protocol_cls: type, plugin_cls: type[P]) -> Optional[P]:
        """Return the first plugin of type *plugin_cls*, or ``None``."""
        for plugin in self._plugins.get(protocol_cls, ()):
            if type(plugin) is plugin_cls:
                return plugin  # type: ignore[return-value]
        return None

    def protocol_classes(self) -> tuple[type, ...]:
        """Return the protocol classes that have at least one plugin."""
        return tuple(cls for cls, plugins in self._plugins.items() if plugins)

    def clear(self, protocol_cls: Optional[type] = None) -> None:
        """Destroy and remove the plugins of *protocol_cls*, or of every class."""
        classes = [protocol_cls] if protocol_cls is not None else list(self._plugins)
        for cls in classes:
            plugins = self._plugins.pop(cls, [])
            for plugin in plugins:
                destroy_plugin(plugin)


class ApiRegistry:
    """Central registry of API services.

    Services are keyed by their class, so each service class is registered
    at most once. Registering binds the service to :attr:`plugins` unless it
    was constructed with its own :class:`PluginRegistry`.

    Args:
        plugins: Global plugin scope to share. A fresh one is created when
            omitted.
    """

    def __init__(self, plugins: Optional[PluginRegistry] = None) -> None:
        self.plugins = plugins if plugins is not None else PluginRegistry()
        self._services: dict[type, BaseApiService] = {}

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    @overload
    def register(self, service: type[S], *args: Any, **kwargs: Any) -> S: ...

    @overload
    def register(self, service: S) -> S: ...

    def register(self, service: Union[type[S], S], *args: Any, **kwargs: Any) -> S:
        """Register a service class or instance and return the instance.

        A class is instantiated with *args*/*kwargs*. Registering a class
        that is already registered returns the existing instance.
        """
        if isinstance(service, type):
            existing = self._services.get(service)
            if existing is not None:
                return existing  # type: ignore[return-value]
            instance = service(*args, **kwargs)
        else:
            instance = service

        key = type(instance)
        current = self._services.get(key)
        if current is not None and current is not instance:
            raise ConfigurationError(f"Service '{key.__name__}' is already registered")

        instance.bind_plugin_registry(self.plugins)
        self._services[key] = instance
        logger.debug("Registered service '%s'", key.__name__)
        return instance

    def unregister(self, service_cls: type) -> None:
        """Clean up and forget the service registered for *service_cls*."""
        service = self._services.pop(service_cls, None)
        if service is not None:
            service.cleanup()

    # ------------------------------------------------------------------
    # Querying
    # ------------------------------------------------------------------

    def get_service(self, service_cls: type[S]) -> S:
        """Return the registered instance of *service_cls*.

        Raises:
            ConfigurationError: If the service is not registered.
        """
        try:
            return self._services[service_cls]  # type: ignore[return-value]
        except KeyError:
            raise ConfigurationError(
                f"Service '{service_cls.__name__}' not found. Did you forget to register it?"
            ) from None

    def has(self, service_cls: type) -> bool:
        """Return whether *service_cls* is registered."""
        return service_cls in self._services

    def get_all(self) -> tuple[BaseApiService, ...]:
        """Return every registered service in registration order."""
        return tuple(self._services.values())

    def __iter__(self) -> Iterator[BaseApiService]:
        return iter(self.get_all())

    def __len__(self) -> int:
        return len(self._services)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Clean up every service and destroy every global plugin."""
        services, self._services = self._services, {}
        for service in services.values():
            service.cleanup()
        self.plugins.clear()
