"""Protocol base class -- instance-scoped plugins and plugin merging.

A protocol instance is the object that actually talks to the network on
behalf of a service. It owns:

* its transport configuration, set once by :meth:`ApiProtocol.initialize`,
* an instance-scoped plugin set, exposed as :attr:`ApiProtocol.plugins`,
* two accessors supplied at initialization by the owning service: one
  returning the global plugins registered for the protocol's class, and one
  returning the plugin classes the service excludes.

:meth:`ApiProtocol.get_plugins_in_order` merges both scopes into the list
the chain executor runs over.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Collection, Sequence
from typing import Optional

from apichain.exceptions import ConfigurationError
from apichain.models import ApiServiceConfig
from apichain.plugins.base import ApiPluginBase, destroy_plugin

logger = logging.getLogger(__name__)

GlobalPluginsAccessor = Callable[[], Sequence[ApiPluginBase]]
ExcludedClassesAccessor = Callable[[], Collection[type]]


def _no_plugins() -> Sequence[ApiPluginBase]:
    return ()


def _no_exclusions() -> Collection[type]:
    return frozenset()


class ProtocolPlugins:
    """The instance scope of one protocol: an identity-set in insertion order.

    This is the *active* set. Plugins in it run on every call made through
    the protocol.
    """

    def __init__(self, owner_name: str) -> None:
        self._owner_name = owner_name
        self._plugins: list[ApiPluginBase] = []

    def add(self, *plugins: ApiPluginBase) -> None:
        """Activate *plugins* on this protocol. Re-adding a reference is a no-op."""
        for plugin in plugins:
            if self.has(plugin):
                continue
            self._plugins.append(plugin)
            logger.debug("Added plugin '%s' to %s", plugin.name, self._owner_name)

    def remove(self, plugin: ApiPluginBase, *, destroy: bool = True) -> None:
        """Deactivate *plugin*. No-op if it is not active.

        Args:
            plugin: The exact plugin reference to remove.
            destroy: Whether to call the plugin's ``destroy()``. Pass
                ``False`` to detach a plugin that stays registered elsewhere
                and may be activated again.
        """
        for index, existing in enumerate(self._plugins):
            if existing is plugin:
                del self._plugins[index]
                logger.debug("Removed plugin '%s' from %s", plugin.name, self._owner_name)
                if destroy:
                    destroy_plugin(plugin)
                return

    def has(self, plugin: ApiPluginBase) -> bool:
        """Return whether this exact plugin reference is active."""
        return any(existing is plugin for existing in self._plugins)

    def get_all(self) -> tuple[ApiPluginBase, ...]:
        """Return a snapshot of the active plugins in insertion order."""
        return tuple(self._plugins)

    def clear(self) -> None:
        """Destroy and remove every active plugin."""
        plugins, self._plugins = self._plugins, []
        for plugin in plugins:
            destroy_plugin(plugin)

    def __len__(self) -> int:
        return len(self._plugins)

    def __iter__(self):
        return iter(tuple(self._plugins))


class ApiProtocol:
    """Base class for all protocols.

    Subclasses implement the transport; this class implements plugin
    bookkeeping. The global scope is keyed by the exact protocol class, so a
    subclass of :class:`~apichain.protocols.rest.RestProtocol` has its own
    global plugin set.
    """

    def __init__(self) -> None:
        self.plugins = ProtocolPlugins(type(self).__name__)
        self._service_config: Optional[ApiServiceConfig] = None
        self._get_global_plugins: GlobalPluginsAccessor = _no_plugins
        self._get_excluded_classes: ExcludedClassesAccessor = _no_exclusions

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def initialize(
        self,
        config: ApiServiceConfig,
        get_global_plugins: Optional[GlobalPluginsAccessor] = None,
        get_excluded_classes: Optional[ExcludedClassesAccessor] = None,
    ) -> None:
        """Bind the protocol to a service's configuration and plugin accessors.

        Args:
            config: Base URL, default headers and timeout of the service.
            get_global_plugins: Returns the global plugins for this
                protocol's class, in registration order.
            get_excluded_classes: Returns the plugin classes to filter out of
                the global plugins.
        """
        self._service_config = config
        self._get_global_plugins = get_global_plugins or _no_plugins
        self._get_excluded_classes = get_excluded_classes or _no_exclusions

    @property
    def is_initialized(self) -> bool:
        """Whether :meth:`initialize` has been called (and not undone by cleanup)."""
        return self._service_config is not None

    @property
    def service_config(self) -> ApiServiceConfig:
        """The service configuration passed to :meth:`initialize`.

        Raises:
            ConfigurationError: If the protocol is not initialized.
        """
        if self._service_config is None:
            raise ConfigurationError(
                f"{type(self).__name__} not initialized. "
                "Pass it to a service or call initialize() first."
            )
        return self._service_config

    def cleanup(self) -> None:
        """Destroy instance-scoped plugins and forget the service binding."""
        self.plugins.clear()
        self._service_config = None
        self._get_global_plugins = _no_plugins
        self._get_excluded_classes = _no_exclusions

    # ------------------------------------------------------------------ #
    # Plugin merging
    # ------------------------------------------------------------------ #

    def get_plugins_in_order(self) -> tuple[ApiPluginBase, ...]:
        """Return the plugins a call runs through, in request-phase order.

        Global plugins come first, minus every plugin whose runtime type is
        excluded by the owning service, followed by the instance-scoped
        plugins. The result is computed fresh on each call and is an
        immutable snapshot.
        """
        excluded = self._get_excluded_classes()
        merged = [
            plugin
            for plugin in self._get_global_plugins()
            if type(plugin) not in excluded
        ]
        merged.extend(self.plugins.get_all())
        return tuple(merged)

    def _build_url(self, url: str) -> str:
        """Join *url* onto the configured base URL unless it is already absolute."""
        if url.startswith(("http://", "https://")):
            return url
        base = self.service_config.base_url
        if not base:
            return url
        if not url:
            return base
        return f"{base.rstrip('/')}/{url.lstrip('/')}"
