"""Base class for apichain plugins.

Every plugin subclasses :class:`ApiPluginBase`. The lifecycle hooks are
optional and deliberately *not* defined on the base class: the chain only
calls a hook when the plugin actually defines it. The hooks a plugin may
define are:

* ``on_request(ctx) -> RequestContext | ShortCircuit``
* ``on_response(ctx) -> ResponseContext``
* ``on_error(error, request_ctx) -> Exception | ResponseContext``
* ``on_connect(ctx) -> ConnectContext | ShortCircuit`` (stream protocols)
* ``on_disconnect(ctx) -> None`` (stream protocols)

Each hook may be a plain method or a coroutine function.

Plugins are compared by identity. Two plugins of the same class with equal
settings are still two plugins, and adding the same reference to a scope
twice is a no-op.

Example:
    Minimal plugin implementation::

        class RequestIdPlugin(ApiPluginBase):
            def on_request(self, ctx):
                return ctx.with_headers(x_request_id=uuid.uuid4().hex)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

C = TypeVar("C")


@dataclass(frozen=True)
class PluginDescriptor:
    """Capabilities of a plugin, fixed when the plugin is constructed.

    Attributes:
        name: Human-readable identifier used in logs.
        mock: Whether the framework treats the plugin as a mock plugin,
            i.e. activates it only while mock mode is on.
    """

    name: str
    mock: bool = False


class ApiPluginBase:
    """Base class for all apichain plugins.

    Subclasses set ``mock_plugin = True`` to be classified as mock plugins.
    Any plugin type can opt in this way without inheriting from a mock base
    class; a single instance can also be classified explicitly with the
    ``mock`` keyword.

    Args:
        name: Optional name override. Defaults to the class name.
        mock: Optional classification override. Defaults to the class-level
            ``mock_plugin`` flag.
    """

    mock_plugin: bool = False

    def __init__(self, *, name: Optional[str] = None, mock: Optional[bool] = None) -> None:
        self._descriptor = PluginDescriptor(
            name=name or type(self).__name__,
            mock=self.mock_plugin if mock is None else bool(mock),
        )

    @property
    def descriptor(self) -> PluginDescriptor:
        """The plugin's :class:`PluginDescriptor`.

        Subclasses that skip ``super().__init__()`` get the class defaults.
        """
        descriptor = self.__dict__.get("_descriptor")
        if descriptor is None:
            descriptor = PluginDescriptor(name=type(self).__name__, mock=self.mock_plugin)
            self._descriptor = descriptor
        return descriptor

    @property
    def name(self) -> str:
        """Return the plugin name used for logging."""
        return self.descriptor.name

    def destroy(self) -> None:
        """Release plugin resources.

        Called when the plugin is removed from a scope or when the protocol
        or service owning it is cleaned up. The default does nothing.
        """

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r} mock={self.descriptor.mock}>"


class ApiPluginWithConfig(ApiPluginBase, Generic[C]):
    """Plugin holding a typed, read-only configuration object.

    Args:
        config: Plugin configuration, exposed as :attr:`config`.
        name: Optional name override.
        mock: Optional classification override.
    """

    def __init__(self, config: C, *, name: Optional[str] = None, mock: Optional[bool] = None) -> None:
        super().__init__(name=name, mock=mock)
        self._config = config

    @property
    def config(self) -> C:
        """The configuration passed at construction."""
        return self._config


def defines_hook(plugin: Any, hook: str) -> bool:
    """Return whether *plugin* defines a callable hook named *hook*."""
    return callable(getattr(plugin, hook, None))


def is_mock_plugin(obj: Any) -> bool:
    """Return whether *obj* is a plugin classified as a mock plugin.

    Anything that is not an :class:`ApiPluginBase` (``None``, strings, dicts
    that happen to have an ``on_request`` key) is never a mock plugin.
    """
    if not isinstance(obj, ApiPluginBase):
        return False
    return obj.descriptor.mock


def destroy_plugin(plugin: ApiPluginBase) -> None:
    """Call ``plugin.destroy()``, logging instead of raising on failure.

    Used by removal and cleanup paths so that one misbehaving plugin does
    not keep the others from being torn down.
    """
    try:
        plugin.destroy()
    except Exception as exc:
        logger.warning("Error destroying plugin '%s': %s", plugin.name, exc)
