"""Plugin system for apichain -- plugin base class, contexts, and chain executor.

Plugins interpose on every call a protocol makes. They live in one of
three scopes:

* **global** -- registered on a :class:`~apichain.registry.PluginRegistry`
  against a protocol class and shared by every instance of that class,
* **instance** -- added to one protocol object via ``protocol.plugins``,
* **service-local** -- recorded on a service via ``service.plugins``.

Key classes:

* :class:`ApiPluginBase` -- Base class all plugins extend.
* :class:`PluginChain` -- Runs hooks over a snapshot in onion order.
* :class:`RequestContext`, :class:`ResponseContext`, :class:`ConnectContext`
  -- Frozen values passed through the chain.
* :class:`ShortCircuit` -- Ends the request phase with a final answer.

Bundled plugins live in subpackages: :mod:`apichain.plugins.rest_mock`,
:mod:`apichain.plugins.sse_mock`, and :mod:`apichain.plugins.logger`.

Example:
    A plugin that stamps every request::

        from apichain.plugins import ApiPluginBase

        class TenantPlugin(ApiPluginBase):
            def __init__(self, tenant: str) -> None:
                super().__init__()
                self.tenant = tenant

            def on_request(self, ctx):
                return ctx.with_headers(x_tenant=self.tenant)
"""

from apichain.plugins.base import (
    ApiPluginBase,
    ApiPluginWithConfig,
    PluginDescriptor,
    is_mock_plugin,
)
from apichain.plugins.chain import PluginChain
from apichain.plugins.hooks import (
    ConnectContext,
    RequestContext,
    ResponseContext,
    ShortCircuit,
)

__all__ = [
    "ApiPluginBase",
    "ApiPluginWithConfig",
    "ConnectContext",
    "PluginChain",
    "PluginDescriptor",
    "RequestContext",
    "ResponseContext",
    "ShortCircuit",
    "is_mock_plugin",
]
