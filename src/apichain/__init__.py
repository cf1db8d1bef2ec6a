"""apichain -- plugin-chain middleware for outbound API calls.

Services talk to backends through protocol instances (REST, SSE). Every
call a protocol makes runs through an ordered chain of plugins drawn from
three scopes: global plugins registered per protocol class, plugins active
on the protocol instance, and service-level bookkeeping (exclusions and
registered-but-inactive plugins). Request hooks run in registration order,
response and error hooks run in reverse, and any request hook may
short-circuit the transport.

Mock plugins are registered on services up front and switched on or off at
runtime by a ``mock/toggle`` event, without touching business code.

Typical wiring::

    registry = ApiRegistry()
    registry.plugins.add(RestProtocol, LoggingPlugin())
    accounts = registry.register(AccountsService)

    bus = EventBus()
    MockEffects(registry, bus).start()
    toggle_mock_mode(bus, True)

Modules:
    plugins: Plugin base class, contexts and the chain executor.
    protocols: REST and SSE protocols.
    service: Base class for API services.
    registry: Global plugin registry and service registry.
    effects: Mock mode sync effect and state store.
    events: Synchronous event bus.
    config: XDG-aware configuration and mock flag resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    app: Typer CLI entry point.
"""

__version__ = "0.1.0"

from apichain.exceptions import (  # noqa: E402
    ApichainError,
    AuthError,
    ConfigurationError,
    ConnectionError_,
    HttpStatusError,
    NotFoundError,
    PluginError,
    ServerError,
    TransportError,
)
from apichain.models import (  # noqa: E402
    ApiServiceConfig,
    MockTogglePayload,
    RestProtocolConfig,
    SseProtocolConfig,
)
from apichain.plugins import (  # noqa: E402
    ApiPluginBase,
    ApiPluginWithConfig,
    ConnectContext,
    PluginChain,
    PluginDescriptor,
    RequestContext,
    ResponseContext,
    ShortCircuit,
    is_mock_plugin,
)
from apichain.protocols import ApiProtocol, RestProtocol, SseEvent, SseProtocol  # noqa: E402
from apichain.plugins.logger import LoggingPlugin  # noqa: E402
from apichain.plugins.rest_mock import RestMockConfig, RestMockPlugin  # noqa: E402
from apichain.plugins.sse_mock import MockEventSource, SseMockConfig, SseMockPlugin  # noqa: E402
from apichain.service import BaseApiService  # noqa: E402
from apichain.registry import ApiRegistry, PluginRegistry  # noqa: E402
from apichain.events import EventBus  # noqa: E402
from apichain.effects import (  # noqa: E402
    MockEffects,
    MockEvents,
    MockStateStore,
    sync_mock_plugins,
    toggle_mock_mode,
)

__all__ = [
    "ApiPluginBase",
    "ApiPluginWithConfig",
    "ApiProtocol",
    "ApiRegistry",
    "ApiServiceConfig",
    "ApichainError",
    "AuthError",
    "BaseApiService",
    "ConfigurationError",
    "ConnectContext",
    "ConnectionError_",
    "EventBus",
    "HttpStatusError",
    "LoggingPlugin",
    "MockEffects",
    "MockEventSource",
    "MockEvents",
    "MockStateStore",
    "MockTogglePayload",
    "NotFoundError",
    "PluginChain",
    "PluginDescriptor",
    "PluginError",
    "PluginRegistry",
    "RequestContext",
    "ResponseContext",
    "RestMockConfig",
    "RestMockPlugin",
    "RestProtocol",
    "RestProtocolConfig",
    "ServerError",
    "ShortCircuit",
    "SseEvent",
    "SseMockConfig",
    "SseMockPlugin",
    "SseProtocol",
    "SseProtocolConfig",
    "TransportError",
    "is_mock_plugin",
    "sync_mock_plugins",
    "toggle_mock_mode",
]
