"""Request command -- send one call through a plugin-enabled REST protocol.

``apichain request`` builds a throwaway service around a
:class:`~apichain.protocols.rest.RestProtocol` and wires it the way an
application would:

* ``--verbose`` registers a global
  :class:`~apichain.plugins.logger.LoggingPlugin`,
* ``--mock-file`` registers a
  :class:`~apichain.plugins.rest_mock.RestMockPlugin` on the protocol; the
  mock effect activates it only when mock mode is on (see
  ``apichain mock``).

Example::

    apichain request GET /users --base-url https://api.example.com
    apichain request POST /users --data '{"name": "Ada"}' -H 'X-Trace: 1'
    APICHAIN_MOCK=1 apichain request GET /users --mock-file mocks.yaml
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Optional

import httpx
import typer

from apichain.config import load_global_config
from apichain.effects import MockEffects, MockStateStore
from apichain.events import EventBus
from apichain.exceptions import ApichainError
from apichain.mock_files import load_mock_file
from apichain.models import ApiServiceConfig
from apichain.output import debug, error, format_response, get_output, info
from apichain.plugins.hooks import ResponseContext
from apichain.plugins.logger import LoggingPlugin
from apichain.plugins.rest_mock import SHORT_CIRCUIT_HEADER, RestMockConfig, RestMockPlugin
from apichain.protocols.rest import RestProtocol
from apichain.registry import ApiRegistry
from apichain.service import BaseApiService

_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")

# Transport for the per-call httpx client; replaced in tests.
transport: Optional[httpx.AsyncBaseTransport] = None


class CliService(BaseApiService):
    """Single-protocol service used by ``apichain request``."""

    def __init__(self, config: ApiServiceConfig) -> None:
        self.rest = RestProtocol(transport=transport)
        super().__init__(config, self.rest)


def parse_header(raw: str) -> tuple[str, str]:
    """Split a ``Name: value`` header option.

    Raises:
        typer.BadParameter: If there is no colon or the name is empty.
    """
    name, sep, value = raw.partition(":")
    if not sep or not name.strip():
        raise typer.BadParameter(f"Expected 'Name: value', got {raw!r}")
    return name.strip(), value.strip()


def parse_param(raw: str) -> tuple[str, str]:
    """Split a ``key=value`` query parameter option."""
    key, sep, value = raw.partition("=")
    if not sep or not key:
        raise typer.BadParameter(f"Expected 'key=value', got {raw!r}")
    return key, value


def _parse_body(body: Optional[str]) -> Any:
    """Parse *body* as JSON if possible, returning the raw string on failure."""
    if body is None:
        return None
    try:
        return json.loads(body)
    except (json.JSONDecodeError, TypeError):
        return body


def build_registry(
    config: ApiServiceConfig,
    *,
    verbose: bool = False,
    mock_file: Optional[str] = None,
    mock_delay: float = 0.0,
) -> tuple[ApiRegistry, CliService]:
    """Create a registry holding one :class:`CliService` and its plugins."""
    registry = ApiRegistry()
    if verbose:
        registry.plugins.add(RestProtocol, LoggingPlugin())

    service = registry.register(CliService(config))
    if mock_file is not None:
        mock_map = load_mock_file(mock_file)
        service.register_plugin(
            service.rest,
            RestMockPlugin(RestMockConfig(mock_map=mock_map, delay=mock_delay)),
        )
        debug(f"Registered {len(mock_map)} mock route(s) from {mock_file}")
    return registry, service


def request_command(
    method: str = typer.Argument(help="HTTP method: GET, POST, PUT, PATCH or DELETE."),
    url: str = typer.Argument(help="Path relative to --base-url, or an absolute URL."),
    base_url: str = typer.Option("", "--base-url", "-b", help="Base URL of the API."),
    header: Optional[list[str]] = typer.Option(
        None, "--header", "-H", help="Extra header as 'Name: value'. Repeatable."
    ),
    param: Optional[list[str]] = typer.Option(
        None, "--param", "-P", help="Query parameter as 'key=value'. Repeatable."
    ),
    data: Optional[str] = typer.Option(
        None, "--data", "-d", help="Request body. Sent as JSON when it parses as JSON."
    ),
    mock_file: Optional[str] = typer.Option(
        None, "--mock-file", "-m", help="JSON or YAML mock map used while mock mode is on."
    ),
    timeout: float = typer.Option(30.0, "--timeout", help="Transport timeout in seconds."),
    include: bool = typer.Option(
        False, "--include", "-i", help="Print status and response headers to stderr."
    ),
) -> None:
    """Send one request through the plugin chain and print the response body."""
    verb = method.upper()
    if verb not in _METHODS:
        error(f"Unsupported method '{method}'. Use one of: {', '.join(_METHODS)}.")
        raise typer.Exit(code=2)

    headers = dict(parse_header(h) for h in header or [])
    params = dict(parse_param(p) for p in param or [])

    registry: Optional[ApiRegistry] = None
    try:
        global_config = load_global_config()
        registry, service = build_registry(
            ApiServiceConfig(base_url=base_url, headers=headers, timeout=timeout),
            verbose=get_output().is_verbose,
            mock_file=mock_file,
            mock_delay=global_config.mock.delay,
        )
        state = MockStateStore(persistent=True)
        MockEffects(registry, EventBus(), state).start()
        if mock_file is not None and not state.enabled:
            debug("Mock mode is off; the mock file is ignored.")

        response = asyncio.run(
            service.rest.fetch(verb, url, data=_parse_body(data), params=params or None)
        )
    except ApichainError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    finally:
        if registry is not None:
            registry.reset()

    _report(response, include)


def _report(response: ResponseContext, include: bool) -> None:
    if response.headers.get(SHORT_CIRCUIT_HEADER) == "true":
        debug("Answered by a mock plugin.")
    if include:
        info(f"HTTP {response.status}")
        for name, value in response.headers.items():
            info(f"{name}: {value}")
    format_response(response.data)
