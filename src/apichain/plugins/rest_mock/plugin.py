"""REST mock plugin -- answers matching requests without touching the network.

This module provides :class:`RestMockPlugin`. Its mock map associates
``"METHOD /path"`` keys with either a factory or a static value:

* a factory is called with the request body (or with no argument if it
  takes none) and may be a coroutine function,
* a static value (as loaded from a JSON/YAML fixture file) is deep-copied
  so that callers cannot mutate the fixture.

Keys are matched exactly first, then as patterns where ``:name`` segments
match any single path segment (``"GET /users/:id"``).

A match returns a :class:`~apichain.plugins.hooks.ShortCircuit` with
status 200 and the ``x-hai3-short-circuit: true`` header; no match passes
the request through unchanged.
"""

from __future__ import annotations

import asyncio
import copy
import inspect
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from apichain.plugins.base import ApiPluginWithConfig
from apichain.plugins.hooks import RequestContext, ResponseContext, ShortCircuit

MockMap = Mapping[str, Any]

SHORT_CIRCUIT_HEADER = "x-hai3-short-circuit"


@dataclass(frozen=True)
class RestMockConfig:
    """Settings for :class:`RestMockPlugin`.

    Attributes:
        mock_map: ``"METHOD /path"`` -> factory or static value.
        delay: Simulated network latency in seconds.
    """

    mock_map: MockMap = field(default_factory=dict)
    delay: float = 0.0


class RestMockPlugin(ApiPluginWithConfig[RestMockConfig]):
    """Intercept REST requests and return mock data via short-circuit.

    Example::

        mock = RestMockPlugin(RestMockConfig(mock_map={
            "GET /users": lambda: [{"id": "1", "name": "John"}],
            "GET /users/:id": lambda: {"id": "1", "name": "John"},
            "POST /users": lambda body: {"id": "2", **body},
        }))
        service.register_plugin(rest_protocol, mock)
    """

    mock_plugin = True

    def __init__(self, config: Optional[RestMockConfig] = None, **kwargs: Any) -> None:
        super().__init__(config or RestMockConfig(), **kwargs)
        self._mock_map: MockMap = dict(self.config.mock_map)

    @property
    def mock_map(self) -> MockMap:
        """The mock map currently in use."""
        return self._mock_map

    def set_mock_map(self, mock_map: MockMap) -> None:
        """Replace the mock map. Takes effect on the next request."""
        self._mock_map = dict(mock_map)

    async def on_request(
        self, ctx: RequestContext
    ) -> Union[RequestContext, ShortCircuit[ResponseContext]]:
        key = self._find(ctx.method, ctx.url)
        if key is None:
            return ctx
        factory = self._mock_map[key]

        if self.config.delay > 0:
            await asyncio.sleep(self.config.delay)

        data = _invoke(factory, ctx.body)
        if inspect.isawaitable(data):
            data = await data

        return ShortCircuit(
            ResponseContext(
                status=200,
                headers={SHORT_CIRCUIT_HEADER: "true"},
                data=data,
            )
        )

    def _find(self, method: str, url: str) -> Optional[str]:
        """Return the mock map key matching the request, or ``None``."""
        method = method.upper()
        exact = f"{method} {url}"
        if exact in self._mock_map:
            return exact

        for key in self._mock_map:
            key_method, _, key_url = key.partition(" ")
            if key_method.upper() == method and match_url_pattern(key_url, url):
                return key
        return None


def match_url_pattern(pattern: str, url: str) -> bool:
    """Match *url* against *pattern*, where ``:name`` segments match any segment."""
    if ":" not in pattern:
        return pattern == url
    parts = [
        "[^/]+" if segment.startswith(":") else re.escape(segment)
        for segment in pattern.split("/")
    ]
    return re.fullmatch("/".join(parts), url) is not None


def _invoke(factory: Any, body: Any) -> Any:
    if not callable(factory):
        return copy.deepcopy(factory)
    try:
        signature = inspect.signature(factory)
    except (TypeError, ValueError):
        return factory(body)
    if not signature.parameters:
        return factory()
    return factory(body)
