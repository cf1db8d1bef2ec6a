"""Context values threaded through the plugin hook chain.

This module provides the immutable values that plugins receive and return:

* :class:`RequestContext` -- method, URL, headers, query params and body of
  an outgoing call.
* :class:`ResponseContext` -- status, headers and decoded data of a reply.
* :class:`ConnectContext` -- URL and headers of a stream connection.
* :class:`ShortCircuit` -- returned from ``on_request``/``on_connect`` to
  stop the request phase and supply the final response directly.

Contexts are frozen. A hook that wants to change something returns a new
context built with :meth:`RequestContext.replace` or
:meth:`RequestContext.with_headers`, so a context seen by one plugin is
never changed behind its back by another.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Generic, TypeVar

T = TypeVar("T")

_EMPTY: Mapping[str, Any] = MappingProxyType({})


def _freeze(value: Mapping[str, Any] | None) -> Mapping[str, Any]:
    if not value:
        return _EMPTY
    return MappingProxyType(dict(value))


@dataclass(frozen=True)
class _Context:
    """Shared helpers for the frozen context dataclasses."""

    def __post_init__(self) -> None:
        for f in dataclasses.fields(self):
            if f.metadata.get("mapping"):
                object.__setattr__(self, f.name, _freeze(getattr(self, f.name)))

    def replace(self: Any, **changes: Any) -> Any:
        """Return a copy of this context with *changes* applied."""
        return dataclasses.replace(self, **changes)

    def with_headers(self: Any, **headers: str) -> Any:
        """Return a copy with *headers* merged over the existing ones.

        Keyword arguments cannot carry dashes, so underscores in names are
        turned into dashes (``x_request_id`` becomes ``x-request-id``).
        """
        merged = dict(self.headers)
        merged.update({k.replace("_", "-"): v for k, v in headers.items()})
        return dataclasses.replace(self, headers=merged)


def _mapping_field() -> Any:
    return field(default_factory=dict, metadata={"mapping": True})


@dataclass(frozen=True)
class RequestContext(_Context):
    """Outgoing request as seen by ``on_request`` and ``on_error`` hooks.

    Attributes:
        method: Upper-case HTTP method (e.g. ``"GET"``).
        url: Path relative to the protocol's base URL, or an absolute URL.
        headers: Read-only request headers.
        params: Read-only query parameters.
        body: Request payload, passed to the transport as JSON.
    """

    method: str = "GET"
    url: str = ""
    headers: Mapping[str, str] = _mapping_field()
    params: Mapping[str, Any] = _mapping_field()
    body: Any = None


@dataclass(frozen=True)
class ResponseContext(_Context):
    """Reply as seen by ``on_response`` hooks, or produced by a recovery.

    Attributes:
        status: HTTP status code.
        headers: Read-only response headers.
        data: Decoded body (JSON value, text, or ``None`` for empty bodies).
    """

    status: int = 200
    headers: Mapping[str, str] = _mapping_field()
    data: Any = None


@dataclass(frozen=True)
class ConnectContext(_Context):
    """Stream connection request as seen by ``on_connect``/``on_disconnect``."""

    url: str = ""
    headers: Mapping[str, str] = _mapping_field()
    params: Mapping[str, Any] = _mapping_field()


@dataclass(frozen=True)
class ShortCircuit(Generic[T]):
    """Final answer supplied by a request-phase hook.

    For REST calls ``response`` is a :class:`ResponseContext`; for stream
    connections it is an async iterable of events.
    """

    response: T
