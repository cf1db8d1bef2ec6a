"""Server-sent events protocol -- event streams over :mod:`httpx`.

:class:`SseProtocol` opens ``text/event-stream`` connections and yields
:class:`SseEvent` values. Before connecting it runs the ``on_connect``
hooks of its merged plugin list; a hook may return a
:class:`~apichain.plugins.hooks.ShortCircuit` carrying any async iterable
of events (for instance a
:class:`~apichain.plugins.sse_mock.MockEventSource`), in which case no
connection is opened. ``on_disconnect`` hooks run in reverse order once
the stream ends, fails, or is closed by the consumer.

Example::

    sse = SseProtocol()
    service = ChatService(ApiServiceConfig(base_url="https://api.example.com"), sse)
    async for event in sse.stream("/stream/chat"):
        print(event.event, event.data)
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from apichain.exceptions import ConnectionError_, PluginError
from apichain.models import SseProtocolConfig
from apichain.plugins.chain import PluginChain
from apichain.plugins.hooks import ConnectContext, RequestContext, ResponseContext, ShortCircuit
from apichain.protocols.base import ApiProtocol
from apichain.protocols.rest import extract_response_data, raise_for_status


@dataclass(frozen=True)
class SseEvent:
    """One dispatched server-sent event.

    Attributes:
        data: Event payload; multiple ``data:`` lines are joined with ``\\n``.
        event: Event type, ``"message"`` unless the server sent ``event:``.
        id: Last event ID seen on the stream, if any.
        retry: Reconnection time in milliseconds, if the server sent one.
    """

    data: str = ""
    event: str = "message"
    id: Optional[str] = None
    retry: Optional[int] = None

    def json(self) -> Any:
        """Decode :attr:`data` as JSON."""
        return json.loads(self.data)


async def parse_event_stream(lines: AsyncIterable[str]) -> AsyncIterator[SseEvent]:
    """Turn ``text/event-stream`` lines into :class:`SseEvent` values.

    Follows the WHATWG framing rules: a blank line dispatches the pending
    event, lines starting with ``:`` are comments, a single space after the
    field colon is stripped, and unknown fields are ignored. An event that is
    not terminated by a blank line before the stream ends is discarded.
    """
    data: list[str] = []
    event_type = ""
    last_id: Optional[str] = None
    retry: Optional[int] = None

    async for raw in lines:
        line = raw.rstrip("\r\n")
        if not line:
            if data:
                yield SseEvent(
                    data="\n".join(data),
                    event=event_type or "message",
                    id=last_id,
                    retry=retry,
                )
            data = []
            event_type = ""
            continue
        if line.startswith(":"):
            continue

        name, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if name == "data":
            data.append(value)
        elif name == "event":
            event_type = value
        elif name == "id":
            if "\0" not in value:
                last_id = value
        elif name == "retry":
            if value.isdigit():
                retry = int(value)


class SseProtocol(ApiProtocol):
    """Server-sent events communication with plugin support.

    Args:
        config: SSE-specific settings (Accept header).
        client: Optional externally owned :class:`httpx.AsyncClient`.
        transport: Optional transport for the per-stream client.
    """

    def __init__(
        self,
        config: Optional[SseProtocolConfig] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__()
        self.sse_config = config or SseProtocolConfig()
        self._client = client
        self._transport = transport

    def stream(
        self,
        url: str,
        *,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> AsyncIterator[SseEvent]:
        """Connect to *url* and yield events until the stream ends.

        The service configuration is checked when this method is called; the
        connection itself is opened on the first iteration.

        Raises:
            ConfigurationError: If the protocol is not initialized. Raised by
                this call, before any plugin runs.
            ConnectionError_: On network failures.
            HttpStatusError: If the server answers with status >= 400.
            PluginError: If a short-circuit does not carry an async iterable.
        """
        config = self.service_config
        merged_headers: dict[str, str] = {"Accept": self.sse_config.accept}
        merged_headers.update(config.headers)
        merged_headers.update(headers or {})

        ctx = ConnectContext(url=url, headers=merged_headers, params=params or {})
        return self._run(ctx)

    async def _run(self, ctx: ConnectContext) -> AsyncIterator[SseEvent]:
        chain = PluginChain(self.get_plugins_in_order())
        result = await chain.run_connect(ctx)

        try:
            if isinstance(result, ShortCircuit):
                source = result.response
                if not hasattr(source, "__aiter__"):
                    raise PluginError(
                        f"Short-circuit for stream {ctx.url} must carry an async iterable, "
                        f"got {type(source).__name__}"
                    )
                async for event in source:
                    yield event
            else:
                async for event in self._open(result):
                    yield event
        finally:
            await chain.run_disconnect(ctx)

    async def _open(self, ctx: ConnectContext) -> AsyncIterator[SseEvent]:
        if self._client is not None:
            async for event in self._read(self._client, ctx):
                yield event
            return

        async with httpx.AsyncClient(
            timeout=self.service_config.timeout,
            transport=self._transport,
        ) as client:
            async for event in self._read(client, ctx):
                yield event

    async def _read(self, client: httpx.AsyncClient, ctx: ConnectContext) -> AsyncIterator[SseEvent]:
        url = self._build_url(ctx.url)
        try:
            async with client.stream(
                "GET",
                url,
                headers=dict(ctx.headers),
                params=dict(ctx.params) or None,
            ) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise_for_status(
                        RequestContext(method="GET", url=ctx.url, headers=ctx.headers),
                        ResponseContext(
                            status=response.status_code,
                            headers=dict(response.headers),
                            data=extract_response_data(response),
                        ),
                    )
                async for event in parse_event_stream(response.aiter_lines()):
                    yield event
        except httpx.RequestError as exc:
            raise ConnectionError_(f"Stream {ctx.url} failed: {exc}") from exc
