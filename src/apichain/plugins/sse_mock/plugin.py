"""SSE mock plugin -- replays canned events instead of opening a stream."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from apichain.plugins.base import ApiPluginWithConfig
from apichain.plugins.hooks import ConnectContext, ShortCircuit
from apichain.protocols.sse import SseEvent

MockStreams = Mapping[str, Sequence[Union[SseEvent, Mapping[str, Any]]]]


def _to_data(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


def _to_event(item: Union[SseEvent, Mapping[str, Any]]) -> SseEvent:
    if isinstance(item, SseEvent):
        return item
    return SseEvent(
        data=_to_data(item.get("data", "")),
        event=item.get("event") or "message",
        id=item.get("id"),
        retry=item.get("retry"),
    )


class MockEventSource:
    """Async iterable that yields a fixed list of events with a delay between them.

    Each ``async for`` replays the events from the start.
    """

    def __init__(self, events: Sequence[Union[SseEvent, Mapping[str, Any]]], delay: float = 0.05) -> None:
        self._events = tuple(_to_event(item) for item in events)
        self._delay = delay

    @property
    def events(self) -> tuple[SseEvent, ...]:
        return self._events

    async def __aiter__(self) -> AsyncIterator[SseEvent]:
        for event in self._events:
            if self._delay > 0:
                await asyncio.sleep(self._delay)
            yield event


@dataclass(frozen=True)
class SseMockConfig:
    """Settings for :class:`SseMockPlugin`.

    Attributes:
        mock_streams: URL or ``prefix*`` -> events. Plain dicts with
            ``data``/``event``/``id``/``retry`` keys are accepted; non-string
            ``data`` is serialised as JSON.
        delay: Seconds between replayed events.
    """

    mock_streams: MockStreams = field(default_factory=dict)
    delay: float = 0.05


class SseMockPlugin(ApiPluginWithConfig[SseMockConfig]):
    """Intercept stream connections and return a :class:`MockEventSource`.

    URLs are matched exactly first. A key ending in ``*`` then matches any
    URL that starts with the rest of the key, so ``"/stream/*"`` answers
    ``"/stream/chat"`` while a plain ``"/stream"`` answers only itself.
    """

    mock_plugin = True

    def __init__(self, config: Optional[SseMockConfig] = None, **kwargs: Any) -> None:
        super().__init__(config or SseMockConfig(), **kwargs)
        self._mock_streams: MockStreams = dict(self.config.mock_streams)

    def set_mock_streams(self, mock_streams: MockStreams) -> None:
        """Replace the stream map. Takes effect on the next connection."""
        self._mock_streams = dict(mock_streams)

    def on_connect(
        self, ctx: ConnectContext
    ) -> Union[ConnectContext, ShortCircuit[MockEventSource]]:
        events = self._find(ctx.url)
        if events is None:
            return ctx
        return ShortCircuit(MockEventSource(events, self.config.delay))

    def _find(self, url: str) -> Optional[Sequence[Any]]:
        exact = self._mock_streams.get(url)
        if exact is not None:
            return exact
        for pattern, events in self._mock_streams.items():
            if pattern.endswith("*") and url.startswith(pattern[:-1]):
                return events
        return None
