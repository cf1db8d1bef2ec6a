"""SSE mock plugin.

Short-circuits stream connections with a :class:`MockEventSource` that
replays configured events.

See Also:
    :class:`~apichain.plugins.sse_mock.plugin.SseMockPlugin`
"""

from apichain.plugins.sse_mock.plugin import MockEventSource, SseMockConfig, SseMockPlugin

__all__ = ["MockEventSource", "SseMockConfig", "SseMockPlugin"]
