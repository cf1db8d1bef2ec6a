"""REST mock plugin.

Short-circuits REST requests with fixture data from a mock map keyed by
``"METHOD /path"``. Classified as a mock plugin, so the mock sync effect
activates it only while mock mode is on.

See Also:
    :class:`~apichain.plugins.rest_mock.plugin.RestMockPlugin`
    :mod:`apichain.effects.mock` for activation.
"""

from apichain.plugins.rest_mock.plugin import (
    SHORT_CIRCUIT_HEADER,
    MockMap,
    RestMockConfig,
    RestMockPlugin,
    match_url_pattern,
)

__all__ = [
    "SHORT_CIRCUIT_HEADER",
    "MockMap",
    "RestMockConfig",
    "RestMockPlugin",
    "match_url_pattern",
]
