"""Protocols -- the transports a service talks through.

* :class:`ApiProtocol` -- base class with instance-scoped plugins and
  global/instance plugin merging.
* :class:`RestProtocol` -- request/response calls.
* :class:`SseProtocol` -- server-sent event streams.
"""

from apichain.protocols.base import ApiProtocol, ProtocolPlugins
from apichain.protocols.rest import RestProtocol
from apichain.protocols.sse import SseEvent, SseProtocol

__all__ = ["ApiProtocol", "ProtocolPlugins", "RestProtocol", "SseEvent", "SseProtocol"]
