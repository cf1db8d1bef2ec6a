"""Mock mode effects -- activate registered mock plugins on a toggle event.

Services register mock plugins with
:meth:`~apichain.service.BaseApiService.register_plugin`; nothing activates
them there. :class:`MockEffects` listens for ``mock/toggle`` on an
:class:`~apichain.events.EventBus` and, on every toggle, sweeps all services
of an :class:`~apichain.registry.ApiRegistry`:

* enabled: every registered mock plugin that is not yet active on its
  protocol is added to the protocol's instance scope,
* disabled: every registered mock plugin is detached from its protocol. It
  is *not* destroyed, so the next enable re-activates the same instance.

Plugins not classified as mock plugins are never touched. Both directions
are idempotent.

Example::

    bus = EventBus()
    stop = MockEffects(registry, bus).start()
    toggle_mock_mode(bus, True)
    ...
    stop()
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Optional

from apichain.effects.state import MockStateStore
from apichain.events import EventBus, Unsubscribe
from apichain.models import MockTogglePayload
from apichain.plugins.base import is_mock_plugin
from apichain.registry import ApiRegistry
from apichain.service import BaseApiService

logger = logging.getLogger(__name__)


class MockEvents:
    """Event names used by mock mode."""

    TOGGLE = "mock/toggle"


def sync_mock_plugins(services: Iterable[BaseApiService], enabled: bool) -> int:
    """Activate or detach every registered mock plugin of *services*.

    Returns:
        The number of plugins whose activation changed.
    """
    changed = 0
    for service in services:
        for protocol, plugins in service.get_plugins().items():
            for plugin in plugins:
                if not is_mock_plugin(plugin):
                    continue
                active = protocol.plugins.has(plugin)
                if enabled and not active:
                    protocol.plugins.add(plugin)
                    changed += 1
                elif not enabled and active:
                    protocol.plugins.remove(plugin, destroy=False)
                    changed += 1
    logger.debug("Mock sweep (%s) changed %d plugin(s)", "on" if enabled else "off", changed)
    return changed


def _coerce_payload(payload: Any) -> MockTogglePayload:
    if isinstance(payload, MockTogglePayload):
        return payload
    return MockTogglePayload.model_validate(payload)


class MockEffects:
    """Keeps mock plugin activation in line with the mock flag.

    Args:
        registry: Services to sweep. Read on every toggle, so services
            registered after :meth:`start` are covered by the next toggle.
        bus: Event bus carrying ``mock/toggle``.
        state: Where the flag is kept. Defaults to an in-memory store.
    """

    def __init__(
        self,
        registry: ApiRegistry,
        bus: EventBus,
        state: Optional[MockStateStore] = None,
    ) -> None:
        self.registry = registry
        self.bus = bus
        self.state = state if state is not None else MockStateStore()
        self._unsubscribe: Optional[Unsubscribe] = None

    def start(self) -> Unsubscribe:
        """Subscribe to toggles and sweep once with the restored flag.

        Returns:
            A function that stops listening. Calling :meth:`start` again while
            listening returns the same function.
        """
        if self._unsubscribe is None:
            self._unsubscribe = self.bus.on(MockEvents.TOGGLE, self._on_toggle)
            sync_mock_plugins(self.registry.get_all(), self.state.restore())
        return self.stop

    def stop(self) -> None:
        """Stop listening for toggles. Active plugins stay as they are."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    @property
    def listening(self) -> bool:
        return self._unsubscribe is not None

    def _on_toggle(self, payload: Any) -> None:
        toggle = _coerce_payload(payload)
        self.state.set(toggle.enabled)
        sync_mock_plugins(self.registry.get_all(), toggle.enabled)


def toggle_mock_mode(bus: EventBus, enabled: bool) -> None:
    """Emit a ``mock/toggle`` event."""
    bus.emit(MockEvents.TOGGLE, MockTogglePayload(enabled=enabled))
