"""Mock mode state store.

:class:`MockStateStore` holds the current mock flag. A persistent store
reads and writes ``mock.enabled`` in the global config file (see
:mod:`apichain.config`), and honours the ``APICHAIN_MOCK`` environment
override when restoring; an in-memory store only remembers the last value.
"""

from __future__ import annotations

import logging

from apichain.config import load_global_config, resolve_mock_enabled, save_global_config

logger = logging.getLogger(__name__)


class MockStateStore:
    """Current mock flag, optionally backed by the global config file.

    Args:
        enabled: Initial value for an in-memory store.
        persistent: Read and write the flag through the global config file.
    """

    def __init__(self, enabled: bool = False, *, persistent: bool = False) -> None:
        self._enabled = enabled
        self._persistent = persistent

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def persistent(self) -> bool:
        return self._persistent

    def restore(self) -> bool:
        """Reload the flag from its backing store and return it."""
        if self._persistent:
            self._enabled = resolve_mock_enabled()
        return self._enabled

    def set(self, enabled: bool) -> None:
        """Record a new flag value, writing it through when persistent."""
        self._enabled = enabled
        if self._persistent:
            config = load_global_config()
            config.mock.enabled = enabled
            save_global_config(config)
            logger.debug("Persisted mock mode %s", "on" if enabled else "off")
