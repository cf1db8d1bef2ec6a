"""Effects reacting to framework events."""

from apichain.effects.mock import MockEffects, MockEvents, sync_mock_plugins, toggle_mock_mode
from apichain.effects.state import MockStateStore

__all__ = [
    "MockEffects",
    "MockEvents",
    "MockStateStore",
    "sync_mock_plugins",
    "toggle_mock_mode",
]
