"""Canonical Pydantic models shared across apichain modules.

The models fall into two groups:

**Transport configuration** -- handed to protocols when a service
initializes them:
    :class:`ApiServiceConfig`, :class:`RestProtocolConfig`, and
    :class:`SseProtocolConfig`.

**Persistent configuration** -- serialised as JSON in the user's config
directory by :mod:`apichain.config`:
    :class:`MockConfig`, :class:`OutputConfig`, and :class:`GlobalConfig`.

The event payload published on the mock toggle channel,
:class:`MockTogglePayload`, also lives here so that the effect and its
emitters share one shape.

All models use Pydantic v2. Transport configuration is frozen because a
protocol reads it once at initialization and never expects it to change.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Transport config ---


class ApiServiceConfig(BaseModel):
    """Base transport configuration shared by every protocol of a service.

    Example::

        ApiServiceConfig(
            base_url="https://api.example.com/accounts",
            headers={"X-Client": "dashboard"},
            timeout=10,
        )
    """

    model_config = ConfigDict(frozen=True)

    base_url: str = Field(default="", description="Base URL for every request")
    headers: dict[str, str] = Field(
        default_factory=dict, description="Default headers for every request"
    )
    timeout: Optional[float] = Field(
        default=30.0, description="Transport timeout in seconds; None disables it"
    )


class RestProtocolConfig(BaseModel):
    """REST-specific settings layered on top of :class:`ApiServiceConfig`."""

    model_config = ConfigDict(frozen=True)

    content_type: str = Field(
        default="application/json", description="Default Content-Type header"
    )
    follow_redirects: bool = True


class SseProtocolConfig(BaseModel):
    """Server-sent events settings layered on top of :class:`ApiServiceConfig`."""

    model_config = ConfigDict(frozen=True)

    accept: str = Field(default="text/event-stream", description="Accept header")


# --- Persistent config ---


class MockConfig(BaseModel):
    """Mock mode settings stored in :class:`GlobalConfig`."""

    enabled: bool = Field(default=False, description="Whether mock plugins are active")
    delay: float = Field(
        default=0.1, description="Simulated latency for mock responses in seconds"
    )


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: Literal["auto", "json", "plain", "rich"] = Field(
        default="auto", description="Default output format when no CLI flag is given"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/apichain/config.json``.

    Loaded and saved by :func:`~apichain.config.load_global_config` and
    :func:`~apichain.config.save_global_config`. Unknown keys are kept so
    that newer versions of the file survive a round trip through older code.
    """

    model_config = ConfigDict(extra="allow")

    mock: MockConfig = Field(default_factory=MockConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


# --- Events ---


class MockTogglePayload(BaseModel):
    """Payload of the ``mock/toggle`` event."""

    model_config = ConfigDict(frozen=True)

    enabled: bool
