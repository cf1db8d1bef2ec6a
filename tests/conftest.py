"""Shared test fixtures for apichain.

Provides isolated config environments, output state management, recording
plugins, ready-made services and registries, and a CLI runner. These
fixtures are discovered by pytest and available to all test modules
without explicit imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Optional

import httpx
import pytest

from apichain.models import ApiServiceConfig
from apichain.output import OutputFormat, OutputManager, reset_output, set_output
from apichain.plugins.base import ApiPluginBase
from apichain.plugins.hooks import RequestContext, ResponseContext
from apichain.protocols.rest import RestProtocol
from apichain.registry import ApiRegistry
from apichain.service import BaseApiService


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during a
    test, the cached references go stale once the test finishes.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path,
    forces the XDG layout, clears ``APICHAIN_MOCK`` and changes the working
    directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("apichain.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.delenv("APICHAIN_MOCK", raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# Plugins
# ---------------------------------------------------------------------------


class RecordingPlugin(ApiPluginBase):
    """Passthrough plugin that appends ``(name, hook)`` to a shared log."""

    def __init__(self, label: str, log: list[tuple[str, str]], **kwargs: Any) -> None:
        super().__init__(name=label, **kwargs)
        self.log = log
        self.destroyed = 0

    def on_request(self, ctx: RequestContext) -> RequestContext:
        self.log.append((self.name, "request"))
        return ctx

    def on_response(self, ctx: ResponseContext) -> ResponseContext:
        self.log.append((self.name, "response"))
        return ctx

    def on_error(self, error: Exception, ctx: RequestContext) -> Exception:
        self.log.append((self.name, "error"))
        return error

    def destroy(self) -> None:
        self.destroyed += 1


class OtherRecordingPlugin(RecordingPlugin):
    """A distinct plugin type for exclusion tests."""


@pytest.fixture
def call_log() -> list[tuple[str, str]]:
    return []


@pytest.fixture
def make_plugin(call_log: list[tuple[str, str]]) -> Callable[..., RecordingPlugin]:
    def factory(label: str, cls: type[RecordingPlugin] = RecordingPlugin, **kwargs: Any) -> RecordingPlugin:
        return cls(label, call_log, **kwargs)

    return factory


# ---------------------------------------------------------------------------
# Transports, services and registries
# ---------------------------------------------------------------------------


class TransportRecorder:
    """httpx.MockTransport handler that records requests and replies from a table."""

    def __init__(self, routes: Optional[dict[str, httpx.Response]] = None) -> None:
        self.routes = routes or {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = f"{request.method} {request.url.path}"
        if key in self.routes:
            return self.routes[key]
        return httpx.Response(200, json={"path": request.url.path})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def recorder() -> TransportRecorder:
    return TransportRecorder()


class UsersService(BaseApiService):
    """REST service used throughout the tests."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.rest = RestProtocol(transport=transport)
        super().__init__(ApiServiceConfig(base_url="https://api.test/v1"), self.rest)

    async def list_users(self) -> Any:
        return await self.protocol(RestProtocol).get("/users")


class OrdersService(BaseApiService):
    """Second REST service, for cross-service isolation tests."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.rest = RestProtocol(transport=transport)
        super().__init__(ApiServiceConfig(base_url="https://api.test/orders"), self.rest)


@pytest.fixture
def registry() -> ApiRegistry:
    reg = ApiRegistry()
    yield reg
    reg.reset()


@pytest.fixture
def users_service(registry: ApiRegistry, recorder: TransportRecorder) -> UsersService:
    return registry.register(UsersService(recorder.transport))


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
