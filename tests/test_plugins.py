"""Tests for the plugin base class, contexts and the chain executor.

Covers:
- PluginDescriptor classification and naming
- is_mock_plugin on plugins and non-plugins
- Frozen contexts, replace() and with_headers()
- Request/response/error phase ordering (onion model)
- Short-circuit semantics
- on_error replacement and recovery
- Hook return type validation and hook exception propagation
- Stream hooks (on_connect/on_disconnect)
"""

from __future__ import annotations

import logging
from dataclasses import FrozenInstanceError
from typing import Any

import pytest

from apichain.exceptions import (
    ConnectionError_,
    NotFoundError,
    PluginError,
    ServerError,
    TransportError,
)
from apichain.plugins.base import (
    ApiPluginBase,
    ApiPluginWithConfig,
    PluginDescriptor,
    defines_hook,
    destroy_plugin,
    is_mock_plugin,
)
from apichain.plugins.chain import PluginChain
from apichain.plugins.hooks import ConnectContext, RequestContext, ResponseContext, ShortCircuit
from apichain.plugins.rest_mock import RestMockPlugin

from conftest import RecordingPlugin


class _Transport:
    """Fake send coroutine that counts calls."""

    def __init__(self, response: Any = None, error: Exception | None = None) -> None:
        self.calls: list[RequestContext] = []
        self.response = response if response is not None else ResponseContext(status=200, data="real")
        self.error = error

    async def __call__(self, ctx: RequestContext) -> ResponseContext:
        self.calls.append(ctx)
        if self.error is not None:
            raise self.error
        return self.response


# ---------------------------------------------------------------------------
# Plugin base and classification
# ---------------------------------------------------------------------------


class TestPluginDescriptor:
    def test_defaults_to_class_name_and_not_mock(self) -> None:
        class Plain(ApiPluginBase):
            pass

        plugin = Plain()
        assert plugin.descriptor == PluginDescriptor(name="Plain", mock=False)
        assert plugin.name == "Plain"

    def test_class_attribute_opts_in(self) -> None:
        class Fixture(ApiPluginBase):
            mock_plugin = True

        assert Fixture().descriptor.mock is True

    def test_keyword_overrides_class_attribute(self) -> None:
        class Fixture(ApiPluginBase):
            mock_plugin = True

        assert Fixture(mock=False).descriptor.mock is False
        assert ApiPluginBase(mock=True).descriptor.mock is True

    def test_subclass_without_super_init_gets_defaults(self) -> None:
        class NoSuper(ApiPluginBase):
            mock_plugin = True

            def __init__(self) -> None:
                self.value = 1

        plugin = NoSuper()
        assert plugin.name == "NoSuper"
        assert plugin.descriptor.mock is True

    def test_name_override(self) -> None:
        assert ApiPluginBase(name="auth").name == "auth"

    def test_with_config_exposes_config(self) -> None:
        plugin = ApiPluginWithConfig({"limit": 3})
        assert plugin.config == {"limit": 3}

    def test_identity_equality(self) -> None:
        a, b = ApiPluginBase(name="same"), ApiPluginBase(name="same")
        assert a != b
        assert a == a


class TestIsMockPlugin:
    def test_bundled_mock_plugin(self) -> None:
        assert is_mock_plugin(RestMockPlugin()) is True

    def test_plain_plugin(self) -> None:
        assert is_mock_plugin(ApiPluginBase()) is False

    @pytest.mark.parametrize("value", [None, "RestMockPlugin", {"on_request": lambda ctx: ctx}, 42])
    def test_non_plugins(self, value: Any) -> None:
        assert is_mock_plugin(value) is False

    def test_duck_typed_object_with_flag_is_not_a_plugin(self) -> None:
        class Impostor:
            mock_plugin = True

            def on_request(self, ctx: RequestContext) -> RequestContext:
                return ctx

        assert is_mock_plugin(Impostor()) is False


class TestHookDetection:
    def test_base_defines_no_hooks(self) -> None:
        plugin = ApiPluginBase()
        for hook in ("on_request", "on_response", "on_error", "on_connect", "on_disconnect"):
            assert defines_hook(plugin, hook) is False

    def test_non_callable_attribute_is_not_a_hook(self) -> None:
        plugin = ApiPluginBase()
        plugin.on_request = "nope"  # type: ignore[attr-defined]
        assert defines_hook(plugin, "on_request") is False

    def test_destroy_failure_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        class Broken(ApiPluginBase):
            def destroy(self) -> None:
                raise RuntimeError("boom")

        with caplog.at_level(logging.WARNING, logger="apichain.plugins.base"):
            destroy_plugin(Broken())
        assert "boom" in caplog.text


# ---------------------------------------------------------------------------
# Contexts
# ---------------------------------------------------------------------------


class TestContexts:
    def test_headers_are_read_only(self) -> None:
        ctx = RequestContext(headers={"A": "1"})
        with pytest.raises(TypeError):
            ctx.headers["B"] = "2"  # type: ignore[index]

    def test_context_is_frozen(self) -> None:
        ctx = RequestContext(url="/a")
        with pytest.raises(FrozenInstanceError):
            ctx.url = "/b"  # type: ignore[misc]

    def test_source_dict_changes_do_not_leak(self) -> None:
        headers = {"A": "1"}
        ctx = RequestContext(headers=headers)
        headers["A"] = "2"
        assert ctx.headers["A"] == "1"

    def test_replace_returns_new_context(self) -> None:
        ctx = RequestContext(method="GET", url="/a")
        changed = ctx.replace(url="/b")
        assert changed.url == "/b"
        assert ctx.url == "/a"
        assert changed.method == "GET"

    def test_with_headers_merges_and_dashes(self) -> None:
        ctx = RequestContext(headers={"Accept": "application/json"})
        changed = ctx.with_headers(x_request_id="abc")
        assert dict(changed.headers) == {"Accept": "application/json", "x-request-id": "abc"}
        assert "x-request-id" not in ctx.headers

    def test_response_context_defaults(self) -> None:
        ctx = ResponseContext()
        assert ctx.status == 200
        assert dict(ctx.headers) == {}
        assert ctx.data is None


# ---------------------------------------------------------------------------
# Chain: ordering
# ---------------------------------------------------------------------------


class TestChainOrdering:
    @pytest.mark.asyncio
    async def test_request_forward_response_reverse(self, make_plugin, call_log) -> None:
        chain = PluginChain([make_plugin("A"), make_plugin("B"), make_plugin("C")])
        transport = _Transport()

        result = await chain.execute(RequestContext(url="/x"), transport)

        assert result.data == "real"
        assert call_log == [
            ("A", "request"),
            ("B", "request"),
            ("C", "request"),
            ("C", "response"),
            ("B", "response"),
            ("A", "response"),
        ]

    @pytest.mark.asyncio
    async def test_contexts_thread_through_hooks(self) -> None:
        class Stamp(ApiPluginBase):
            def __init__(self, value: str) -> None:
                super().__init__()
                self.value = value

            def on_request(self, ctx: RequestContext) -> RequestContext:
                trail = ctx.headers.get("x-trail", "")
                return ctx.with_headers(x_trail=trail + self.value)

            def on_response(self, ctx: ResponseContext) -> ResponseContext:
                return ctx.replace(data=f"{ctx.data}{self.value}")

        transport = _Transport()
        result = await PluginChain([Stamp("1"), Stamp("2")]).execute(RequestContext(), transport)

        assert transport.calls[0].headers["x-trail"] == "12"
        assert result.data == "real21"

    @pytest.mark.asyncio
    async def test_async_hooks_are_awaited(self) -> None:
        class AsyncAuth(ApiPluginBase):
            async def on_request(self, ctx: RequestContext) -> RequestContext:
                return ctx.with_headers(Authorization="Bearer t")

            async def on_response(self, ctx: ResponseContext) -> ResponseContext:
                return ctx.replace(status=201)

        transport = _Transport()
        result = await PluginChain([AsyncAuth()]).execute(RequestContext(), transport)

        assert transport.calls[0].headers["Authorization"] == "Bearer t"
        assert result.status == 201

    @pytest.mark.asyncio
    async def test_plugins_without_hooks_are_skipped(self, make_plugin, call_log) -> None:
        chain = PluginChain([ApiPluginBase(), make_plugin("A"), ApiPluginBase()])
        await chain.execute(RequestContext(), _Transport())
        assert call_log == [("A", "request"), ("A", "response")]

    @pytest.mark.asyncio
    async def test_empty_chain_calls_transport(self) -> None:
        transport = _Transport()
        result = await PluginChain([]).execute(RequestContext(url="/x"), transport)
        assert len(transport.calls) == 1
        assert result.data == "real"

    def test_snapshot_is_immutable(self, make_plugin) -> None:
        plugins = [make_plugin("A")]
        chain = PluginChain(plugins)
        plugins.append(make_plugin("B"))
        assert len(chain) == 1
        assert isinstance(chain.plugins, tuple)


# ---------------------------------------------------------------------------
# Chain: short-circuit
# ---------------------------------------------------------------------------


class _ShortCircuitPlugin(RecordingPlugin):
    def on_request(self, ctx: RequestContext) -> ShortCircuit[ResponseContext]:
        self.log.append((self.name, "request"))
        return ShortCircuit(ResponseContext(status=200, data="mocked"))


class TestShortCircuit:
    @pytest.mark.asyncio
    async def test_skips_later_requests_and_transport(self, make_plugin, call_log) -> None:
        a = make_plugin("A")
        b = _ShortCircuitPlugin("B", call_log)
        c = make_plugin("C")
        transport = _Transport()

        result = await PluginChain([a, b, c]).execute(RequestContext(), transport)

        assert result.data == "mocked"
        assert transport.calls == []
        assert ("C", "request") not in call_log
        assert call_log[:2] == [("A", "request"), ("B", "request")]

    @pytest.mark.asyncio
    async def test_response_phase_runs_over_whole_snapshot(self, make_plugin, call_log) -> None:
        chain = PluginChain([make_plugin("A"), _ShortCircuitPlugin("B", call_log), make_plugin("C")])
        await chain.execute(RequestContext(), _Transport())
        assert call_log[2:] == [("C", "response"), ("B", "response"), ("A", "response")]

    @pytest.mark.asyncio
    async def test_short_circuit_must_carry_response_context(self) -> None:
        class Bad(ApiPluginBase):
            def on_request(self, ctx: RequestContext) -> ShortCircuit[Any]:
                return ShortCircuit({"data": 1})

        with pytest.raises(PluginError, match="ResponseContext"):
            await PluginChain([Bad()]).execute(RequestContext(), _Transport())


# ---------------------------------------------------------------------------
# Chain: error phase
# ---------------------------------------------------------------------------


class TestErrorPhase:
    @pytest.mark.asyncio
    async def test_error_hooks_run_in_reverse_and_error_is_raised(self, make_plugin, call_log) -> None:
        failure = ConnectionError_("down")
        chain = PluginChain([make_plugin("A"), make_plugin("B")])

        with pytest.raises(ConnectionError_) as exc_info:
            await chain.execute(RequestContext(), _Transport(error=failure))

        assert exc_info.value is failure
        assert call_log == [
            ("A", "request"),
            ("B", "request"),
            ("B", "error"),
            ("A", "error"),
        ]

    @pytest.mark.asyncio
    async def test_error_replacement_is_chained(self) -> None:
        class Translate(ApiPluginBase):
            def on_error(self, error: Exception, ctx: RequestContext) -> Exception:
                return ServerError(f"translated: {error}")

        failure = NotFoundError("missing")
        with pytest.raises(ServerError, match="translated: missing") as exc_info:
            await PluginChain([Translate()]).execute(RequestContext(), _Transport(error=failure))
        assert exc_info.value.__cause__ is failure

    @pytest.mark.asyncio
    async def test_last_hook_recovery_resolves_call(self, make_plugin, call_log) -> None:
        class Fallback(ApiPluginBase):
            def on_error(self, error: Exception, ctx: RequestContext) -> ResponseContext:
                return ResponseContext(status=200, data="cached")

        # Reverse order: the recovering plugin registered first runs last.
        chain = PluginChain([Fallback(), make_plugin("A")])
        result = await chain.execute(RequestContext(), _Transport(error=ServerError("500")))

        assert result.data == "cached"
        assert ("A", "error") in call_log
        assert ("A", "response") not in call_log

    @pytest.mark.asyncio
    async def test_recovery_stops_remaining_error_hooks(self, make_plugin, call_log) -> None:
        class Fallback(ApiPluginBase):
            def on_error(self, error: Exception, ctx: RequestContext) -> ResponseContext:
                return ResponseContext(data="fallback")

        chain = PluginChain([make_plugin("A"), Fallback()])
        result = await chain.execute(RequestContext(), _Transport(error=ServerError("500")))

        assert result.data == "fallback"
        assert ("A", "error") not in call_log

    @pytest.mark.asyncio
    async def test_error_hook_receives_original_request(self) -> None:
        seen: list[RequestContext] = []

        class Rewrite(ApiPluginBase):
            def on_request(self, ctx: RequestContext) -> RequestContext:
                return ctx.replace(url="/rewritten")

            def on_error(self, error: Exception, ctx: RequestContext) -> Exception:
                seen.append(ctx)
                return error

        original = RequestContext(url="/original")
        with pytest.raises(TransportError):
            await PluginChain([Rewrite()]).execute(original, _Transport(error=TransportError("x")))
        assert seen == [original]

    @pytest.mark.asyncio
    async def test_error_hook_invalid_return(self) -> None:
        class Bad(ApiPluginBase):
            def on_error(self, error: Exception, ctx: RequestContext) -> Any:
                return "ignored"

        with pytest.raises(PluginError, match="on_error"):
            await PluginChain([Bad()]).execute(RequestContext(), _Transport(error=TransportError("x")))

    @pytest.mark.asyncio
    async def test_non_transport_errors_skip_error_phase(self, make_plugin, call_log) -> None:
        with pytest.raises(RuntimeError):
            await PluginChain([make_plugin("A")]).execute(
                RequestContext(), _Transport(error=RuntimeError("bug"))
            )
        assert ("A", "error") not in call_log

    @pytest.mark.asyncio
    async def test_hook_exceptions_propagate(self, make_plugin, call_log) -> None:
        class Exploding(ApiPluginBase):
            def on_request(self, ctx: RequestContext) -> RequestContext:
                raise ValueError("hook failed")

        transport = _Transport()
        with pytest.raises(ValueError, match="hook failed"):
            await PluginChain([make_plugin("A"), Exploding()]).execute(RequestContext(), transport)
        assert transport.calls == []
        assert ("A", "error") not in call_log


class TestInvalidReturns:
    @pytest.mark.asyncio
    async def test_on_request_returning_none(self) -> None:
        class Forgetful(ApiPluginBase):
            def on_request(self, ctx: RequestContext) -> None:
                return None

        with pytest.raises(PluginError, match="Forgetful.on_request returned NoneType"):
            await PluginChain([Forgetful()]).execute(RequestContext(), _Transport())

    @pytest.mark.asyncio
    async def test_on_response_returning_dict(self) -> None:
        class Raw(ApiPluginBase):
            def on_response(self, ctx: ResponseContext) -> Any:
                return {"status": 200}

        with pytest.raises(PluginError, match="on_response"):
            await PluginChain([Raw()]).execute(RequestContext(), _Transport())


# ---------------------------------------------------------------------------
# Chain: stream hooks
# ---------------------------------------------------------------------------


class TestStreamHooks:
    @pytest.mark.asyncio
    async def test_connect_forward_disconnect_reverse(self) -> None:
        log: list[str] = []

        class Tracker(ApiPluginBase):
            def __init__(self, label: str) -> None:
                super().__init__(name=label)

            def on_connect(self, ctx: ConnectContext) -> ConnectContext:
                log.append(f"connect:{self.name}")
                return ctx

            async def on_disconnect(self, ctx: ConnectContext) -> None:
                log.append(f"disconnect:{self.name}")

        chain = PluginChain([Tracker("A"), Tracker("B")])
        ctx = ConnectContext(url="/stream")
        assert await chain.run_connect(ctx) is ctx
        await chain.run_disconnect(ctx)

        assert log == ["connect:A", "connect:B", "disconnect:B", "disconnect:A"]

    @pytest.mark.asyncio
    async def test_connect_short_circuit_stops_traversal(self) -> None:
        log: list[str] = []

        class Mock(ApiPluginBase):
            def on_connect(self, ctx: ConnectContext) -> ShortCircuit[list[str]]:
                return ShortCircuit(["event"])

        class Later(ApiPluginBase):
            def on_connect(self, ctx: ConnectContext) -> ConnectContext:
                log.append("later")
                return ctx

        result = await PluginChain([Mock(), Later()]).run_connect(ConnectContext(url="/s"))
        assert isinstance(result, ShortCircuit)
        assert result.response == ["event"]
        assert log == []
