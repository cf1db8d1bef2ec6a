"""Chain executor -- runs plugin hooks around one transport call.

:class:`PluginChain` holds an immutable snapshot of a protocol's merged
plugin list (see :meth:`~apichain.protocols.base.ApiProtocol.get_plugins_in_order`)
and drives one call through it:

1. **Request phase** -- ``on_request`` hooks run forward. A hook that
   returns :class:`~apichain.plugins.hooks.ShortCircuit` stops the phase;
   the remaining request hooks and the transport are skipped.
2. **Transport call** -- the final request context is handed to the
   protocol's ``send`` coroutine.
3. **Response phase** -- ``on_response`` hooks run in reverse, so the plugin
   that saw the request last sees the response first (onion model). A
   short-circuited response goes through this phase too.
4. **Error phase** -- when the transport raises a
   :class:`~apichain.exceptions.TransportError`, ``on_error`` hooks run in
   reverse. A hook returns either a new exception, which replaces the
   current one, or a :class:`~apichain.plugins.hooks.ResponseContext`,
   which ends the phase and becomes the call's result without re-entering
   the response phase. Without recovery the last error is raised.

Hooks run strictly one after another. Plain return values and awaitables
are both accepted.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, Union

from apichain.exceptions import PluginError, TransportError
from apichain.plugins.base import ApiPluginBase, defines_hook
from apichain.plugins.hooks import (
    ConnectContext,
    RequestContext,
    ResponseContext,
    ShortCircuit,
)

logger = logging.getLogger(__name__)

Send = Callable[[RequestContext], Awaitable[ResponseContext]]


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class PluginChain:
    """Executes plugin hooks over a fixed, ordered plugin snapshot.

    The chain never re-reads any registry. Plugins added or removed while a
    call is in flight are only seen by chains created afterwards.

    Args:
        plugins: Plugins in request-phase order.
    """

    def __init__(self, plugins: Iterable[ApiPluginBase]) -> None:
        self._plugins: tuple[ApiPluginBase, ...] = tuple(plugins)

    @property
    def plugins(self) -> tuple[ApiPluginBase, ...]:
        """The snapshot in request-phase order."""
        return self._plugins

    def __len__(self) -> int:
        return len(self._plugins)

    # ------------------------------------------------------------------
    # Full call
    # ------------------------------------------------------------------

    async def execute(self, ctx: RequestContext, send: Send) -> ResponseContext:
        """Run *ctx* through request phase, transport, and response/error phase.

        Args:
            ctx: The request as built by the protocol.
            send: Coroutine performing the transport call.

        Returns:
            The final response context, coming from the transport, from a
            short-circuit, or from an ``on_error`` recovery.

        Raises:
            TransportError: The last (possibly plugin-replaced) error when no
                ``on_error`` hook recovered.
            PluginError: When a hook returns a value of the wrong type.
        """
        result = await self.run_request(ctx)

        if isinstance(result, ShortCircuit):
            response = result.response
            if not isinstance(response, ResponseContext):
                raise PluginError(
                    f"Short-circuit for {ctx.method} {ctx.url} must carry a "
                    f"ResponseContext, got {type(response).__name__}"
                )
            logger.debug("Short-circuited %s %s", ctx.method, ctx.url)
            return await self.run_response(response)

        try:
            response = await send(result)
        except TransportError as exc:
            failure: TransportError = exc
        else:
            return await self.run_response(response)

        outcome = await self.run_error(failure, ctx)
        if isinstance(outcome, ResponseContext):
            logger.debug("Recovered %s %s from %s", ctx.method, ctx.url, type(failure).__name__)
            return outcome
        if outcome is failure:
            raise failure
        raise outcome from failure

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def run_request(
        self, ctx: RequestContext
    ) -> Union[RequestContext, ShortCircuit[Any]]:
        """Run ``on_request`` hooks forward until one short-circuits.

        Returns:
            The final request context, or the first :class:`ShortCircuit`.
        """
        current = ctx
        for plugin in self._plugins:
            if not defines_hook(plugin, "on_request"):
                continue
            result = await _resolve(plugin.on_request(current))
            if isinstance(result, ShortCircuit):
                return result
            if not isinstance(result, RequestContext):
                raise PluginError(
                    f"{plugin.name}.on_request returned {type(result).__name__}, "
                    "expected RequestContext or ShortCircuit"
                )
            current = result
        return current

    async def run_response(self, ctx: ResponseContext) -> ResponseContext:
        """Run ``on_response`` hooks in reverse order."""
        current = ctx
        for plugin in reversed(self._plugins):
            if not defines_hook(plugin, "on_response"):
                continue
            result = await _resolve(plugin.on_response(current))
            if not isinstance(result, ResponseContext):
                raise PluginError(
                    f"{plugin.name}.on_response returned {type(result).__name__}, "
                    "expected ResponseContext"
                )
            current = result
        return current

    async def run_error(
        self, error: BaseException, ctx: RequestContext
    ) -> Union[BaseException, ResponseContext]:
        """Run ``on_error`` hooks in reverse order.

        Args:
            error: The transport failure.
            ctx: The request context the call started with.

        Returns:
            A :class:`ResponseContext` as soon as a hook recovers, otherwise
            the error left after the last hook.
        """
        current = error
        for plugin in reversed(self._plugins):
            if not defines_hook(plugin, "on_error"):
                continue
            result = await _resolve(plugin.on_error(current, ctx))
            if isinstance(result, ResponseContext):
                return result
            if not isinstance(result, BaseException):
                raise PluginError(
                    f"{plugin.name}.on_error returned {type(result).__name__}, "
                    "expected an exception or ResponseContext"
                )
            current = result
        return current

    async def run_connect(
        self, ctx: ConnectContext
    ) -> Union[ConnectContext, ShortCircuit[Any]]:
        """Run ``on_connect`` hooks forward until one short-circuits."""
        current = ctx
        for plugin in self._plugins:
            if not defines_hook(plugin, "on_connect"):
                continue
            result = await _resolve(plugin.on_connect(current))
            if isinstance(result, ShortCircuit):
                return result
            if not isinstance(result, ConnectContext):
                raise PluginError(
                    f"{plugin.name}.on_connect returned {type(result).__name__}, "
                    "expected ConnectContext or ShortCircuit"
                )
            current = result
        return current

    async def run_disconnect(self, ctx: ConnectContext) -> None:
        """Run ``on_disconnect`` hooks in reverse order."""
        for plugin in reversed(self._plugins):
            if defines_hook(plugin, "on_disconnect"):
                await _resolve(plugin.on_disconnect(ctx))
