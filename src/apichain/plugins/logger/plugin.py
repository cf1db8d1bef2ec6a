"""Passthrough plugin that logs every call it sees."""

from __future__ import annotations

import logging
from typing import Optional

from apichain.plugins.base import ApiPluginBase
from apichain.plugins.hooks import RequestContext, ResponseContext


class LoggingPlugin(ApiPluginBase):
    """Log method, URL, status and failures without changing anything.

    Args:
        logger: Logger to write to. Defaults to ``apichain.requests``.
        level: Level used for request/response lines.
    """

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        level: int = logging.INFO,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self._logger = logger or logging.getLogger("apichain.requests")
        self._level = level

    def on_request(self, ctx: RequestContext) -> RequestContext:
        self._logger.log(self._level, "-> %s %s", ctx.method, ctx.url)
        return ctx

    def on_response(self, ctx: ResponseContext) -> ResponseContext:
        self._logger.log(self._level, "<- %s", ctx.status)
        return ctx

    def on_error(self, error: Exception, ctx: RequestContext) -> Exception:
        self._logger.warning("!! %s %s: %s", ctx.method, ctx.url, error)
        return error
