"""REST protocol -- request/response calls over :mod:`httpx` with a plugin chain.

:class:`RestProtocol` turns verb calls (``get``, ``post``, ...) into a
:class:`~apichain.plugins.hooks.RequestContext`, runs it through a
:class:`~apichain.plugins.chain.PluginChain` built from
:meth:`~apichain.protocols.base.ApiProtocol.get_plugins_in_order`, and
performs the HTTP call with :class:`httpx.AsyncClient` unless a plugin
short-circuits.

Transport failures are mapped to the :class:`~apichain.exceptions.TransportError`
family so that ``on_error`` hooks see typed errors:

* network, timeout, redirect-loop and decoding errors become :class:`~apichain.exceptions.ConnectionError_`,
* 401/403 become :class:`~apichain.exceptions.AuthError`,
* 404 becomes :class:`~apichain.exceptions.NotFoundError`,
* 5xx become :class:`~apichain.exceptions.ServerError`,
* any other status >= 400 becomes :class:`~apichain.exceptions.HttpStatusError`.

Retries, pooling and caching are left to httpx. Pass a long-lived
``client`` to share a connection pool across calls; otherwise a client is
opened per call. ``transport`` is forwarded to that per-call client, which
is how tests plug in :class:`httpx.MockTransport`.

Example::

    rest = RestProtocol()
    service = AccountsService(ApiServiceConfig(base_url="https://api.example.com"), rest)
    users = await rest.get("/users")
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from apichain.exceptions import (
    AuthError,
    ConnectionError_,
    HttpStatusError,
    NotFoundError,
    ServerError,
)
from apichain.models import RestProtocolConfig
from apichain.plugins.chain import PluginChain
from apichain.plugins.hooks import RequestContext, ResponseContext
from apichain.protocols.base import ApiProtocol


class RestProtocol(ApiProtocol):
    """REST API communication with plugin support.

    Args:
        config: REST-specific settings (default Content-Type, redirects).
        client: Optional externally owned :class:`httpx.AsyncClient`. The
            protocol never closes it.
        transport: Optional transport for the per-call client. Ignored when
            *client* is given.
    """

    def __init__(
        self,
        config: Optional[RestProtocolConfig] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__()
        self.rest_config = config or RestProtocolConfig()
        self._client = client
        self._transport = transport

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    async def get(self, url: str, params: Optional[dict[str, Any]] = None) -> Any:
        """Send a GET request and return the response data."""
        return await self.request("GET", url, params=params)

    async def post(self, url: str, data: Any = None) -> Any:
        """Send a POST request with a JSON body and return the response data."""
        return await self.request("POST", url, data=data)

    async def put(self, url: str, data: Any = None) -> Any:
        """Send a PUT request with a JSON body and return the response data."""
        return await self.request("PUT", url, data=data)

    async def patch(self, url: str, data: Any = None) -> Any:
        """Send a PATCH request with a JSON body and return the response data."""
        return await self.request("PATCH", url, data=data)

    async def delete(self, url: str) -> Any:
        """Send a DELETE request and return the response data."""
        return await self.request("DELETE", url)

    async def request(
        self,
        method: str,
        url: str,
        *,
        data: Any = None,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        """Run one call through the plugin chain and return the response data.

        See :meth:`fetch` for arguments and errors.
        """
        response = await self.fetch(method, url, data=data, params=params, headers=headers)
        return response.data

    async def fetch(
        self,
        method: str,
        url: str,
        *,
        data: Any = None,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> ResponseContext:
        """Run one call through the plugin chain and return the full response.

        Args:
            method: HTTP method (GET, POST, PUT, PATCH, DELETE).
            url: Path relative to the service base URL, or an absolute URL.
            data: JSON-serialisable body. ``str``/``bytes`` are sent raw.
            params: Query parameters.
            headers: Extra request headers, applied over the service defaults.

        Returns:
            The final :class:`ResponseContext` after the response phase, a
            short-circuit, or an ``on_error`` recovery.

        Raises:
            ConfigurationError: If the protocol is not initialized. Raised
                before any plugin runs.
            TransportError: If the call failed and no plugin recovered.
        """
        config = self.service_config
        merged_headers: dict[str, str] = {"Content-Type": self.rest_config.content_type}
        merged_headers.update(config.headers)
        merged_headers.update(headers or {})

        ctx = RequestContext(
            method=method.upper(),
            url=url,
            headers=merged_headers,
            params=params or {},
            body=data,
        )
        chain = PluginChain(self.get_plugins_in_order())
        return await chain.execute(ctx, self._send)

    # ------------------------------------------------------------------ #
    # Transport
    # ------------------------------------------------------------------ #

    async def _send(self, ctx: RequestContext) -> ResponseContext:
        """Perform the HTTP call for the final request context."""
        if self._client is not None:
            return await self._send_with(self._client, ctx)

        async with httpx.AsyncClient(
            timeout=self.service_config.timeout,
            follow_redirects=self.rest_config.follow_redirects,
            transport=self._transport,
        ) as client:
            return await self._send_with(client, ctx)

    async def _send_with(self, client: httpx.AsyncClient, ctx: RequestContext) -> ResponseContext:
        kwargs: dict[str, Any] = {
            "method": ctx.method,
            "url": self._build_url(ctx.url),
            "headers": dict(ctx.headers),
        }
        if ctx.params:
            kwargs["params"] = dict(ctx.params)
        if isinstance(ctx.body, (str, bytes)):
            kwargs["content"] = ctx.body
        elif ctx.body is not None:
            kwargs["json"] = ctx.body

        try:
            response = await client.request(**kwargs)
        except httpx.RequestError as exc:
            raise ConnectionError_(f"{ctx.method} {ctx.url} failed: {exc}") from exc

        result = ResponseContext(
            status=response.status_code,
            headers=dict(response.headers),
            data=extract_response_data(response),
        )
        raise_for_status(ctx, result)
        return result


def extract_response_data(response: httpx.Response) -> Any:
    """Extract the body from an HTTP response.

    Attempts to parse the body as JSON first. If that fails (e.g. the
    response is HTML or plain text), returns the raw text. Returns ``None``
    for responses with no content.
    """
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def raise_for_status(ctx: RequestContext, response: ResponseContext) -> None:
    """Raise a typed :class:`HttpStatusError` for error status codes."""
    status = response.status
    if status < 400:
        return

    detail = response.data
    if isinstance(detail, dict):
        msg = detail.get("message") or detail.get("error") or detail.get("detail") or ""
    elif detail is None:
        msg = ""
    else:
        msg = str(detail)[:200]

    prefix = f"HTTP {status} for {ctx.method} {ctx.url}"
    full_msg = f"{prefix}: {msg}" if msg else prefix

    error_cls: type[HttpStatusError]
    if status in (401, 403):
        error_cls = AuthError
    elif status == 404:
        error_cls = NotFoundError
    elif status >= 500:
        error_cls = ServerError
    else:
        error_cls = HttpStatusError
    raise error_cls(full_msg, response=response)
