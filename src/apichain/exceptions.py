"""Exception hierarchy for apichain.

All exceptions inherit from :class:`ApichainError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`apichain.exit_codes`.
The CLI entry point in :func:`apichain.app.main` catches ``ApichainError``
and exits with the matching code.

Errors raised by the transport are :class:`TransportError` instances. Only
those enter the error phase of the plugin chain, where an ``on_error`` hook
may replace them or recover with a response. Configuration mistakes are
raised synchronously, before any chain starts.

Subclass hierarchy::

    ApichainError (exit 1)
    +-- ConfigurationError      (exit 7)
    +-- PluginError             (exit 10)
    +-- TransportError          (exit 1)
        +-- ConnectionError_    (exit 6)
        +-- HttpStatusError     (exit 1)
            +-- AuthError       (exit 3)
            +-- NotFoundError   (exit 4)
            +-- ServerError     (exit 5)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from apichain.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONFIGURATION_ERROR,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_NOT_FOUND,
    EXIT_PLUGIN_ERROR,
    EXIT_SERVER_ERROR,
)

if TYPE_CHECKING:
    from apichain.plugins.hooks import ResponseContext


class ApichainError(Exception):
    """Base exception for all apichain errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`apichain.exit_codes`.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigurationError(ApichainError):
    """Raised when a protocol is used before initialization, a protocol is not
    registered on a service, or a configuration file cannot be read."""

    exit_code = EXIT_CONFIGURATION_ERROR


class PluginError(ApichainError):
    """Raised when a plugin hook returns a value the chain cannot continue with."""

    exit_code = EXIT_PLUGIN_ERROR


class TransportError(ApichainError):
    """Raised when the underlying transport call fails.

    This is the only error family that triggers the ``on_error`` phase of
    the plugin chain.
    """


class ConnectionError_(TransportError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class HttpStatusError(TransportError):
    """Raised when the server answers with a status code of 400 or above.

    Args:
        message: Human-readable error description.
        response: The response as seen by the transport, so that an
            ``on_error`` hook can inspect status, headers and body.
    """

    def __init__(self, message: str, response: Optional[ResponseContext] = None):
        super().__init__(message)
        self.response = response

    @property
    def status(self) -> int:
        """The HTTP status code, or ``0`` when no response is attached."""
        return self.response.status if self.response is not None else 0


class AuthError(HttpStatusError):
    """Raised when the API returns HTTP 401 or 403."""

    exit_code = EXIT_AUTH_FAILURE


class NotFoundError(HttpStatusError):
    """Raised when the API returns HTTP 404 (resource not found)."""

    exit_code = EXIT_NOT_FOUND


class ServerError(HttpStatusError):
    """Raised when the API returns an HTTP 5xx server error."""

    exit_code = EXIT_SERVER_ERROR
