"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~apichain.exceptions.ApichainError` subclass. The
``apichain`` console script exits with these codes so shell wrappers can
tell a rejected credential from a dead network without parsing stderr.

Example::

    $ apichain request GET /users --base-url https://api.example.com
    $ echo $?
    4   # EXIT_NOT_FOUND -- the API answered 404
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_AUTH_FAILURE = 3
"""The API rejected the request with 401 or 403."""

EXIT_NOT_FOUND = 4
"""The requested resource was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The remote API returned an HTTP 5xx server error."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_CONFIGURATION_ERROR = 7
"""A protocol or service was wired incorrectly, or a config file is invalid."""

EXIT_PLUGIN_ERROR = 10
"""A plugin hook returned a value the chain cannot use."""
