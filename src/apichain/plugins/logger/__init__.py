"""Request logging plugin.

See Also:
    :class:`~apichain.plugins.logger.plugin.LoggingPlugin`
"""

from apichain.plugins.logger.plugin import LoggingPlugin

__all__ = ["LoggingPlugin"]
