"""Process-wide cache for the single database connection handle.

The application factory builds one ``ConnectionCache`` and every request
handler obtains its handle through it. Establishment happens lazily on the
first ``get_connection()`` call, and concurrent first callers share the same
in-flight attempt, so the connector runs at most once per established
connection.

States::

    uninitialized --get_connection()--> establishing --ok--> established
                                             |
                                             +--error--> uninitialized

``close()`` returns an established cache to ``uninitialized``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import urlsplit

from tasklist.core.config import Settings
from tasklist.core.exceptions import ConfigurationError, ConnectionError

logger = logging.getLogger(__name__)

Connector = Callable[[str, Settings], Awaitable[Any]]


def connector_for(uri: str) -> Connector:
    """Pick the connector for a connection string by its scheme."""
    scheme = urlsplit(uri).scheme.lower()
    if scheme == "memory":
        from tasklist.db.memory import connect_memory

        return connect_memory
    if scheme in ("mongodb", "mongodb+srv"):
        from tasklist.db.mongo import connect_mongo

        return connect_mongo
    raise ConfigurationError(f"Unsupported connection string scheme: {scheme or uri!r}")


def _redact(uri: str) -> str:
    # netloc may list several hosts (replica sets), so only strip credentials
    parts = urlsplit(uri)
    hosts = parts.netloc.rsplit("@", 1)[-1]
    return f"{parts.scheme}://{hosts}{parts.path}"


class ConnectionCache:
    """
    Lazily established, shared database connection.

    Args:
        settings: Source of the connection string, read on first use.
        connector: Coroutine function ``(uri, settings) -> handle``. When
            omitted, it is chosen from the connection string scheme.
    """

    def __init__(self, settings: Settings, connector: Optional[Connector] = None):
        self._settings = settings
        self._connector = connector
        self._connection: Any = None
        self._pending: Optional[asyncio.Future] = None
        self.connect_calls = 0

    @property
    def connection(self) -> Any:
        """The established handle, or None. Never starts establishment."""
        return self._connection

    @property
    def is_established(self) -> bool:
        return self._connection is not None

    async def get_connection(self) -> Any:
        """
        Return the shared connection handle, establishing it if needed.

        Raises:
            ConfigurationError: No connection string is configured. Raised
                before any connection attempt is made.
            ConnectionError: The establishment attempt failed. A later call
                starts a fresh attempt.
        """
        if self._connection is not None:
            return self._connection

        if self._pending is None:
            uri = (self._settings.mongodb_uri or "").strip()
            if not uri:
                raise ConfigurationError("MONGODB_URI is not configured")
            connector = self._connector or connector_for(uri)
            self._pending = asyncio.ensure_future(self._establish(connector, uri))

        # Shielded so a cancelled caller does not cancel the attempt for the others
        return await asyncio.shield(self._pending)

    async def _establish(self, connector: Connector, uri: str) -> Any:
        self.connect_calls += 1
        logger.info("Connecting to %s", _redact(uri))
        try:
            handle = await connector(uri, self._settings)
        except ConnectionError:
            logger.error("Database connection to %s failed", _redact(uri))
            self._pending = None
            raise
        except Exception as e:
            logger.error("Database connection to %s failed: %s", _redact(uri), e)
            self._pending = None
            raise ConnectionError(f"Could not connect to {_redact(uri)}: {e}") from e

        self._connection = handle
        self._pending = None
        logger.info("Database connection established")
        return handle

    async def close(self) -> None:
        """Close the cached handle, if any, and reset to uninitialized."""
        pending, self._pending = self._pending, None
        if pending is not None and not pending.done():
            pending.cancel()

        connection, self._connection = self._connection, None
        if connection is not None:
            await connection.close()
            logger.info("Database connection closed")
