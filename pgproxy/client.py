"""
asyncpg remote client.

This module adapts an asyncpg connection or pool to the RemoteClient
interface used by the synchronization engine.
"""

import asyncio
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

import asyncpg
from asyncpg.pool import Pool

from pgproxy.base import NotificationCallback, RemoteClient, RemoteExecutionError
from pgproxy.utils.logging import get_logger

logger = get_logger(__name__)

DRIVER_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


class AsyncpgClient(RemoteClient):
    """Remote client backed by asyncpg.

    With a pool, queries acquire a connection each; notifications are
    received on one connection held for as long as any listener is attached.
    """

    def __init__(self, connection: Union[asyncpg.Connection, Pool]):
        """Initialize the client.

        Args:
            connection: An open asyncpg connection or pool
        """
        self.connection = connection
        self.listen_connection: Optional[asyncpg.Connection] = None
        self.listeners: Dict[Tuple[str, NotificationCallback], Callable[..., None]] = {}
        self.lock = asyncio.Lock()

    @property
    def is_pool(self) -> bool:
        return isinstance(self.connection, Pool)

    async def fetch(self, query: str, *params: Any) -> List[Mapping[str, Any]]:
        """Execute a query on the database and return all rows."""
        try:
            if self.is_pool:
                async with self.connection.acquire() as conn:
                    rows = await conn.fetch(query, *params)
            else:
                rows = await self.connection.fetch(query, *params)
        except DRIVER_ERRORS as e:
            logger.error(f"Failed to execute query on PostgreSQL database, error: {e}")
            raise RemoteExecutionError(f"Failed to execute query: {e}") from e
        return list(rows)

    async def execute(self, query: str, *params: Any) -> None:
        """Execute a command on the database."""
        try:
            if self.is_pool:
                async with self.connection.acquire() as conn:
                    await conn.execute(query, *params)
            else:
                await self.connection.execute(query, *params)
        except DRIVER_ERRORS as e:
            logger.error(f"Failed to execute command on PostgreSQL database, error: {e}")
            raise RemoteExecutionError(f"Failed to execute command: {e}") from e

    async def subscribe(self, topic: str, callback: NotificationCallback) -> None:
        """LISTEN on a channel and forward notifications to the callback."""
        def listener(connection, pid, channel, payload):
            callback(channel, payload)

        async with self.lock:
            if (topic, callback) in self.listeners:
                return
            try:
                conn = await self._get_listen_connection()
                await conn.add_listener(topic, listener)
            except DRIVER_ERRORS as e:
                if not self.listeners:
                    await self._release_listen_connection()
                logger.error(f"Failed to listen on channel {topic}, error: {e}")
                raise RemoteExecutionError(f"Failed to listen on channel {topic}: {e}") from e
            self.listeners[(topic, callback)] = listener
            logger.debug(f"Listening on channel {topic}")

    async def unsubscribe(self, topic: str, callback: NotificationCallback) -> None:
        """Detach a callback from a channel."""
        async with self.lock:
            listener = self.listeners.pop((topic, callback), None)
            if listener is None or self.listen_connection is None:
                return
            try:
                if not self.listen_connection.is_closed():
                    await self.listen_connection.remove_listener(topic, listener)
            except DRIVER_ERRORS as e:
                logger.error(f"Failed to stop listening on channel {topic}, error: {e}")
                raise RemoteExecutionError(f"Failed to stop listening on channel {topic}: {e}") from e
            finally:
                if not self.listeners:
                    await self._release_listen_connection()
            logger.debug(f"Stopped listening on channel {topic}")

    async def _get_listen_connection(self) -> asyncpg.Connection:
        if self.listen_connection is None:
            if self.is_pool:
                self.listen_connection = await self.connection.acquire()
            else:
                self.listen_connection = self.connection
        return self.listen_connection

    async def _release_listen_connection(self) -> None:
        conn, self.listen_connection = self.listen_connection, None
        if conn is not None and self.is_pool:
            await self.connection.release(conn)

    def __str__(self) -> str:
        kind = "pool" if self.is_pool else "connection"
        return f"{self.__class__.__name__}({kind}, listeners={len(self.listeners)})"
