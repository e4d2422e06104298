"""
Redis connection lifecycle for the Catalog Service.
"""

import asyncio
from typing import Callable, List, Optional

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError, RedisError, TimeoutError as RedisTimeoutError

from shared.logging import get_logger
from .availability import ConnectionEvent


Listener = Callable[[ConnectionEvent, Optional[BaseException]], None]

# Failures that mean the server is unreachable rather than a bad command.
CONNECTION_ERRORS = (RedisConnectionError, RedisTimeoutError, OSError)


class CacheConnection:
    """Owns the Redis client and publishes its lifecycle to listeners.

    ``connect`` is emitted after a successful startup connection or after the
    watcher sees the server answer again; ``error`` whenever a call reports a
    connection failure.
    """

    def __init__(
        self,
        redis_url: str,
        *,
        socket_timeout: float = 2.0,
        reconnect_interval: float = 5.0,
        client: Optional[redis.Redis] = None,
    ):
        self.redis_url = redis_url
        self.socket_timeout = socket_timeout
        self.reconnect_interval = reconnect_interval
        self.logger = get_logger("catalog.cache.connection")

        self._client = client
        self._listeners: List[Listener] = []
        self._connected = False
        self._watcher: Optional[asyncio.Task] = None

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=self.socket_timeout,
                socket_timeout=self.socket_timeout,
            )
        return self._client

    @property
    def connected(self) -> bool:
        return self._connected

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    async def start(self) -> None:
        """Attempt the startup connection and begin watching the server."""
        await self.connect()
        if self.reconnect_interval > 0 and self._watcher is None:
            self._watcher = asyncio.create_task(self._watch(), name="cache-connection-watcher")

    async def stop(self) -> None:
        if self._watcher is not None:
            self._watcher.cancel()
            try:
                await self._watcher
            except asyncio.CancelledError:
                pass
            self._watcher = None

        if self._client is not None:
            await self._client.aclose()
            self._client = None
            self.logger.info("Cache connection closed")
        self._connected = False

    async def connect(self) -> bool:
        """Explicit connection attempt; emits ``connect`` or ``error``."""
        try:
            await self.client.ping()
        except (RedisError, OSError) as e:
            self.logger.error("Cache connection failed", redis_url=self.redis_url, error=str(e))
            self.report_error(e)
            return False

        self._mark_connected()
        return True

    def report_error(self, error: BaseException) -> None:
        """Record a connection failure observed by any cache call."""
        self._connected = False
        self._emit(ConnectionEvent.ERROR, error)

    def _mark_connected(self) -> None:
        if not self._connected:
            self.logger.info("Connected to cache", redis_url=self.redis_url)
        self._connected = True
        self._emit(ConnectionEvent.CONNECT)

    async def _watch(self) -> None:
        while True:
            await asyncio.sleep(self.reconnect_interval)
            try:
                await self.client.ping()
            except (RedisError, OSError) as e:
                if self._connected:
                    self.logger.warning("Cache heartbeat failed", error=str(e))
                    self.report_error(e)
                continue
            except Exception as e:
                # Keep watching; the next tick retries
                self.logger.error("Cache heartbeat raised unexpectedly", error=str(e), exc_info=True)
                if self._connected:
                    self.report_error(e)
                continue

            if not self._connected:
                self._mark_connected()

    def _emit(self, event: ConnectionEvent, error: Optional[BaseException] = None) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, error)
            except Exception as e:
                self.logger.error("Cache listener failed", event=event.value, error=str(e))
