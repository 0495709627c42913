"""Broker connection lifecycle.

One ``ConnectionManager`` per process owns the AMQP connection, the single
channel shared by publishing and consuming, and the shared topic exchange.
Publisher and Subscriber borrow the channel and exchange through it; nothing
else ever creates or replaces them.

Connecting follows a bounded retry policy: the initial attempt plus
``max_retries`` retries, separated by a fixed delay. Exhausting the policy is
fatal and terminates the process; the services never run without event
connectivity.

An unexpected connection loss, or a channel closed by the broker while the
connection stays open, leads to a fresh connection and channel followed by
the registered reconnect hooks. A stale connection is closed before the new
one is opened.

```python
manager = ConnectionManager.from_settings(get_settings())
channel = await manager.connect()   # idempotent
...
await manager.close()
```
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any
from urllib.parse import urlsplit

import aio_pika
from aio_pika import ExchangeType
from aio_pika.abc import AbstractChannel, AbstractConnection, AbstractExchange
from loguru import logger
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt, wait_fixed

from social_backend.settings import Settings

from .core import BrokerConnectionError

ConnectFactory = Callable[[str], Awaitable[AbstractConnection]]
ReconnectHook = Callable[[], Awaitable[None]]
Sleep = Callable[[float], Awaitable[None]]


class ConnectionState(StrEnum):
    """Lifecycle states of the broker connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed-delay, bounded retry policy for connecting to the broker.

    Attributes:
        max_retries: Retries allowed after the initial attempt.
        delay: Seconds to wait between two attempts.
    """

    max_retries: int = 10
    delay: float = 5.0

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(max_retries=settings.max_reconnect_attempts, delay=settings.reconnect_delay)


@dataclass(frozen=True)
class ConnectResult:
    """Outcome of one bounded connect sequence."""

    connected: bool
    attempts: int
    error: BaseException | None = None


def _broker_location(url: str) -> str:
    """Host and port of a broker URL, without credentials, for log lines."""
    parts = urlsplit(url)
    return f"{parts.hostname}:{parts.port or 5672}{parts.path or '/'}"


class ConnectionManager:
    """Owns the broker connection, channel and exchange for one process."""

    def __init__(
        self,
        url: str,
        exchange_name: str = "domain_events",
        *,
        exchange_durable: bool = False,
        retry_policy: RetryPolicy | None = None,
        publisher_confirms: bool = False,
        prefetch_count: int = 10,
        connect_factory: ConnectFactory = aio_pika.connect,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Initialize the manager; no network activity happens until ``connect``.

        Args:
            url: AMQP URL of the broker.
            exchange_name: Name of the shared topic exchange.
            exchange_durable: Whether the exchange survives broker restarts.
            retry_policy: Bounded retry policy, defaults to 10 retries every 5 seconds.
            publisher_confirms: Open the channel in confirm mode.
            prefetch_count: Maximum unacknowledged deliveries for this channel.
            connect_factory: Coroutine opening a connection, ``aio_pika.connect`` by default.
            sleep: Coroutine used to wait between attempts.
        """
        self._url = url
        self._exchange_name = exchange_name
        self._exchange_durable = exchange_durable
        self._retry_policy = retry_policy or RetryPolicy()
        self._publisher_confirms = publisher_confirms
        self._prefetch_count = prefetch_count
        self._connect_factory = connect_factory
        self._sleep = sleep

        self._state = ConnectionState.DISCONNECTED
        self._connection: AbstractConnection | None = None
        self._channel: AbstractChannel | None = None
        self._exchange: AbstractExchange | None = None
        self._connect_lock = asyncio.Lock()
        self._reconnect_hooks: list[ReconnectHook] = []
        self._reconnect_task: asyncio.Task | None = None
        self._closing = False

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "ConnectionManager":
        """Build a manager from application settings."""
        return cls(
            settings.rabbitmq_url,
            settings.exchange_name,
            exchange_durable=settings.exchange_durable,
            retry_policy=RetryPolicy.from_settings(settings),
            publisher_confirms=settings.publisher_confirms,
            prefetch_count=settings.prefetch_count,
            **kwargs,
        )

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED and self._channel is not None and not self._channel.is_closed

    @property
    def exchange_name(self) -> str:
        return self._exchange_name

    @property
    def exchange_durable(self) -> bool:
        return self._exchange_durable

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    @property
    def channel(self) -> AbstractChannel | None:
        """The live channel, or None while disconnected."""
        return self._channel

    @property
    def exchange(self) -> AbstractExchange | None:
        """The declared topic exchange, or None while disconnected."""
        return self._exchange

    def add_reconnect_hook(self, hook: ReconnectHook) -> None:
        """Register a coroutine to run after the connection was re-established."""
        self._reconnect_hooks.append(hook)

    async def connect(self) -> AbstractChannel:
        """Return the shared channel, connecting first if needed.

        Concurrent callers wait for the same connect sequence instead of
        opening connections of their own.

        Raises:
            SystemExit: If the retry policy is exhausted.
        """
        if self.is_connected:
            return self._channel  # type: ignore[return-value]

        async with self._connect_lock:
            if self.is_connected:
                return self._channel  # type: ignore[return-value]

            await self._discard_stale_connection()
            result = await self._connect_with_retry()
            if not result.connected:
                self._state = ConnectionState.FAILED
                logger.critical(
                    f"Giving up on broker {_broker_location(self._url)} after {result.attempts} attempts "
                    f"({result.error}); exiting"
                )
                raise SystemExit(1)

            logger.info(f"Connected to broker {_broker_location(self._url)} (attempt {result.attempts})")
            return self._channel  # type: ignore[return-value]

    async def close(self) -> None:
        """Close the channel and connection and return to the disconnected state."""
        self._closing = True
        try:
            if self._reconnect_task is not None and not self._reconnect_task.done():
                self._reconnect_task.cancel()
            self._reconnect_task = None

            if self._channel is not None and not self._channel.is_closed:
                await self._channel.close()
            if self._connection is not None and not self._connection.is_closed:
                await self._connection.close()
            if self._connection is not None:
                logger.info("Broker connection closed")
        finally:
            self._reset(ConnectionState.DISCONNECTED)
            self._closing = False

    async def _connect_with_retry(self) -> ConnectResult:
        """Run the bounded connect loop and report how it ended."""
        self._state = ConnectionState.CONNECTING
        attempts = 0
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._retry_policy.max_attempts),
            wait=wait_fixed(self._retry_policy.delay),
            retry=retry_if_exception_type(Exception),
            before_sleep=self._log_failed_attempt,
            sleep=self._sleep,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    await self._open()
        except Exception as e:  # noqa: BLE001
            logger.error(f"Broker connection attempt {attempts} failed: {e}")
            return ConnectResult(connected=False, attempts=attempts, error=e)

        self._state = ConnectionState.CONNECTED
        return ConnectResult(connected=True, attempts=attempts)

    async def _open(self) -> None:
        """Open connection and channel, then declare the exchange."""
        try:
            connection = await self._connect_factory(self._url)
        except Exception as e:
            raise BrokerConnectionError(f"Cannot reach broker at {_broker_location(self._url)}: {e}") from e

        try:
            channel = await connection.channel(publisher_confirms=self._publisher_confirms)
            await channel.set_qos(prefetch_count=self._prefetch_count)
            # Redeclaring an existing exchange with the same arguments is a no-op on the broker
            exchange = await channel.declare_exchange(
                self._exchange_name,
                ExchangeType.TOPIC,
                durable=self._exchange_durable,
            )
        except Exception:
            await connection.close()
            raise

        connection.close_callbacks.add(self._on_connection_closed)
        channel.close_callbacks.add(self._on_channel_closed)
        self._connection = connection
        self._channel = channel
        self._exchange = exchange
        logger.debug(f"Declared topic exchange '{self._exchange_name}' (durable={self._exchange_durable})")

    def _log_failed_attempt(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.error(
            f"Broker connection attempt {retry_state.attempt_number}/{self._retry_policy.max_attempts} failed: {error}; "
            f"retrying in {self._retry_policy.delay}s"
        )

    def _on_connection_closed(self, _sender: Any, exc: BaseException | None = None) -> None:
        """Connection close callback; schedules a reconnect on unexpected loss."""
        if self._closing:
            return

        logger.warning(f"Broker connection lost: {exc}")
        self._reset(ConnectionState.DISCONNECTED)
        self._schedule_reconnect()

    def _on_channel_closed(self, sender: Any, exc: BaseException | None = None) -> None:
        """Channel close callback; a channel closed by the broker under an open connection is replaced."""
        if self._closing or sender is not self._channel:
            return
        if self._connection is None or self._connection.is_closed:
            # Connection loss, handled by the connection callback
            return

        logger.warning(f"Broker channel closed: {exc}")
        self._state = ConnectionState.DISCONNECTED
        if self._reconnect_task is None or self._reconnect_task.done():
            self._schedule_reconnect(delay=self._retry_policy.delay)

    def _schedule_reconnect(self, delay: float = 0.0) -> None:
        self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect(delay))

    async def _discard_stale_connection(self) -> None:
        """Close a connection whose channel died, without treating it as a connection loss."""
        connection = self._connection
        if connection is None:
            return

        self._reset(ConnectionState.DISCONNECTED)
        connection.close_callbacks.discard(self._on_connection_closed)
        if not connection.is_closed:
            try:
                await connection.close()
            except Exception as e:  # noqa: BLE001
                logger.warning(f"Closing stale broker connection failed: {e}")

    async def _reconnect(self, delay: float = 0.0) -> None:
        if delay:
            await self._sleep(delay)
        await self.connect()
        for hook in self._reconnect_hooks:
            try:
                await hook()
            except Exception as e:  # noqa: BLE001
                logger.error(f"Reconnect hook {hook} failed: {e}")

    def _reset(self, state: ConnectionState) -> None:
        self._connection = None
        self._channel = None
        self._exchange = None
        self._state = state
