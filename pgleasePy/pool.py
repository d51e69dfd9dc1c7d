"""
Connection pool and connection manager.

The pool creates Connection objects, hands out leases, evicts idle connections
and takes released connections back. The manager keeps track of which
connection ids are currently leased.
"""

import itertools
import threading
import time
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from .connection import Connection
from .helper.database import DatabaseConfiguration, PsycopgConnector
from .helper.error import PoolError
from .helper.logging import PgleaseLogger, get_logger
from .model.capability import Connector


class ConnectionManager:
    """Tracks leased connections by id."""

    def __init__(self):
        self._connections: Dict[int, Connection] = {}
        self._lock = threading.Lock()

    def set_connection(self, connection: Connection) -> None:
        if connection.id is None:
            raise ValueError("Connection has no id, initialize it first")
        with self._lock:
            self._connections[connection.id] = connection

    def get_connection(self, connection_id: int) -> Optional[Connection]:
        with self._lock:
            return self._connections.get(connection_id)

    def release_connection(self, connection_id: int) -> None:
        with self._lock:
            self._connections.pop(connection_id, None)

    def active_count(self) -> int:
        with self._lock:
            return len(self._connections)


class ConnectionPool:
    """
    Thread safe pool of Connection leases.
    Connections are created without a session handle; it is opened on first use.
    """

    def __init__(
        self,
        config: DatabaseConfiguration,
        connector: Optional[Connector] = None,
        manager: Optional[ConnectionManager] = None,
        logger: Optional[PgleaseLogger] = None,
        min_active: int = 1,
        max_active: int = 10,
        max_wait_time: Optional[float] = None,
        max_idle_time: float = 60.0,
        statement_cache_size: int = 128,
    ):
        """
        Initialize the pool.

        :param config: Connection parameters shared by every connection.
        :param connector: Driver capability, defaults to PsycopgConnector.
        :param manager: Connection manager, a new one by default.
        :param logger: Logger, defaults to the package logger.
        :param min_active: Idle connections kept even when they exceed max_idle_time.
        :param max_active: Maximum number of connections alive at once.
        :param max_wait_time: Seconds get_connection waits for a free connection, config.timeout if None.
        :param max_idle_time: Seconds after which an idle connection is closed.
        :param statement_cache_size: Prepared statement cache size of each connection.
        :raises ValueError: If the size limits are inconsistent.
        """
        if max_active <= 0:
            raise ValueError("max_active must be positive")
        if min_active < 0 or min_active > max_active:
            raise ValueError("min_active must be between 0 and max_active")

        self.config = config
        self.connector: Connector = connector or PsycopgConnector()
        self.manager = manager or ConnectionManager()
        self.logger = (logger or get_logger()).with_context(
            database=config.database
        )
        self.min_active = min_active
        self.max_active = max_active
        self.max_wait_time = config.timeout if max_wait_time is None else max_wait_time
        self.max_idle_time = max_idle_time
        self.statement_cache_size = statement_cache_size

        self._ids = itertools.count(1)
        self._idle: List[Connection] = []
        self._count = 0
        self._lock = threading.Lock()
        self._closed = False

    def get_connection_id(self) -> int:
        with self._lock:
            return next(self._ids)

    def _create_connection(self) -> Connection:
        connection = Connection(
            self.connector,
            self.manager,
            self.logger,
            statement_cache_size=self.statement_cache_size,
        )
        connection.initialize(self, self.config)
        self.logger.debug("Created connection", connection_id=connection.id)
        return connection

    def _evict_idle(self) -> List[Connection]:
        """Remove idle connections past max_idle_time, keeping min_active. Caller holds the lock."""
        now = time.time()
        evicted: List[Connection] = []
        kept: List[Connection] = []
        for connection in self._idle:
            expired = now - connection.get_last_time() > self.max_idle_time
            if expired and len(self._idle) - len(evicted) > self.min_active:
                evicted.append(connection)
            else:
                kept.append(connection)
        self._idle = kept
        self._count -= len(evicted)
        return evicted

    def get_connection(self) -> Connection:
        """
        Lease a connection.
        Reuses an idle connection, creates a new one below max_active,
        otherwise waits up to max_wait_time polling every config.retry_interval.

        :returns: The leased connection, registered with the manager.
        :raises PoolError: If the pool is closed or no connection became free in time.
        """
        deadline = time.monotonic() + self.max_wait_time

        while True:
            connection: Optional[Connection] = None
            create = False
            with self._lock:
                if self._closed:
                    raise PoolError(
                        "Failed to get connection", RuntimeError("Pool is closed")
                    )
                evicted = self._evict_idle()
                if self._idle:
                    connection = self._idle.pop()
                elif self._count < self.max_active:
                    self._count += 1
                    create = True

            for stale in evicted:
                self.logger.debug("Evicting idle connection", connection_id=stale.id)
                stale.close()

            if create:
                try:
                    connection = self._create_connection()
                except Exception:
                    with self._lock:
                        self._count -= 1
                    raise

            if connection is not None:
                self.manager.set_connection(connection)
                return connection

            if time.monotonic() >= deadline:
                raise PoolError(
                    "Failed to get connection",
                    TimeoutError(
                        f"No connection available after {self.max_wait_time}s "
                        f"(max_active={self.max_active})"
                    ),
                )
            time.sleep(self.config.retry_interval)

    def release(self, connection: Connection, force: bool = False) -> None:
        """
        Take a connection back.
        It is closed when forced, when the pool is closed or when the idle list is full.

        :param connection: The released connection.
        :param force: Whether to discard the connection instead of keeping it.
        """
        discard = force
        with self._lock:
            if connection in self._idle:
                return
            if not discard and not self._closed and len(self._idle) < self.max_active:
                connection.update_last_time()
                self._idle.append(connection)
            else:
                discard = True
                self._count -= 1

        if discard:
            self.logger.debug("Discarding connection", connection_id=connection.id)
            connection.close()

    @contextmanager
    def connection(self, force_release: bool = False) -> Iterator[Connection]:
        """
        Lease a connection for the duration of a block and release it afterwards.

        :param force_release: Whether the connection is discarded on release.
        """
        connection = self.get_connection()
        try:
            yield connection
        finally:
            connection.release(force_release)

    def idle_count(self) -> int:
        with self._lock:
            return len(self._idle)

    def count(self) -> int:
        with self._lock:
            return self._count

    def close(self) -> None:
        """Close every idle connection. Leased connections are closed when released."""
        with self._lock:
            self._closed = True
            idle, self._idle = self._idle, []
            self._count -= len(idle)

        for connection in idle:
            connection.close()
        self.logger.info("Connection pool closed", closed=len(idle))


def new_pool(
    config: DatabaseConfiguration,
    logger: Optional[PgleaseLogger] = None,
    max_active: int = 10,
) -> ConnectionPool:
    """Create a new ConnectionPool using the psycopg connector."""
    return ConnectionPool(config, logger=logger, max_active=max_active)


def new_pool_from_env(
    logger: Optional[PgleaseLogger] = None, max_active: int = 10
) -> ConnectionPool:
    """
    Create a new ConnectionPool from environment variables.
    See DatabaseConfiguration.from_env for the variables read.
    """
    config = DatabaseConfiguration.from_env()
    return ConnectionPool(config, logger=logger, max_active=max_active)
