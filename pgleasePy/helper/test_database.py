"""
Database test utilities for pgleasePy.
Integration tests run against the PostgreSQL configured by the PGLEASE_DB_* variables.
Without PGLEASE_DB_HOST a PostgreSQL container is started through testcontainers
(the "containers" extra); tests are skipped when neither is available.
"""

import os
import unittest
import uuid

import psutil
import psycopg

try:
    from testcontainers.postgres import PostgresContainer
except ImportError:
    PostgresContainer = None

from ..pool import ConnectionPool
from .database import DatabaseConfiguration
from .logging import get_logger


logger = get_logger()

POSTGRES_IMAGE = "postgres:16-alpine"


def open_backend_sockets(config: DatabaseConfiguration) -> int:
    """Count TCP sockets this process holds to the configured server port."""
    process = psutil.Process(os.getpid())
    return len(
        [
            c
            for c in process.net_connections(kind="tcp")
            if c.raddr and c.raddr.port == int(config.port)
        ]
    )


class DatabaseTestMixin:
    """
    Mixin class for test cases that need a live PostgreSQL server.
    Each test gets a fresh pool, a leased connection and a uniquely named table.
    """

    container = None

    @classmethod
    def setup_database_class(cls):
        """Load the configuration, starting a container if no server is configured."""
        if os.getenv("PGLEASE_DB_HOST"):
            cls.db_config = DatabaseConfiguration.from_env()
        else:
            cls.db_config = cls._start_container()

        try:
            psycopg.connect(cls.db_config.connection_string(), autocommit=True).close()
        except psycopg.Error as e:
            cls.teardown_database_class()
            raise unittest.SkipTest(f"PostgreSQL not reachable: {e}")

    @classmethod
    def _start_container(cls) -> DatabaseConfiguration:
        if PostgresContainer is None:
            raise unittest.SkipTest(
                "PGLEASE_DB_HOST not set and testcontainers is not installed"
            )

        container = PostgresContainer(
            POSTGRES_IMAGE,
            username="test_user",
            password="test_password",
            dbname="test_db",
        )
        try:
            container.start()
        except Exception as e:
            raise unittest.SkipTest(f"PostgreSQL container did not start: {e}")
        cls.container = container

        return DatabaseConfiguration(
            host=container.get_container_host_ip(),
            port=int(container.get_exposed_port(5432)),
            user="test_user",
            password="test_password",
            database="test_db",
            sslmode="disable",
        )

    @classmethod
    def teardown_database_class(cls):
        """Stop the container started for the class, if any."""
        container, cls.container = cls.container, None
        if container is not None:
            container.stop()

    def setup_database(self):
        """Lease a connection and create a scratch table."""
        self.pool = ConnectionPool(self.db_config, max_active=2)
        self.connection = self.pool.get_connection()
        self.table = f"pglease_{uuid.uuid4().hex[:12]}"
        self.connection.execute_query(
            f"CREATE TABLE {self.table} (id integer PRIMARY KEY, name text)"
        )
        self._initial_sockets = open_backend_sockets(self.db_config)

    def teardown_database(self):
        """Drop the scratch table and close everything."""
        try:
            if self.connection.in_transaction():
                self.connection.rollback()
            self.connection.execute_query(f"DROP TABLE IF EXISTS {self.table}")
        finally:
            self.connection.release(force=True)
            self.pool.close()

        try:
            logger.debug(
                "Test cleanup",
                sockets_before=self._initial_sockets,
                sockets_after=open_backend_sockets(self.db_config),
            )
        except psutil.Error:
            logger.warning("Socket diagnostics not available")
