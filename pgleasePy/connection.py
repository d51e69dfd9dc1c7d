"""
Pooled PostgreSQL connection.

A Connection is one lease from a ConnectionPool. It owns two kinds of handles:
- a session handle, opened lazily and reused for select/select_fetch_num,
  together with the prepared statements cached for it;
- raw handles, opened for a single bulk, raw SQL or table operation and closed
  before the call returns, or held from begin_transaction until commit/rollback.
"""

import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

from .core.statement_cache import StatementCache
from .helper.database import DatabaseConfiguration
from .helper.error import DbConnectionError, TransactionError
from .helper.logging import PgleaseLogger, get_logger
from .helper.sql import BEGIN, COMMIT, ROLLBACK, normalize_query, statement_name
from .model.capability import Connector, Manager, Pool
from .model.connection_state import ConnectionState


class Connection:
    """
    One logical lease from a pool.
    Not thread safe, the pool hands a connection to a single caller at a time.
    """

    def __init__(
        self,
        connector: Connector,
        manager: Manager,
        logger: Optional[PgleaseLogger] = None,
        statement_cache_size: int = 128,
    ):
        """
        Create an uninitialized connection.

        :param connector: Driver capability opening session and raw handles.
        :param manager: Connection manager notified when the lease is released.
        :param logger: Logger, defaults to the package logger.
        :param statement_cache_size: Maximum prepared statements kept per session handle.
        """
        self.connector = connector
        self.manager = manager
        self.logger = logger or get_logger()

        self.pool: Optional[Pool] = None
        self.config: Optional[DatabaseConfiguration] = None
        self._id: Optional[int] = None
        self.last_time: float = 0.0
        self.state: ConnectionState = ConnectionState.UNINITIALIZED

        self.session_handle: Any = None
        self.raw_handle: Any = None
        self.transaction_handle: Any = None

        self.statement_cache = StatementCache(statement_cache_size)
        self.last_error: Optional[DbConnectionError] = None

    @property
    def id(self) -> Optional[int]:
        return self._id

    # Lifecycle

    def initialize(self, pool: Pool, config: DatabaseConfiguration) -> None:
        """
        Bind the pool and configuration snapshot and take an id from the pool.
        An id, once assigned, is kept if initialize runs again.
        """
        self.pool = pool
        self.config = config
        self.last_time = time.time()

        if self._id is None:
            self._id = pool.get_connection_id()

        self.state = ConnectionState.INITIALIZED

    def create(self) -> None:
        self.create_client()

    def create_client(self, raw: bool = False) -> None:
        """
        Open a session handle, or a raw handle when raw is True.
        An existing handle of the same kind is closed and replaced.

        :param raw: Whether to open a raw handle instead of the session handle.
        :raises DbConnectionError: If the backend cannot be reached or the parameters are invalid.
        """
        if self.config is None:
            raise DbConnectionError(
                "Failed to create client",
                ValueError("Connection is not initialized"),
            )

        if raw:
            self.raw_close()
            try:
                self.raw_handle = self.connector.raw_connect(self.config)
            except Exception as e:
                raise DbConnectionError("Failed to create raw handle", e)
            return

        try:
            self._close_session()
            self.session_handle = self.connector.connect(self.config)
        except Exception as e:
            raise DbConnectionError("Failed to create session handle", e)
        self.state = ConnectionState.CONNECTED

    def _close_session(self) -> None:
        session, self.session_handle = self.session_handle, None
        self.statement_cache.clear()
        if session is not None:
            self.connector.close(session)

    def close(self) -> None:
        """Close the session handle. Raw and transaction handles are not affected."""
        self._close_session()
        self.state = ConnectionState.CLOSED

    def raw_close(self) -> None:
        raw, self.raw_handle = self.raw_handle, None
        if raw is not None:
            self.connector.raw_close(raw)

    def release(self, force: bool = False) -> None:
        """
        Give the lease back: notify the manager, then let the pool keep or discard it.
        A transaction still open at this point is rolled back first.

        :param force: Whether the pool must discard the connection.
        """
        try:
            if self.transaction_handle is not None:
                self.logger.warning(
                    "Releasing connection with an open transaction, rolling back",
                    connection_id=self._id,
                )
                self.rollback()
        finally:
            if self._id is not None:
                self.manager.release_connection(self._id)
            if self.pool is not None:
                self.pool.release(self, force)

    def reconnect(self) -> bool:
        """
        Replace the session handle.
        Failures are logged and kept in last_error instead of raised.

        :returns: True if a new session handle was opened.
        """
        try:
            self.create()
        except DbConnectionError as e:
            self.last_error = e
            self.state = ConnectionState.RECONNECT_FAILED
            self.logger.error("Pgsql reconnect error", error=e, connection_id=self._id)
            return False

        self.last_error = None
        return True

    def reconnect_if_missing_connection(self) -> None:
        """
        Make sure a session handle exists before a query runs.

        :raises DbConnectionError: If a missing session handle could not be opened.
        """
        if self.session_handle is not None:
            return

        if not self.reconnect():
            raise DbConnectionError(
                "No session handle available", self.last_error or Exception("reconnect failed")
            )

    def update_last_time(self) -> None:
        self.last_time = time.time()

    def get_last_time(self) -> float:
        return self.last_time

    # Queries on the session handle

    def _prepared_statement(self, query: str) -> str:
        """Return the name of a prepared statement for the query, preparing it on a cache miss."""
        key = normalize_query(query)
        name = self.statement_cache.get(key)
        if name is not None:
            return name

        name = statement_name(key)
        self.connector.prepare(self.session_handle, name, query)

        evicted = self.statement_cache.put(key, name)
        if evicted is not None:
            self.connector.deallocate(self.session_handle, evicted)
        return name

    def select(
        self, query: str, bindings: Optional[Sequence[Any]] = None
    ) -> List[Dict[str, Any]]:
        """
        Run a query on the session handle.
        With bindings the query runs as a prepared statement ($1..$n placeholders).

        :param query: The query text.
        :param bindings: Positional parameter values.
        :returns: The rows as column to value mappings, empty when there is no result.
        :raises QueryError: If the driver rejects the query.
        """
        self.reconnect_if_missing_connection()

        if not bindings:
            result = self.connector.query(self.session_handle, query)
        else:
            name = self._prepared_statement(query)
            result = self.connector.execute(self.session_handle, name, list(bindings))

        rows = self.connector.fetch_all(result)
        return list(rows) if rows else []

    def select_fetch_num(
        self, query: str, bindings: Optional[Sequence[Any]] = None
    ) -> List[List[Any]]:
        """Run select and keep only the values of each row, in column order."""
        return [list(row.values()) for row in self.select(query, bindings)]

    # Raw handle operations

    @contextmanager
    def _raw_scope(self) -> Iterator[Any]:
        """
        Yield the raw handle an operation runs on.
        Inside a transaction this is the transaction handle, which stays open.
        Otherwise a fresh raw handle is opened and closed on every exit path.
        """
        if self.transaction_handle is not None:
            yield self.transaction_handle
            return

        self.create_client(raw=True)
        try:
            yield self.raw_handle
        finally:
            self.raw_close()

    def copy_to(
        self, table_name: str, delimiter: str = "|", null_as: str = "\\NULL"
    ) -> List[str]:
        """
        Export a table as delimited text lines.

        :returns: The lines, empty when the export failed.
        """
        with self._raw_scope() as raw:
            result = self.connector.copy_to(raw, table_name, delimiter, null_as)
        return [] if result is False else list(result)

    def copy_from(
        self,
        table_name: str,
        rows: Sequence[str],
        delimiter: str = "|",
        null_as: str = "\\NULL",
    ) -> bool:
        """
        Import delimited text lines into a table.

        :returns: False when the import failed.
        """
        with self._raw_scope() as raw:
            return bool(
                self.connector.copy_from(raw, table_name, rows, delimiter, null_as)
            )

    def insert(self, table_name: str, data: Mapping[str, Any]) -> int:
        with self._raw_scope() as raw:
            return self.connector.insert(raw, table_name, data)

    def update(
        self, table_name: str, data: Mapping[str, Any], where: Mapping[str, Any]
    ) -> int:
        with self._raw_scope() as raw:
            return self.connector.update(raw, table_name, data, where)

    def delete(self, table_name: str, where: Mapping[str, Any]) -> int:
        with self._raw_scope() as raw:
            return self.connector.delete(raw, table_name, where)

    def execute_query(self, query: str) -> int:
        """
        Run an insert, update or delete statement given as raw SQL.

        :returns: The number of affected rows.
        """
        with self._raw_scope() as raw:
            return self.connector.affected_rows(self.connector.raw_query(raw, query))

    def select_query(self, query: str) -> Optional[Dict[str, Any]]:
        """
        Run raw SQL and return its first row.

        :returns: The first row, or None when the query returned no row.
        """
        with self._raw_scope() as raw:
            row = self.connector.fetch_assoc(self.connector.raw_query(raw, query))
        return row or None

    # Transactions

    def in_transaction(self) -> bool:
        return self.transaction_handle is not None

    def begin_transaction(self) -> None:
        """
        Open a raw handle and start a transaction on it.
        Raw operations run on this handle until commit or rollback.

        :raises TransactionError: If a transaction is already active or BEGIN fails.
        """
        if self.transaction_handle is not None:
            raise TransactionError(
                "Could not start transaction",
                RuntimeError("A transaction is already active"),
            )

        self.create_client(raw=True)
        handle, self.raw_handle = self.raw_handle, None
        try:
            self.connector.affected_rows(self.connector.raw_query(handle, BEGIN))
        except Exception as e:
            self.connector.raw_close(handle)
            raise TransactionError("Could not start transaction", e)

        self.transaction_handle = handle

    def commit(self) -> None:
        self._end_transaction(COMMIT, "commit")

    def rollback(self) -> None:
        self._end_transaction(ROLLBACK, "rollback")

    def _end_transaction(self, statement: str, action: str) -> None:
        """
        Run the terminal statement and close the transaction handle exactly once.
        A COMMIT on an aborted transaction is answered with ROLLBACK instead of an error.

        :raises TransactionError: If no transaction is active, the backend rejects the statement
            or a commit was turned into a rollback.
        """
        handle, self.transaction_handle = self.transaction_handle, None
        if handle is None:
            raise TransactionError(
                f"Transaction {action} failed",
                RuntimeError("No active transaction"),
            )

        try:
            status = self.connector.command_status(
                self.connector.raw_query(handle, statement)
            )
        except Exception as e:
            raise TransactionError(f"Transaction {action} failed", e)
        finally:
            self.connector.raw_close(handle)

        if statement == COMMIT and status == ROLLBACK:
            raise TransactionError(
                f"Transaction {action} failed",
                RuntimeError("Transaction was aborted, the server rolled it back"),
            )

    @contextmanager
    def transaction(self) -> Iterator["Connection"]:
        """
        Run a block inside a transaction.
        Commits when the block finishes, rolls back when it raises.
        """
        self.begin_transaction()
        try:
            yield self
        except BaseException:
            if self.transaction_handle is not None:
                self.rollback()
            raise

        if self.transaction_handle is not None:
            self.commit()
