"""
Database configuration and the psycopg connector for pgleasePy.
The connector opens both handle kinds a Connection works with:
session handles for ordinary queries and raw handles for bulk, raw SQL and transactions.
"""

import os
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import psycopg
from psycopg import Connection, Cursor, errors
from psycopg.rows import dict_row

from .error import DbConnectionError, QueryError
from .logging import PgleaseLogger, get_logger
from .sql import (
    build_copy_from,
    build_copy_to,
    build_deallocate,
    build_delete,
    build_execute,
    build_insert,
    build_prepare,
    build_update,
)


@dataclass(frozen=True)
class DatabaseConfiguration:
    """
    Immutable snapshot of the connection parameters.
    Reused unchanged for every connect and reconnect.
    """

    host: str
    port: int
    user: str
    password: str
    database: str
    schema: str = "public"
    timeout: float = 5.0
    retry_interval: float = 0.1
    read_timeout: float = 0.0
    sslmode: str = "prefer"

    @classmethod
    def from_env(cls) -> "DatabaseConfiguration":
        """Create configuration from environment variables."""
        host = os.getenv("PGLEASE_DB_HOST", "localhost")
        port = int(os.getenv("PGLEASE_DB_PORT", "5432"))
        user = os.getenv("PGLEASE_DB_USER", "postgres")
        password = os.getenv("PGLEASE_DB_PASSWORD", "")
        database = os.getenv("PGLEASE_DB_DATABASE", "postgres")
        schema = os.getenv("PGLEASE_DB_SCHEMA", "public")
        timeout = float(os.getenv("PGLEASE_DB_TIMEOUT", "5"))
        retry_interval = float(os.getenv("PGLEASE_DB_RETRY_INTERVAL", "0.1"))
        read_timeout = float(os.getenv("PGLEASE_DB_READ_TIMEOUT", "0"))
        sslmode = os.getenv("PGLEASE_DB_SSLMODE", "prefer")

        if not all([host.strip(), user.strip(), database.strip(), schema.strip()]):
            raise ValueError(
                "Required environment variables missing: "
                "PGLEASE_DB_HOST, PGLEASE_DB_USER, PGLEASE_DB_DATABASE, "
                "PGLEASE_DB_SCHEMA must be set"
            )

        return cls(
            host=host,
            port=port,
            user=user,
            password=password,
            database=database,
            schema=schema,
            timeout=timeout,
            retry_interval=retry_interval,
            read_timeout=read_timeout,
            sslmode=sslmode,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def connection_string(self) -> str:
        """
        Get the libpq connection string.
        connect_timeout is whole seconds, statement_timeout is milliseconds (0 disables it).
        """
        options = f"-c search_path={self.schema}"
        if self.read_timeout > 0:
            options += f" -c statement_timeout={int(self.read_timeout * 1000)}"

        return (
            f"host={self.host} "
            f"port={self.port} "
            f"dbname={self.database} "
            f"user={self.user} "
            f"password={self.password} "
            f"sslmode={self.sslmode} "
            f"connect_timeout={max(1, int(self.timeout))} "
            f"application_name=pglease "
            f"options='{options}'"
        )


class PsycopgConnector:
    """
    Driver capability backed by psycopg 3.
    Both handle kinds are autocommit connections, so transaction control is
    done with explicit BEGIN/COMMIT/ROLLBACK statements.
    """

    def __init__(self, logger: Optional[PgleaseLogger] = None):
        self.logger = logger or get_logger()

    def _open(self, config: DatabaseConfiguration, kind: str) -> Connection:
        try:
            return psycopg.connect(config.connection_string(), autocommit=True)
        except psycopg.Error as e:
            raise DbConnectionError(
                f"Failed to open {kind} handle to {config.host}:{config.port}/{config.database}",
                e,
            )

    # Session handle

    def connect(self, config: DatabaseConfiguration) -> Connection:
        session = self._open(config, "session")
        self.logger.debug("Opened session handle", database=config.database)
        return session

    def query(self, session: Connection, query: str) -> Cursor:
        cursor = session.cursor(row_factory=dict_row)
        try:
            cursor.execute(query)
        except psycopg.Error as e:
            cursor.close()
            raise QueryError("Failed to run query", e)
        return cursor

    def prepare(self, session: Connection, name: str, query: str) -> None:
        """
        Prepare a named statement on the session.
        A statement already prepared under the name is left as is.
        """
        try:
            session.execute(build_prepare(name, query))
        except errors.DuplicatePreparedStatement:
            self.logger.debug("Statement already prepared", statement=name)
        except psycopg.Error as e:
            raise QueryError(f"Failed to prepare statement {name}", e)

    def execute(
        self, session: Connection, name: str, bindings: Sequence[Any]
    ) -> Cursor:
        cursor = session.cursor(row_factory=dict_row)
        try:
            cursor.execute(build_execute(name, bindings))
        except psycopg.Error as e:
            cursor.close()
            raise QueryError(f"Failed to execute statement {name}", e)
        return cursor

    def deallocate(self, session: Connection, name: str) -> None:
        try:
            session.execute(build_deallocate(name))
        except psycopg.Error as e:
            raise QueryError(f"Failed to deallocate statement {name}", e)

    def fetch_all(self, result: Cursor) -> Optional[List[Dict[str, Any]]]:
        """Fetch all rows, or None when the statement produced no result set."""
        with result:
            if result.description is None:
                return None
            return result.fetchall()

    def close(self, session: Connection) -> None:
        session.close()

    # Raw handle

    def raw_connect(self, config: DatabaseConfiguration) -> Connection:
        return self._open(config, "raw")

    def raw_close(self, raw: Connection) -> None:
        raw.close()

    def copy_to(
        self, raw: Connection, table_name: str, delimiter: str, null_as: str
    ) -> Union[List[str], bool]:
        """
        Export a table as text-format lines without the trailing newline.
        Returns False when the backend rejects the export.
        """
        lines: List[str] = []
        try:
            with raw.cursor() as cur:
                with cur.copy(build_copy_to(table_name, delimiter, null_as)) as copy:
                    for data in copy:
                        lines.append(bytes(data).decode("utf-8").rstrip("\n"))
        except psycopg.Error as e:
            self.logger.error("Copy to failed", error=e, table=table_name)
            return False
        return lines

    def copy_from(
        self,
        raw: Connection,
        table_name: str,
        rows: Sequence[str],
        delimiter: str,
        null_as: str,
    ) -> bool:
        """Import text-format lines into a table. Returns False when the backend rejects the import."""
        try:
            with raw.cursor() as cur:
                with cur.copy(build_copy_from(table_name, delimiter, null_as)) as copy:
                    for row in rows:
                        copy.write(row if row.endswith("\n") else row + "\n")
        except psycopg.Error as e:
            self.logger.error("Copy from failed", error=e, table=table_name)
            return False
        return True

    def _run(self, raw: Connection, statement: Any, params: Sequence[Any]) -> int:
        try:
            with raw.cursor() as cur:
                cur.execute(statement, params)
                return max(cur.rowcount, 0)
        except psycopg.Error as e:
            raise QueryError("Failed to run statement", e)

    def insert(
        self, raw: Connection, table_name: str, data: Mapping[str, Any]
    ) -> int:
        return self._run(raw, *build_insert(table_name, data))

    def update(
        self,
        raw: Connection,
        table_name: str,
        data: Mapping[str, Any],
        where: Mapping[str, Any],
    ) -> int:
        return self._run(raw, *build_update(table_name, data, where))

    def delete(
        self, raw: Connection, table_name: str, where: Mapping[str, Any]
    ) -> int:
        return self._run(raw, *build_delete(table_name, where))

    def raw_query(self, raw: Connection, query: str) -> Cursor:
        cursor = raw.cursor(row_factory=dict_row)
        try:
            cursor.execute(query)
        except psycopg.Error as e:
            cursor.close()
            raise QueryError("Failed to run raw query", e)
        return cursor

    def affected_rows(self, result: Cursor) -> int:
        with result:
            return max(result.rowcount, 0)

    def command_status(self, result: Cursor) -> Optional[str]:
        """Return the command tag the server sent for the statement, e.g. "COMMIT"."""
        with result:
            return result.statusmessage

    def fetch_assoc(self, result: Cursor) -> Optional[Dict[str, Any]]:
        with result:
            if result.description is None:
                return None
            return result.fetchone()
