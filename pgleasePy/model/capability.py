"""
Capabilities a Connection depends on.
The driver side is implemented by helper.database.PsycopgConnector,
the pool side by pool.ConnectionPool and pool.ConnectionManager.
"""

from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    runtime_checkable,
)

if TYPE_CHECKING:
    from ..connection import Connection
    from ..helper.database import DatabaseConfiguration


@runtime_checkable
class SessionDriver(Protocol):
    """Long-lived session handle operations used for ordinary queries."""

    def connect(self, config: "DatabaseConfiguration") -> Any: ...

    def query(self, session: Any, query: str) -> Any: ...

    def prepare(self, session: Any, name: str, query: str) -> None: ...

    def execute(self, session: Any, name: str, bindings: Sequence[Any]) -> Any: ...

    def deallocate(self, session: Any, name: str) -> None: ...

    def fetch_all(self, result: Any) -> Optional[List[Dict[str, Any]]]: ...

    def close(self, session: Any) -> None: ...


@runtime_checkable
class RawDriver(Protocol):
    """Operation-scoped raw handle operations used for bulk, raw SQL and transactions."""

    def raw_connect(self, config: "DatabaseConfiguration") -> Any: ...

    def raw_close(self, raw: Any) -> None: ...

    def copy_to(self, raw: Any, table_name: str, delimiter: str, null_as: str) -> Any: ...

    def copy_from(
        self,
        raw: Any,
        table_name: str,
        rows: Sequence[str],
        delimiter: str,
        null_as: str,
    ) -> bool: ...

    def insert(self, raw: Any, table_name: str, data: Mapping[str, Any]) -> int: ...

    def update(
        self,
        raw: Any,
        table_name: str,
        data: Mapping[str, Any],
        where: Mapping[str, Any],
    ) -> int: ...

    def delete(self, raw: Any, table_name: str, where: Mapping[str, Any]) -> int: ...

    def raw_query(self, raw: Any, query: str) -> Any: ...

    def affected_rows(self, result: Any) -> int: ...

    def command_status(self, result: Any) -> Optional[str]: ...

    def fetch_assoc(self, result: Any) -> Optional[Dict[str, Any]]: ...


@runtime_checkable
class Connector(SessionDriver, RawDriver, Protocol):
    """A driver offering both handle kinds."""


class Pool(Protocol):
    """Pool side of a connection lease."""

    def get_connection_id(self) -> int: ...

    def release(self, connection: "Connection", force: bool = False) -> None: ...


class Manager(Protocol):
    """Tracks leased connection ids."""

    def release_connection(self, connection_id: int) -> None: ...
