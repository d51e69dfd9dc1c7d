"""
pgleasePy - pooled PostgreSQL connections on top of psycopg

Provides:
- Connection leases with a lazily opened session handle
- Prepared statement caching per session handle
- Bulk COPY import/export and table level insert/update/delete
- Explicit transactions bound to a single raw handle
- A thread safe connection pool with idle eviction
"""

from ._version import __version__

from .connection import (
    Connection,
)

from .pool import (
    ConnectionManager,
    ConnectionPool,
    new_pool,
    new_pool_from_env,
)

from .helper.database import (
    DatabaseConfiguration,
    PsycopgConnector,
)

from .helper.error import (
    PgleaseError,
    DbConnectionError,
    QueryError,
    TransactionError,
    PoolError,
)

from .model.connection_state import (
    ConnectionState,
)

# Import submodules for direct access
from . import core
from . import helper
from . import model

__all__ = [
    # Core classes
    "Connection",
    "ConnectionManager",
    "ConnectionPool",
    "new_pool",
    "new_pool_from_env",
    # Configuration and driver
    "DatabaseConfiguration",
    "PsycopgConnector",
    # Models
    "ConnectionState",
    # Exceptions
    "PgleaseError",
    "DbConnectionError",
    "QueryError",
    "TransactionError",
    "PoolError",
    # Submodules
    "core",
    "helper",
    "model",
    # Version info
    "__version__",
]
