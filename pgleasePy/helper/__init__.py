"""
Helper package for pgleasePy.
Provides configuration, the psycopg connector, SQL composition, errors and logging.
"""

from .error import (
    PgleaseError,
    DbConnectionError,
    QueryError,
    TransactionError,
    PoolError,
)

from .database import (
    DatabaseConfiguration,
    PsycopgConnector,
)

from .sql import (
    normalize_query,
    statement_name,
    table_identifier,
)

from .logging import (
    PgleaseLogger,
    ColorFormatter,
    get_logger,
    setup_logging,
)

__all__ = [
    # Error handling
    "PgleaseError",
    "DbConnectionError",
    "QueryError",
    "TransactionError",
    "PoolError",
    # Database utilities
    "DatabaseConfiguration",
    "PsycopgConnector",
    # SQL utilities
    "normalize_query",
    "statement_name",
    "table_identifier",
    # Logging utilities
    "PgleaseLogger",
    "ColorFormatter",
    "get_logger",
    "setup_logging",
]
