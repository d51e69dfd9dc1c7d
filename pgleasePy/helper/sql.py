"""
SQL composition helpers for pgleasePy.
Statements are built with psycopg.sql so identifiers and literals are always quoted.
"""

import hashlib
from typing import Any, List, Mapping, Sequence, Tuple

from psycopg import sql

STATEMENT_PREFIX = "query_"

BEGIN = "BEGIN"
COMMIT = "COMMIT"
ROLLBACK = "ROLLBACK"


def normalize_query(query: str) -> str:
    """
    Normalize query text for statement caching.
    Only leading and trailing whitespace is dropped. Inner whitespace can sit inside
    string literals or quoted identifiers, so it is kept as written.

    :param query: The query text.
    :returns: The normalized query text.
    """
    return query.strip()


def statement_name(query: str) -> str:
    """
    Derive a deterministic prepared statement name from the query text.

    :param query: The query text, normalized or not.
    :returns: "query_" followed by the md5 hex digest of the normalized text.
    """
    digest = hashlib.md5(normalize_query(query).encode("utf-8")).hexdigest()
    return f"{STATEMENT_PREFIX}{digest}"


def table_identifier(table_name: str) -> sql.Identifier:
    """
    Build an identifier for a table name, splitting "schema.table".

    :param table_name: Plain or schema qualified table name.
    :returns: The quoted identifier.
    :raises ValueError: If the table name is empty.
    """
    parts = [part for part in table_name.split(".") if part]
    if not parts:
        raise ValueError("Table name cannot be empty")
    return sql.Identifier(*parts)


def build_prepare(name: str, query: str) -> sql.Composed:
    return sql.SQL("PREPARE {} AS {}").format(sql.Identifier(name), sql.SQL(query))


def build_execute(name: str, bindings: Sequence[Any]) -> sql.Composed:
    """
    Build EXECUTE for a prepared statement with the bindings inlined as literals.
    EXECUTE is a utility statement, so the values cannot be sent as bind parameters.

    :param name: The prepared statement name.
    :param bindings: Positional values for $1..$n.
    :returns: The composed statement.
    """
    values = sql.SQL(", ").join(sql.Literal(value) for value in bindings)
    return sql.SQL("EXECUTE {} ({})").format(sql.Identifier(name), values)


def build_deallocate(name: str) -> sql.Composed:
    return sql.SQL("DEALLOCATE {}").format(sql.Identifier(name))


def build_copy_to(table_name: str, delimiter: str, null_as: str) -> sql.Composed:
    return sql.SQL("COPY {} TO STDOUT (FORMAT text, DELIMITER {}, NULL {})").format(
        table_identifier(table_name), sql.Literal(delimiter), sql.Literal(null_as)
    )


def build_copy_from(table_name: str, delimiter: str, null_as: str) -> sql.Composed:
    return sql.SQL("COPY {} FROM STDIN (FORMAT text, DELIMITER {}, NULL {})").format(
        table_identifier(table_name), sql.Literal(delimiter), sql.Literal(null_as)
    )


def build_where(where: Mapping[str, Any]) -> Tuple[sql.Composed, List[Any]]:
    """
    Build a WHERE clause joining the criteria with AND.
    A None value renders as IS NULL and takes no parameter.

    :param where: Column to value criteria.
    :returns: The composed clause and its parameters.
    :raises ValueError: If no criteria are given.
    """
    if not where:
        raise ValueError("Where criteria cannot be empty")

    conditions: List[sql.Composable] = []
    params: List[Any] = []
    for column, value in where.items():
        if value is None:
            conditions.append(sql.SQL("{} IS NULL").format(sql.Identifier(column)))
        else:
            conditions.append(
                sql.SQL("{} = {}").format(sql.Identifier(column), sql.Placeholder())
            )
            params.append(value)

    return sql.SQL(" WHERE ") + sql.SQL(" AND ").join(conditions), params


def build_insert(
    table_name: str, data: Mapping[str, Any]
) -> Tuple[sql.Composed, List[Any]]:
    """
    Build an INSERT for a single row.

    :param table_name: Target table.
    :param data: Column to value mapping.
    :returns: The composed statement and its parameters.
    :raises ValueError: If data is empty.
    """
    if not data:
        raise ValueError("Insert data cannot be empty")

    statement = sql.SQL("INSERT INTO {} ({}) VALUES ({})").format(
        table_identifier(table_name),
        sql.SQL(", ").join(sql.Identifier(column) for column in data),
        sql.SQL(", ").join(sql.Placeholder() for _ in data),
    )
    return statement, list(data.values())


def build_update(
    table_name: str, data: Mapping[str, Any], where: Mapping[str, Any]
) -> Tuple[sql.Composed, List[Any]]:
    """
    Build an UPDATE setting data on the rows matching where.

    :param table_name: Target table.
    :param data: Column to new value mapping.
    :param where: Column to value criteria.
    :returns: The composed statement and its parameters.
    :raises ValueError: If data or where is empty.
    """
    if not data:
        raise ValueError("Update data cannot be empty")

    assignments = sql.SQL(", ").join(
        sql.SQL("{} = {}").format(sql.Identifier(column), sql.Placeholder())
        for column in data
    )
    where_clause, where_params = build_where(where)
    statement = (
        sql.SQL("UPDATE {} SET {}").format(table_identifier(table_name), assignments)
        + where_clause
    )
    return statement, list(data.values()) + where_params


def build_delete(
    table_name: str, where: Mapping[str, Any]
) -> Tuple[sql.Composed, List[Any]]:
    where_clause, where_params = build_where(where)
    statement = (
        sql.SQL("DELETE FROM {}").format(table_identifier(table_name)) + where_clause
    )
    return statement, where_params
