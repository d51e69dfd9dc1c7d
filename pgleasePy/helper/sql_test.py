"""
Test cases for SQL composition helpers.
"""

import hashlib
import unittest

from .sql import (
    build_copy_from,
    build_copy_to,
    build_deallocate,
    build_delete,
    build_execute,
    build_insert,
    build_prepare,
    build_update,
    build_where,
    normalize_query,
    statement_name,
    table_identifier,
)


class TestStatementNames(unittest.TestCase):
    """Test cases for query normalization and statement naming."""

    def test_normalize_query(self):
        """Test only surrounding whitespace is trimmed."""
        self.assertEqual(
            normalize_query("  SELECT *\n\tFROM t   WHERE id = $1 "),
            "SELECT *\n\tFROM t   WHERE id = $1",
        )

    def test_statement_name_keeps_literal_whitespace(self):
        """Test literals differing only in inner whitespace get different names."""
        self.assertNotEqual(
            statement_name("SELECT $1::text || 'a  b'"),
            statement_name("SELECT $1::text || 'a b'"),
        )

    def test_statement_name_is_md5_of_normalized_text(self):
        """Test the name is the prefixed md5 of the normalized query."""
        query = "SELECT * FROM t WHERE id=$1"
        expected = "query_" + hashlib.md5(query.encode("utf-8")).hexdigest()

        self.assertEqual(statement_name(query), expected)
        self.assertEqual(statement_name(f"\n {query}\n"), expected)

    def test_statement_name_differs_per_query(self):
        """Test different queries get different names."""
        self.assertNotEqual(
            statement_name("SELECT $1::int"), statement_name("SELECT $1::text")
        )


class TestStatementBuilders(unittest.TestCase):
    """Test cases for statement builders."""

    def test_table_identifier(self):
        """Test plain and schema qualified table names."""
        self.assertEqual(table_identifier("orders").as_string(), '"orders"')
        self.assertEqual(
            table_identifier("sales.orders").as_string(), '"sales"."orders"'
        )

    def test_table_identifier_empty(self):
        """Test an empty table name is rejected."""
        with self.assertRaises(ValueError):
            table_identifier("")

    def test_prepare_execute_deallocate(self):
        """Test prepared statement management statements."""
        self.assertEqual(
            build_prepare("query_abc", "SELECT * FROM t WHERE id = $1").as_string(),
            'PREPARE "query_abc" AS SELECT * FROM t WHERE id = $1',
        )
        self.assertEqual(
            build_execute("query_abc", [5, "x"]).as_string(),
            "EXECUTE \"query_abc\" (5, 'x')",
        )
        self.assertEqual(
            build_deallocate("query_abc").as_string(), 'DEALLOCATE "query_abc"'
        )

    def test_copy_statements(self):
        """Test COPY statements for export and import."""
        copy_to = build_copy_to("orders", "|", "NULL").as_string()
        copy_from = build_copy_from("orders", ",", "NULL").as_string()

        self.assertEqual(
            copy_to,
            "COPY \"orders\" TO STDOUT (FORMAT text, DELIMITER '|', NULL 'NULL')",
        )
        self.assertEqual(
            copy_from,
            "COPY \"orders\" FROM STDIN (FORMAT text, DELIMITER ',', NULL 'NULL')",
        )

    def test_insert(self):
        """Test INSERT with placeholders in column order."""
        statement, params = build_insert("orders", {"id": 1, "name": "a"})

        self.assertEqual(
            statement.as_string(),
            'INSERT INTO "orders" ("id", "name") VALUES (%s, %s)',
        )
        self.assertEqual(params, [1, "a"])

    def test_insert_empty(self):
        """Test INSERT without data is rejected."""
        with self.assertRaises(ValueError):
            build_insert("orders", {})

    def test_where_with_null(self):
        """Test None criteria render as IS NULL without a parameter."""
        clause, params = build_where({"id": 1, "deleted_at": None})

        self.assertEqual(
            clause.as_string(), ' WHERE "id" = %s AND "deleted_at" IS NULL'
        )
        self.assertEqual(params, [1])

    def test_update(self):
        """Test UPDATE parameters are set values followed by criteria."""
        statement, params = build_update("orders", {"name": "b"}, {"id": 1})

        self.assertEqual(
            statement.as_string(), 'UPDATE "orders" SET "name" = %s WHERE "id" = %s'
        )
        self.assertEqual(params, ["b", 1])

    def test_update_requires_criteria(self):
        """Test UPDATE without criteria is rejected."""
        with self.assertRaises(ValueError):
            build_update("orders", {"name": "b"}, {})

    def test_delete(self):
        """Test DELETE with criteria."""
        statement, params = build_delete("sales.orders", {"id": 1})

        self.assertEqual(
            statement.as_string(), 'DELETE FROM "sales"."orders" WHERE "id" = %s'
        )
        self.assertEqual(params, [1])

    def test_delete_requires_criteria(self):
        """Test DELETE without criteria is rejected."""
        with self.assertRaises(ValueError):
            build_delete("orders", {})


if __name__ == "__main__":
    unittest.main()
