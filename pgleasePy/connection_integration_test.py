"""
Integration tests for Connection against a live PostgreSQL server.
"""

import unittest

from .helper.error import QueryError, TransactionError
from .helper.test_database import DatabaseTestMixin, open_backend_sockets


class TestConnectionIntegration(DatabaseTestMixin, unittest.TestCase):
    """Run the Connection API end to end."""

    @classmethod
    def setUpClass(cls):
        super().setup_database_class()

    @classmethod
    def tearDownClass(cls):
        super().teardown_database_class()

    def setUp(self):
        super().setup_database()

    def tearDown(self):
        super().teardown_database()

    def test_select(self):
        """Test plain and prepared selects."""
        self.assertEqual(self.connection.select("SELECT 1 AS a"), [{"a": 1}])
        self.assertEqual(self.connection.select_fetch_num("SELECT 1 AS a, 2 AS b"), [[1, 2]])

        query = "SELECT $1::int + 1 AS n"
        self.assertEqual(self.connection.select(query, [1]), [{"n": 2}])
        self.assertEqual(self.connection.select(query, [41]), [{"n": 42}])
        self.assertEqual(len(self.connection.statement_cache), 1)

    def test_select_without_result(self):
        """Test a statement without a result set returns an empty list."""
        self.assertEqual(self.connection.select("SET search_path TO public"), [])

    def test_select_error(self):
        """Test invalid SQL raises QueryError."""
        with self.assertRaises(QueryError):
            self.connection.select("SELEC 1")

    def test_prepared_statement_survives_eviction(self):
        """Test evicted statements are deallocated and can be prepared again."""
        self.connection.statement_cache.capacity = 1

        self.assertEqual(self.connection.select("SELECT $1::int AS a", [1]), [{"a": 1}])
        self.assertEqual(self.connection.select("SELECT $1::int AS b", [2]), [{"b": 2}])
        self.assertEqual(self.connection.select("SELECT $1::int AS a", [3]), [{"a": 3}])

    def test_table_operations(self):
        """Test insert, update, delete and select_query."""
        self.assertEqual(self.connection.insert(self.table, {"id": 1, "name": "a"}), 1)
        self.assertEqual(
            self.connection.update(self.table, {"name": "b"}, {"id": 1}), 1
        )
        self.assertEqual(
            self.connection.select_query(f"SELECT name FROM {self.table} WHERE id = 1"),
            {"name": "b"},
        )
        self.assertEqual(self.connection.delete(self.table, {"id": 1}), 1)
        self.assertIsNone(self.connection.select_query(f"SELECT name FROM {self.table}"))

    def test_copy(self):
        """Test COPY import and export."""
        self.assertTrue(self.connection.copy_from(self.table, ["1|a", "2|\\NULL"]))

        rows = self.connection.copy_to(self.table)

        self.assertEqual(sorted(rows), ["1|a", "2|\\NULL"])

    def test_copy_from_failure(self):
        """Test a malformed import returns False."""
        self.assertFalse(self.connection.copy_from(self.table, ["not-a-number|a"]))
        self.assertEqual(self.connection.copy_to(self.table), [])

    def test_transaction_commit(self):
        """Test committed rows are visible outside the transaction."""
        with self.connection.transaction():
            self.connection.insert(self.table, {"id": 1, "name": "a"})
            self.connection.execute_query(f"UPDATE {self.table} SET name = 'b'")

        self.assertEqual(
            self.connection.select(f"SELECT id, name FROM {self.table}"),
            [{"id": 1, "name": "b"}],
        )

    def test_transaction_rollback(self):
        """Test rolled back rows are discarded."""
        self.connection.begin_transaction()
        self.connection.insert(self.table, {"id": 1, "name": "a"})
        self.connection.rollback()

        self.assertEqual(self.connection.select(f"SELECT id FROM {self.table}"), [])

    def test_commit_after_failed_statement(self):
        """Test committing an aborted transaction raises and keeps nothing."""
        self.connection.begin_transaction()
        self.connection.insert(self.table, {"id": 1, "name": "a"})
        with self.assertRaises(QueryError):
            self.connection.insert(self.table, {"id": 1, "name": "b"})

        with self.assertRaises(TransactionError):
            self.connection.commit()

        self.assertFalse(self.connection.in_transaction())
        self.assertEqual(self.connection.select(f"SELECT id FROM {self.table}"), [])

    def test_commit_without_transaction(self):
        """Test commit without begin raises TransactionError."""
        with self.assertRaises(TransactionError):
            self.connection.commit()

    def test_raw_operations_do_not_leak_sockets(self):
        """Test raw handles are closed after every operation."""
        self.connection.select("SELECT 1")
        before = open_backend_sockets(self.db_config)

        for i in range(5):
            self.connection.insert(self.table, {"id": i, "name": str(i)})
            self.connection.select_query(f"SELECT count(*) AS n FROM {self.table}")

        self.assertEqual(open_backend_sockets(self.db_config), before)


if __name__ == "__main__":
    unittest.main()
