#!/usr/bin/env python3
"""Unit tests for the connection pool"""
import threading
import unittest
from unittest import mock

import pymysql

from connection_pool import ConnectionPool, connect_mysql
from dsn import ConnectionParams


class MockConnection:
    """Mock database connection recording statements"""

    def __init__(self, fail_with=None):
        self.fail_with = fail_with
        self.statements = []
        self.closed = False

    def cursor(self):
        return MockCursor(self)

    def close(self):
        self.closed = True


class MockCursor:
    """Mock database cursor usable as a context manager"""

    def __init__(self, conn):
        self.conn = conn

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, query, params=None):
        if self.conn.fail_with is not None:
            raise self.conn.fail_with
        self.conn.statements.append(query)
        return query.count("\n(")


def make_params(**kwargs):
    values = dict(host="127.0.0.1", port=3306, user="root", password="pw", database="sakila",
                  table="film", socket=None, config_file=None)
    values.update(kwargs)
    return ConnectionParams(**values)


class TestConnectionPool(unittest.TestCase):
    """Test cases for ConnectionPool"""

    def setUp(self):
        self.opened = []

    def connect(self, params):
        conn = MockConnection()
        self.opened.append(conn)
        return conn

    def test_opens_lazily_and_reuses(self):
        pool = ConnectionPool(make_params(), size=3, connect=self.connect)
        self.assertEqual(self.opened, [])
        for _ in range(5):
            pool.execute("INSERT INTO t VALUES\n(1)")
        self.assertEqual(len(self.opened), 1)
        self.assertEqual(len(self.opened[0].statements), 5)

    def test_execute_returns_affected_rows(self):
        pool = ConnectionPool(make_params(), size=1, connect=self.connect)
        self.assertEqual(pool.execute("INSERT INTO t VALUES\n(1),\n(2)"), 2)

    def test_never_exceeds_size(self):
        pool = ConnectionPool(make_params(), size=2, connect=self.connect)
        barrier = threading.Barrier(2)

        def work():
            with pool.connection():
                barrier.wait(timeout=5)

        threads = [threading.Thread(target=work) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        with pool.connection():
            pass
        self.assertEqual(len(self.opened), 2)

    def test_operational_error_discards_connection(self):
        broken = MockConnection(fail_with=pymysql.err.OperationalError(2006, "gone away"))
        conns = [broken]
        pool = ConnectionPool(make_params(), size=1,
                              connect=lambda params: conns.pop(0) if conns else self.connect(params))
        with self.assertRaises(pymysql.err.OperationalError):
            pool.execute("INSERT INTO t VALUES\n(1)")
        self.assertTrue(broken.closed)
        self.assertEqual(pool.execute("INSERT INTO t VALUES\n(1)"), 1)

    def test_integrity_error_keeps_connection(self):
        conn = MockConnection(fail_with=pymysql.err.IntegrityError(1062, "Duplicate entry"))
        pool = ConnectionPool(make_params(), size=1, connect=lambda params: conn)
        for _ in range(2):
            with self.assertRaises(pymysql.err.IntegrityError):
                pool.execute("INSERT INTO t VALUES\n(1)")
        self.assertFalse(conn.closed)

    def test_close(self):
        with ConnectionPool(make_params(), size=2, connect=self.connect) as pool:
            pool.execute("SELECT 1")
        self.assertTrue(self.opened[0].closed)


class TestConnectMysql(unittest.TestCase):
    """Test cases for connect_mysql"""

    def test_tcp_connection(self):
        conn = MockConnection()
        with mock.patch("pymysql.connect", return_value=conn) as connect:
            self.assertIs(connect_mysql(make_params()), conn)
        kwargs = connect.call_args[1]
        self.assertEqual((kwargs["host"], kwargs["port"]), ("127.0.0.1", 3306))
        self.assertTrue(kwargs["autocommit"])
        self.assertNotIn("unix_socket", kwargs)
        self.assertEqual(conn.statements, ["SET @@session.time_zone = '+00:00'"])

    def test_socket_connection(self):
        conn = MockConnection()
        with mock.patch("pymysql.connect", return_value=conn) as connect:
            connect_mysql(make_params(socket="/tmp/mysql.sock"))
        kwargs = connect.call_args[1]
        self.assertEqual(kwargs["unix_socket"], "/tmp/mysql.sock")
        self.assertNotIn("host", kwargs)

    def test_session_setup_failure_closes(self):
        conn = MockConnection(fail_with=pymysql.err.OperationalError(1298, "Unknown time zone"))
        with mock.patch("pymysql.connect", return_value=conn):
            with self.assertRaises(pymysql.MySQLError):
                connect_mysql(make_params())
        self.assertTrue(conn.closed)


if __name__ == "__main__":
    unittest.main()
