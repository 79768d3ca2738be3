#!/usr/bin/env python3
"""MySQL connections shared by the insert workers"""
import queue
import threading
from contextlib import contextmanager

import pymysql

from random_data_load_utils import debug_print


def connect_mysql(params):
    """
    Open an autocommit connection for the given ConnectionParams.

    The session time zone is set to UTC so random timestamps never land in
    a daylight saving gap.
    """
    kwargs = {
        "user": params.user,
        "password": params.password or "",
        "charset": "utf8mb4",
        "autocommit": True,
    }
    if params.socket:
        kwargs["unix_socket"] = params.socket
    else:
        kwargs["host"] = params.host
        kwargs["port"] = params.port
    if params.database:
        kwargs["database"] = params.database

    conn = pymysql.connect(**kwargs)
    try:
        with conn.cursor() as cur:
            cur.execute("SET @@session.time_zone = '+00:00'")
    except pymysql.MySQLError:
        conn.close()
        raise
    return conn


class ConnectionPool(object):
    """
    Fixed-size pool of PyMySQL connections.

    A PyMySQL connection must not be used by two threads at once, so each
    statement borrows a connection for its duration. Connections are opened
    lazily, up to `size`.
    """

    def __init__(self, params, size=1, connect=connect_mysql):
        self.params = params
        self.size = max(1, int(size))
        self._connect = connect
        self._idle = queue.Queue()
        self._opened = 0
        self._lock = threading.Lock()
        self._all = []

    def _acquire(self):
        try:
            return self._idle.get_nowait()
        except queue.Empty:
            pass
        with self._lock:
            if self._opened < self.size:
                self._opened += 1
                try:
                    conn = self._connect(self.params)
                except Exception:
                    self._opened -= 1
                    raise
                self._all.append(conn)
                debug_print("Opened connection {0}/{1}".format(self._opened, self.size))
                return conn
        return self._idle.get()

    @contextmanager
    def connection(self):
        conn = self._acquire()
        try:
            yield conn
        except pymysql.OperationalError:
            # The connection may be gone; open a fresh one next time.
            self._discard(conn)
            raise
        except BaseException:
            self._idle.put(conn)
            raise
        else:
            self._idle.put(conn)

    def _discard(self, conn):
        with self._lock:
            if conn in self._all:
                self._all.remove(conn)
                self._opened -= 1
        try:
            conn.close()
        except pymysql.MySQLError as e:
            debug_print("Error closing connection: {0}".format(e))

    def execute(self, sql):
        """Run one statement and return the number of affected rows"""
        with self.connection() as conn:
            with conn.cursor() as cur:
                return cur.execute(sql)

    def close(self):
        with self._lock:
            for conn in self._all:
                try:
                    conn.close()
                except pymysql.MySQLError as e:
                    debug_print("Error closing connection: {0}".format(e))
            self._all = []
            self._opened = 0
        self._idle = queue.Queue()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
