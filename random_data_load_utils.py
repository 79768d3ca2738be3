#!/usr/bin/env python3
"""Utility functions and data structures for random data loading"""
import enum
import json
import sys
from collections import namedtuple
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from pymysql.constants import SERVER_STATUS
from pymysql.converters import escape_string

GLOBALS = {"debug": False}

# Percentage of values a nullable column receives as NULL
NULL_FREQUENCY = 10

# Number of existing values cached for each foreign key column
DEFAULT_SAMPLE_SIZE = 100

DEFAULT_BULK_SIZE = 1000
DEFAULT_MAX_RETRIES = 10

ONE_YEAR_SECONDS = 60 * 60 * 24 * 365


def debug_print(*args, **kwargs):
    if GLOBALS["debug"]:
        print("[DEBUG]", *args, file=sys.stderr, **kwargs)


class SqlType(enum.Enum):
    """MySQL data types the loader knows how to generate values for."""

    TINYINT = "tinyint"
    SMALLINT = "smallint"
    MEDIUMINT = "mediumint"
    INT = "int"
    BIGINT = "bigint"
    FLOAT = "float"
    DECIMAL = "decimal"
    DOUBLE = "double"
    CHAR = "char"
    VARCHAR = "varchar"
    BINARY = "binary"
    VARBINARY = "varbinary"
    TINYBLOB = "tinyblob"
    BLOB = "blob"
    MEDIUMBLOB = "mediumblob"
    LONGBLOB = "longblob"
    TINYTEXT = "tinytext"
    TEXT = "text"
    MEDIUMTEXT = "mediumtext"
    LONGTEXT = "longtext"
    DATE = "date"
    DATETIME = "datetime"
    TIMESTAMP = "timestamp"
    TIME = "time"
    YEAR = "year"
    ENUM = "enum"
    SET = "set"
    JSON = "json"

    @classmethod
    def from_data_type(cls, data_type):
        """Map an information_schema DATA_TYPE to a member, or None if unsupported."""
        name = (data_type or "").strip().lower()
        name = _TYPE_ALIASES.get(name, name)
        try:
            return cls(name)
        except ValueError:
            return None


_TYPE_ALIASES = {
    "integer": "int",
    "numeric": "decimal",
    "real": "double",
}

INTEGER_TYPES = frozenset([SqlType.TINYINT, SqlType.SMALLINT, SqlType.MEDIUMINT,
                           SqlType.INT, SqlType.BIGINT, SqlType.YEAR])
DECIMAL_TYPES = frozenset([SqlType.FLOAT, SqlType.DECIMAL, SqlType.DOUBLE])
TEXT_TYPES = frozenset([SqlType.CHAR, SqlType.VARCHAR, SqlType.TINYTEXT, SqlType.TEXT,
                        SqlType.MEDIUMTEXT, SqlType.LONGTEXT, SqlType.TINYBLOB,
                        SqlType.BLOB, SqlType.MEDIUMBLOB, SqlType.LONGBLOB])
BINARY_TYPES = frozenset([SqlType.BINARY, SqlType.VARBINARY])


ForeignKeyRef = namedtuple("ForeignKeyRef", ["constraint_name", "column_name", "referenced_schema",
                                             "referenced_table", "referenced_column"])
IndexMeta = namedtuple("IndexMeta", ["name", "unique", "columns"])
TriggerMeta = namedtuple("TriggerMeta", ["name", "event", "timing", "statement"])
TableMeta = namedtuple("TableMeta", ["schema", "name", "columns", "indexes", "foreign_keys", "triggers"])


class ColumnMeta(namedtuple("ColumnMeta", ["name", "data_type", "is_nullable", "column_type",
                                           "column_key", "extra", "char_max_length",
                                           "numeric_precision", "numeric_scale",
                                           "enum_values", "foreign_key"])):
    """One column of the target table, as read from information_schema."""

    __slots__ = ()

    @property
    def sql_type(self):
        return SqlType.from_data_type(self.data_type)

    @property
    def is_auto_increment_pk(self):
        return (not self.is_nullable and self.column_key == "PRI"
                and "auto_increment" in (self.extra or "").lower())

    @property
    def integer_digits(self):
        precision = int(self.numeric_precision or 0)
        scale = int(self.numeric_scale or 0)
        return max(0, precision - scale)


def make_column(name, data_type, is_nullable=True, column_type=None, column_key="", extra="",
                char_max_length=None, numeric_precision=None, numeric_scale=None,
                enum_values=(), foreign_key=None):
    """Build a ColumnMeta with defaults for everything but name and type."""
    return ColumnMeta(name, data_type, is_nullable, column_type or data_type, column_key, extra,
                      char_max_length, numeric_precision, numeric_scale, tuple(enum_values),
                      foreign_key)


def backticks(name):
    return "`" + str(name).replace("`", "``") + "`"


def session_no_backslash_escapes(conn):
    """True when the session runs with sql_mode NO_BACKSLASH_ESCAPES"""
    status = getattr(conn, "server_status", 0) or 0
    return bool(status & SERVER_STATUS.SERVER_STATUS_NO_BACKSLASH_ESCAPES)


def quote_string(value, no_backslash_escapes=False):
    if no_backslash_escapes:
        return "'" + value.replace("'", "''") + "'"
    return "'" + escape_string(value) + "'"


def _fraction(microseconds):
    return ".{0:06d}".format(microseconds) if microseconds else ""


def sql_literal(value, no_backslash_escapes=False):
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, Decimal)):
        return str(value)
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, str):
        return quote_string(value, no_backslash_escapes)
    if isinstance(value, (bytes, bytearray)):
        return "X'" + bytes(value).hex() + "'"
    if isinstance(value, datetime):
        return "'" + value.strftime("%Y-%m-%d %H:%M:%S") + _fraction(value.microsecond) + "'"
    if isinstance(value, date):
        return "'" + value.strftime("%Y-%m-%d") + "'"
    if isinstance(value, time):
        return "'" + value.strftime("%H:%M:%S") + _fraction(value.microsecond) + "'"
    if isinstance(value, timedelta):
        total = (value.days * 86400 + value.seconds) * 1000000 + value.microseconds
        sign = "-" if total < 0 else ""
        secs, micros = divmod(abs(total), 1000000)
        return "'{0}{1:02d}:{2:02d}:{3:02d}{4}'".format(
            sign, secs // 3600, (secs % 3600) // 60, secs % 60, _fraction(micros))
    if isinstance(value, (dict, list)):
        return sql_literal(json.dumps(value), no_backslash_escapes)
    return sql_literal(str(value), no_backslash_escapes)


def render_insert_statement(schema, table, colnames, rows_literals, ignore=True):
    """Render one multi-row INSERT from rows whose values are already SQL literals"""
    if not rows_literals:
        return ""
    cols = ",".join(backticks(c) for c in colnames)
    vals = ",\n".join("(" + ", ".join(rl) + ")" for rl in rows_literals)
    return "INSERT {0}INTO {1}.{2} ({3}) VALUES\n{4}".format(
        "IGNORE " if ignore else "", backticks(schema), backticks(table), cols, vals)
