#!/usr/bin/env python3
"""Foreign key sampling: cache existing values of a referenced column"""
from decimal import Decimal

import pymysql

from random_data_load_utils import (
    debug_print, backticks, SqlType, INTEGER_TYPES, BINARY_TYPES, TEXT_TYPES, DEFAULT_SAMPLE_SIZE
)

# Fraction of rows kept by the sampling filter on tables larger than the cap
SAMPLE_SELECTIVITY = 0.3


class SamplingError(Exception):
    """Raised when the referenced table cannot be counted or scanned."""


def build_sample_query(schema, table, column, row_count, max_samples):
    """
    Build the query used to fetch candidate values.

    Small tables are read completely. Larger ones get a RAND() filter with a
    row limit so the scan stops early; the result is a rough random subset,
    not a uniform sample.
    """
    col = backticks(column)
    source = "{0}.{1}".format(backticks(schema), backticks(table))
    if row_count < max_samples:
        return "SELECT DISTINCT {0} FROM {1} WHERE {0} IS NOT NULL".format(col, source)
    return "SELECT {0} FROM {1} WHERE {0} IS NOT NULL AND RAND() <= {2} LIMIT {3}".format(
        col, source, SAMPLE_SELECTIVITY, int(max_samples))


def decode_sample(value, sql_type):
    """Convert a driver value to the Python type used for the column's literals"""
    if value is None:
        return None
    if sql_type in INTEGER_TYPES:
        return int(value)
    if sql_type == SqlType.DECIMAL:
        return value if isinstance(value, Decimal) else Decimal(str(value))
    if sql_type in (SqlType.FLOAT, SqlType.DOUBLE):
        return float(value)
    if sql_type in BINARY_TYPES:
        return bytes(value) if isinstance(value, (bytes, bytearray)) else str(value).encode("utf-8")
    if sql_type in TEXT_TYPES or sql_type in (SqlType.ENUM, SqlType.SET, SqlType.JSON):
        if isinstance(value, (bytes, bytearray)):
            return bytes(value).decode("utf-8", "replace")
        return str(value)
    return value


def get_samples(conn, schema, table, column, max_samples=DEFAULT_SAMPLE_SIZE, sql_type=None):
    """
    Sample existing values of a referenced column.

    Args:
        conn: PyMySQL connection
        schema: Referenced schema
        table: Referenced table
        column: Referenced column
        max_samples: Upper bound on the number of values returned
        sql_type: SqlType of the referencing column, used to decode values

    Returns:
        List of decoded values; empty when the referenced table has no rows

    Raises:
        SamplingError: if the count or the scan query fails
    """
    cur = conn.cursor()
    count_query = "SELECT COUNT(*) FROM {0}.{1}".format(backticks(schema), backticks(table))
    try:
        cur.execute(count_query)
        row = cur.fetchone()
    except pymysql.MySQLError as e:
        raise SamplingError("cannot get count for table {0}.{1}: {2}".format(schema, table, e))
    row_count = int(row[0]) if row else 0

    query = build_sample_query(schema, table, column, row_count, max_samples)
    try:
        cur.execute(query)
        rows = cur.fetchall()
    except pymysql.MySQLError as e:
        raise SamplingError("cannot get samples: {0}: {1}".format(query, e))

    values = [decode_sample(r[0], sql_type) for r in rows[:max_samples]]
    debug_print("Sampled {0} values from {1}.{2}.{3} ({4} rows)".format(
        len(values), schema, table, column, row_count))
    return values
