#!/usr/bin/env python3
"""Table introspection: columns, indexes, foreign keys and triggers from information_schema"""
from random_data_load_patterns import parse_enum_values
from random_data_load_utils import (
    debug_print, ColumnMeta, ForeignKeyRef, IndexMeta, TableMeta, TriggerMeta, SqlType
)


class TableNotFoundError(Exception):
    """The table does not exist or has no visible columns."""


def load_table_columns(conn, schema, table):
    """Load column metadata from information_schema, in declaration order"""
    cur = conn.cursor()
    cur.execute(
        "SELECT COLUMN_NAME, DATA_TYPE, IS_NULLABLE, COLUMN_TYPE, "
        "COLUMN_KEY, EXTRA, CHARACTER_MAXIMUM_LENGTH, NUMERIC_PRECISION, "
        "NUMERIC_SCALE FROM information_schema.COLUMNS "
        "WHERE TABLE_SCHEMA=%s AND TABLE_NAME=%s ORDER BY ORDINAL_POSITION",
        (schema, table)
    )
    columns = []
    for (name, data_type, is_nullable, column_type, column_key, extra,
         char_max_length, numeric_precision, numeric_scale) in cur.fetchall():
        data_type = (data_type or "").lower()
        enum_values = ()
        if SqlType.from_data_type(data_type) in (SqlType.ENUM, SqlType.SET):
            enum_values = tuple(parse_enum_values(column_type))
        columns.append(ColumnMeta(
            name, data_type, str(is_nullable).upper() == "YES", column_type or data_type,
            column_key or "", extra or "",
            int(char_max_length) if char_max_length is not None else None,
            int(numeric_precision) if numeric_precision is not None else None,
            int(numeric_scale) if numeric_scale is not None else None,
            enum_values, None,
        ))
    return columns


def load_indexes(conn, schema, table):
    """Load indexes with their columns in index order"""
    cur = conn.cursor()
    cur.execute(
        "SELECT INDEX_NAME, NON_UNIQUE, COLUMN_NAME, SEQ_IN_INDEX FROM information_schema.STATISTICS "
        "WHERE TABLE_SCHEMA=%s AND TABLE_NAME=%s "
        "ORDER BY INDEX_NAME, SEQ_IN_INDEX",
        (schema, table)
    )
    indexes = {}
    unique = {}
    for idx_name, non_unique, col_name, seq in cur.fetchall():
        indexes.setdefault(idx_name, []).append(col_name)
        unique[idx_name] = int(non_unique) == 0
    return [IndexMeta(n, unique[n], tuple(cols)) for n, cols in indexes.items()]


def load_foreign_keys(conn, schema, table):
    """Load the foreign key references of each column"""
    cur = conn.cursor()
    cur.execute(
        "SELECT CONSTRAINT_NAME, COLUMN_NAME, REFERENCED_TABLE_SCHEMA, "
        "REFERENCED_TABLE_NAME, REFERENCED_COLUMN_NAME "
        "FROM information_schema.KEY_COLUMN_USAGE "
        "WHERE TABLE_SCHEMA=%s AND TABLE_NAME=%s AND REFERENCED_TABLE_NAME IS NOT NULL "
        "ORDER BY CONSTRAINT_NAME, ORDINAL_POSITION",
        (schema, table)
    )
    return [ForeignKeyRef(*r) for r in cur.fetchall()]


def load_triggers(conn, schema, table):
    """Load the triggers defined on the table"""
    cur = conn.cursor()
    cur.execute(
        "SELECT TRIGGER_NAME, EVENT_MANIPULATION, ACTION_TIMING, ACTION_STATEMENT "
        "FROM information_schema.TRIGGERS "
        "WHERE EVENT_OBJECT_SCHEMA=%s AND EVENT_OBJECT_TABLE=%s "
        "ORDER BY TRIGGER_NAME",
        (schema, table)
    )
    return [TriggerMeta(*r) for r in cur.fetchall()]


def parse_table(conn, schema, table):
    """
    Read the structure of schema.table.

    Each column carries its foreign key reference, if any. A column that is
    part of several foreign keys keeps the first one by constraint name.

    Args:
        conn: PyMySQL connection
        schema: Database name
        table: Table name

    Returns:
        TableMeta

    Raises:
        TableNotFoundError: if information_schema has no columns for the table
    """
    columns = load_table_columns(conn, schema, table)
    if not columns:
        raise TableNotFoundError("table {0}.{1} doesn't exist".format(schema, table))

    foreign_keys = load_foreign_keys(conn, schema, table)
    by_column = {}
    for fk in foreign_keys:
        by_column.setdefault(fk.column_name, fk)
    columns = [c._replace(foreign_key=by_column.get(c.name)) for c in columns]

    indexes = load_indexes(conn, schema, table)
    triggers = load_triggers(conn, schema, table)
    debug_print("{0}.{1}: {2} columns, {3} indexes, {4} foreign keys, {5} triggers".format(
        schema, table, len(columns), len(indexes), len(foreign_keys), len(triggers)))
    return TableMeta(schema, table, columns, indexes, foreign_keys, triggers)
