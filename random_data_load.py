#!/usr/bin/env python3
"""Load random rows into an existing MySQL table"""
import argparse
import random
import sys
from getpass import getpass

from tqdm import tqdm

from bulk_insert import default_concurrency, load_rows
from connection_pool import ConnectionPool
from dsn import resolve_connection_params
from table_parser import parse_table
from value_getters import build_row_template
from random_data_load_utils import (
    GLOBALS, debug_print, DEFAULT_BULK_SIZE, DEFAULT_MAX_RETRIES, DEFAULT_SAMPLE_SIZE,
    NULL_FREQUENCY
)


def non_negative_int(value):
    n = int(value)
    if n < 0:
        raise argparse.ArgumentTypeError("must be >= 0, got {0}".format(value))
    return n


def percentage(value):
    n = int(value)
    if not 0 <= n <= 100:
        raise argparse.ArgumentTypeError("must be between 0 and 100, got {0}".format(value))
    return n


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Load random data into a MySQL table")
    p.add_argument("--dsn", default=None,
                   help="Percona-toolkit style DSN, e.g. h=127.0.0.1,P=3306,u=root,D=db,t=tbl")
    p.add_argument("-D", "--database", default=None, help="Database name")
    p.add_argument("-t", "--table", default=None, help="Table name")
    p.add_argument("-H", "--host", default=None, help="MySQL host (default: 127.0.0.1)")
    p.add_argument("-P", "--port", type=int, default=None, help="MySQL port (default: 3306)")
    p.add_argument("-u", "--user", default=None, help="MySQL user")
    p.add_argument("-p", "--password", default=None, help="MySQL password")
    p.add_argument("-S", "--socket", default=None, help="MySQL unix socket")
    p.add_argument("--ask-pass", action="store_true", help="Prompt for password")
    p.add_argument("--config-file", default=None, help="MySQL option file (default: ~/.my.cnf)")
    p.add_argument("--rows", type=non_negative_int, required=True, help="Number of rows to insert")
    p.add_argument("--bulk-size", type=int, default=DEFAULT_BULK_SIZE,
                   help="Rows per INSERT statement (default: {0})".format(DEFAULT_BULK_SIZE))
    p.add_argument("--max-threads", type=int, default=None,
                   help="Concurrent INSERT statements (default: CPU count)")
    p.add_argument("--max-retries", type=non_negative_int, default=DEFAULT_MAX_RETRIES,
                   help="Passes allowed to make up rows lost to duplicates (default: {0})".format(
                       DEFAULT_MAX_RETRIES))
    p.add_argument("--sample-size", type=int, default=DEFAULT_SAMPLE_SIZE,
                   help="Values sampled per foreign key (default: {0})".format(DEFAULT_SAMPLE_SIZE))
    p.add_argument("--null-frequency", type=percentage, default=NULL_FREQUENCY,
                   help="Percentage of NULLs in nullable columns (default: {0})".format(NULL_FREQUENCY))
    p.add_argument("--seed", type=int, default=None, help="Random seed")
    p.add_argument("--dry-run", action="store_true", help="Print the INSERT statements instead of running them")
    p.add_argument("--quiet", action="store_true", help="Do not show the progress bar")
    p.add_argument("--debug", action="store_true", help="Enable debug output")
    return p.parse_args(argv)


def report_triggers(table):
    if not table.triggers:
        return
    print("WARNING: table {0}.{1} has triggers, the inserted rows count might differ "
          "from the rows actually written".format(table.schema, table.name), file=sys.stderr)
    for trg in table.triggers:
        print("  {0} {1} {2}".format(trg.name, trg.timing, trg.event), file=sys.stderr)
        print("    Statement: {0}".format(trg.statement), file=sys.stderr)


def report_excluded(report):
    skipped = []
    for outcome in report.excluded:
        debug_print("Skipping {0}: {1}".format(outcome.column.name, outcome.reason))
        if not outcome.column.is_auto_increment_pk:
            skipped.append(outcome.column.name)
    if skipped:
        print("WARNING: {0} column(s) will use their default values: {1}".format(
            len(skipped), ", ".join(skipped)), file=sys.stderr)


def run(args):
    """
    Load the requested rows.

    Returns:
        LoadResult
    """
    params = resolve_connection_params(
        dsn=args.dsn, config_file=args.config_file, host=args.host, port=args.port,
        user=args.user, password=args.password, socket=args.socket,
        database=args.database, table=args.table,
    )
    if args.ask_pass and not params.password:
        params = params._replace(password=getpass("Password for {0}@{1}: ".format(
            params.user, params.socket or params.host)))

    concurrency = max(1, args.max_threads or default_concurrency())
    pool = ConnectionPool(params, size=concurrency)
    try:
        with pool.connection() as conn:
            table = parse_table(conn, params.database, params.table)
            report_triggers(table)
            template, report = build_row_template(
                conn, table, rng=random.Random(args.seed), sample_size=args.sample_size,
                null_frequency=args.null_frequency)
        report_excluded(report)
        if not len(template):
            print("WARNING: no insertable columns in {0}.{1}".format(table.schema, table.name),
                  file=sys.stderr)

        with tqdm(total=args.rows, unit="rows", disable=args.quiet or args.dry_run,
                  file=sys.stderr) as bar:
            result = load_rows(pool, template, args.rows, bulk_size=args.bulk_size,
                               concurrency=concurrency, max_retries=args.max_retries,
                               progress=bar, dry_run=args.dry_run)
    finally:
        pool.close()
    return result


def main(argv=None):
    args = parse_args(argv)
    GLOBALS["debug"] = args.debug
    try:
        result = run(args)
    except Exception as e:
        print("Error: {0}".format(e), file=sys.stderr)
        if GLOBALS["debug"]:
            import traceback
            traceback.print_exc()
        sys.exit(1)

    print("Total rows inserted: {0}".format(result.inserted), file=sys.stderr)
    for err in result.errors:
        print("Error: {0}".format(err), file=sys.stderr)


if __name__ == "__main__":
    main()
