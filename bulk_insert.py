#!/usr/bin/env python3
"""Concurrent bulk insert orchestration with shortfall retries"""
import os
import queue
import sys
import threading
from collections import namedtuple
from concurrent.futures import ThreadPoolExecutor

import pymysql

from batch_planner import plan_batches
from random_data_load_utils import (
    debug_print, render_insert_statement, DEFAULT_BULK_SIZE, DEFAULT_MAX_RETRIES
)

# Upper bound on rows generated ahead of statement assembly
ROW_QUEUE_SIZE = 10000

_DONE = object()

LoadResult = namedtuple("LoadResult", ["inserted", "errors"])


def default_concurrency():
    return max(1, os.cpu_count() or 1)


class DryRunExecutor(object):
    """Writes each statement to a text sink instead of running it"""

    def __init__(self, writer=None):
        self.writer = writer or sys.stdout
        self.statements = 0

    def execute(self, sql):
        self.writer.write(sql + ";\n")
        self.statements += 1
        return 0


class BulkInserter(object):
    """
    Runs generated rows through multi-row INSERT statements.

    Each pass has three roles running at once:
    - a producer thread generating rows into a bounded queue
    - up to `concurrency` workers executing statements
    - an aggregator thread summing the rows each statement affected

    The calling thread assembles statements from the queued rows and hands
    them to the workers, blocking on a semaphore while `concurrency`
    statements are in flight.
    """

    def __init__(self, executor, template, concurrency=None, progress=None, dry_run=False):
        """
        Args:
            executor: Object with execute(sql) returning the affected row count
            template: RowTemplate for the target table
            concurrency: Maximum statements in flight (default: CPU count)
            progress: Object with update(n), told about newly inserted rows
            dry_run: Report every rendered row as inserted; runs one statement
                at a time so the output order is stable
        """
        self.executor = executor
        self.template = template
        self.progress = progress
        self.dry_run = dry_run
        if dry_run:
            self.concurrency = 1
        else:
            self.concurrency = max(1, int(concurrency or default_concurrency()))

    def build_statement(self, rows, ignore=True):
        rendered = [self.template.render_row(r) for r in rows]
        return render_insert_statement(self.template.schema, self.template.table,
                                       self.template.column_names, rendered, ignore)

    def run(self, target_rows, bulk_size=DEFAULT_BULK_SIZE):
        """
        Insert target_rows rows: the full batches first, then the remainder.

        Returns:
            Tuple of (rows inserted, errors); rows inserted can be lower than
            target_rows when INSERT IGNORE drops duplicates or statements fail
        """
        plan = plan_batches(target_rows, bulk_size)
        debug_print("{0}.{1}: {2} statements of {3} rows, remainder {4}".format(
            self.template.schema, self.template.table, plan.full_batches,
            plan.batch_size, plan.remainder))

        inserted = 0
        errors = []
        for batches, batch_size in plan.passes():
            n, errs = self.run_pass(batches, batch_size)
            inserted += n
            errors.extend(errs)
        return inserted, errors

    def run_pass(self, batches, batch_size, ignore=True):
        """
        Generate and insert `batches` statements of `batch_size` rows each.

        Args:
            batches: Number of statements
            batch_size: Rows per statement
            ignore: Use INSERT IGNORE; without it a duplicate key is an error

        Returns:
            Tuple of (sum of rows affected, list of statement errors)
        """
        if batches < 1 or batch_size < 1:
            return 0, []

        total_rows = batches * batch_size
        rows_queue = queue.Queue(maxsize=min(ROW_QUEUE_SIZE, total_rows))
        results = queue.Queue()
        failure = []
        errors = []
        errors_lock = threading.Lock()
        totals = {"inserted": 0}
        stop = threading.Event()

        producer = threading.Thread(target=self._produce,
                                    args=(total_rows, rows_queue, failure, stop),
                                    name="row-producer", daemon=True)
        aggregator = threading.Thread(target=self._aggregate, args=(results, totals),
                                      name="result-aggregator", daemon=True)
        producer.start()
        aggregator.start()

        permits = threading.BoundedSemaphore(self.concurrency)
        futures = []
        try:
            with ThreadPoolExecutor(max_workers=self.concurrency) as pool:
                for _ in range(batches):
                    batch = []
                    while len(batch) < batch_size:
                        row = rows_queue.get()
                        if row is _DONE:
                            raise failure[0]
                        batch.append(row)
                    sql = self.build_statement(batch, ignore)
                    permits.acquire()
                    futures.append(pool.submit(self._insert, sql, len(batch), results,
                                               permits, errors, errors_lock, ignore))
            for future in futures:
                future.result()
        finally:
            stop.set()
            self._drain(producer, rows_queue)
            results.put(_DONE)
            aggregator.join()
        return totals["inserted"], errors

    def _produce(self, count, rows_queue, failure, stop):
        try:
            for _ in range(count):
                if stop.is_set():
                    return
                rows_queue.put(self.template.generate_row())
        except Exception as e:
            failure.append(e)
            rows_queue.put(_DONE)

    @staticmethod
    def _drain(producer, rows_queue):
        # The producer may be blocked on a full queue
        while producer.is_alive():
            try:
                rows_queue.get(timeout=0.1)
            except queue.Empty:
                pass
        producer.join()

    def _insert(self, sql, row_count, results, permits, errors, errors_lock, ignore):
        affected = 0
        try:
            n = self.executor.execute(sql)
            affected = row_count if self.dry_run else int(n or 0)
        except pymysql.MySQLError as e:
            with errors_lock:
                errors.append(e)
            if ignore:
                print("WARNING: cannot run insert: {0}".format(e), file=sys.stderr)
            else:
                debug_print("Cannot run insert: {0}".format(e))
        finally:
            results.put(affected)
            permits.release()

    def _aggregate(self, results, totals):
        while True:
            n = results.get()
            if n is _DONE:
                break
            totals["inserted"] += n
            if n and self.progress is not None:
                self.progress.update(n)


def ensure_rows(inserter, target_rows, achieved_rows, max_retries=DEFAULT_MAX_RETRIES):
    """
    Make up a shortfall with single-row, non-IGNORE inserts.

    Each pass retries the whole remaining deficit with fresh random values
    and counts as one retry. Errors are collected, not raised.

    Returns:
        Tuple of (final achieved rows, list of errors from the retry passes)
    """
    achieved = achieved_rows
    retries = 0
    errors = []
    while achieved < target_rows and retries < max_retries:
        deficit = target_rows - achieved
        debug_print("Retry {0}/{1}: adding {2} rows".format(retries + 1, max_retries, deficit))
        n, errs = inserter.run_pass(deficit, 1, ignore=False)
        achieved += n
        errors.extend(errs)
        retries += 1
    return achieved, errors


def load_rows(executor, template, target_rows, bulk_size=DEFAULT_BULK_SIZE, concurrency=None,
              max_retries=DEFAULT_MAX_RETRIES, progress=None, dry_run=False, writer=None):
    """
    Load target_rows random rows into the template's table.

    Args:
        executor: ConnectionPool (or any object with execute(sql)); ignored
            for dry runs
        template: RowTemplate
        target_rows: Number of rows wanted
        bulk_size: Rows per INSERT statement
        concurrency: Statements in flight
        max_retries: Retry passes allowed to make up a shortfall
        progress: Object with update(n)
        dry_run: Write statements to `writer` instead of executing them
        writer: Text sink for dry runs (default: stdout)

    Returns:
        LoadResult(inserted, errors) where errors are the ones left
        unresolved by the retry passes
    """
    if dry_run:
        executor = DryRunExecutor(writer)
    inserter = BulkInserter(executor, template, concurrency, progress, dry_run)

    inserted, _ = inserter.run(target_rows, bulk_size)
    if dry_run or inserted >= target_rows:
        return LoadResult(inserted, [])

    print("Adding extra {0} rows.".format(target_rows - inserted), file=sys.stderr)
    inserted, errors = ensure_rows(inserter, target_rows, inserted, max_retries)
    return LoadResult(inserted, errors)
