#!/usr/bin/env python3
"""Batch planning for bulk inserts"""
from collections import namedtuple

from random_data_load_utils import DEFAULT_BULK_SIZE


class InsertPlan(namedtuple("InsertPlan", ["target_rows", "batch_size", "full_batches", "remainder"])):
    """
    How a row target is split into INSERT statements.

    Example: 11 rows with bulk size 4 gives 2 full batches of 4 rows
    (8 rows) and one trailing statement with the remaining 3 rows.
    """

    __slots__ = ()

    def passes(self):
        """List of (statements, rows per statement) for the main and remainder passes"""
        result = []
        if self.full_batches:
            result.append((self.full_batches, self.batch_size))
        if self.remainder:
            result.append((1, self.remainder))
        return result


def plan_batches(target_rows, bulk_size=DEFAULT_BULK_SIZE):
    """
    Split target_rows into full batches of bulk_size plus a remainder.

    A bulk size below 1 is replaced by the default; a bulk size above the
    target is clamped to the target.

    Returns:
        InsertPlan with full_batches * batch_size + remainder == target_rows
    """
    target_rows = int(target_rows)
    if target_rows < 0:
        raise ValueError("target rows must be >= 0, got {0}".format(target_rows))

    bulk_size = int(bulk_size) if bulk_size else 0
    if bulk_size < 1:
        bulk_size = DEFAULT_BULK_SIZE
    if target_rows and bulk_size > target_rows:
        bulk_size = target_rows

    full_batches = target_rows // bulk_size
    remainder = target_rows - full_batches * bulk_size
    return InsertPlan(target_rows, bulk_size, full_batches, remainder)
