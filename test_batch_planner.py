#!/usr/bin/env python3
"""Unit tests for batch planning"""
import unittest

from batch_planner import plan_batches, InsertPlan
from random_data_load_utils import DEFAULT_BULK_SIZE


class TestPlanBatches(unittest.TestCase):
    """Test cases for plan_batches"""

    def test_exact_multiple(self):
        """Target divisible by the bulk size leaves no remainder"""
        plan = plan_batches(12, 4)
        self.assertEqual(plan, InsertPlan(12, 4, 3, 0))
        self.assertEqual(plan.passes(), [(3, 4)])

    def test_remainder(self):
        """11 rows in batches of 4: two full statements and one of 3 rows"""
        plan = plan_batches(11, 4)
        self.assertEqual(plan.full_batches, 2)
        self.assertEqual(plan.batch_size, 4)
        self.assertEqual(plan.remainder, 3)
        self.assertEqual(plan.passes(), [(2, 4), (1, 3)])

    def test_bulk_size_clamped_to_target(self):
        """A bulk size larger than the target becomes the target"""
        plan = plan_batches(5, 1000)
        self.assertEqual(plan.batch_size, 5)
        self.assertEqual(plan.passes(), [(1, 5)])

    def test_non_positive_bulk_size_uses_default(self):
        """Bulk size 0 or negative falls back to the default"""
        for bulk in (0, -3, None):
            plan = plan_batches(5000, bulk)
            self.assertEqual(plan.batch_size, DEFAULT_BULK_SIZE)
            self.assertEqual(plan.full_batches, 5000 // DEFAULT_BULK_SIZE)

    def test_zero_rows(self):
        """Nothing to insert means no statements"""
        plan = plan_batches(0, 10)
        self.assertEqual(plan.full_batches, 0)
        self.assertEqual(plan.remainder, 0)
        self.assertEqual(plan.passes(), [])

    def test_negative_target_rejected(self):
        with self.assertRaises(ValueError):
            plan_batches(-1, 10)

    def test_invariant_holds(self):
        """full_batches * batch_size + remainder always equals the target"""
        for target in (1, 2, 7, 99, 100, 101, 12345):
            for bulk in (1, 3, 10, 100, 5000):
                plan = plan_batches(target, bulk)
                self.assertEqual(plan.full_batches * plan.batch_size + plan.remainder, target)
                self.assertLess(plan.remainder, plan.batch_size)
                self.assertEqual(sum(n * size for n, size in plan.passes()), target)


if __name__ == "__main__":
    unittest.main()
