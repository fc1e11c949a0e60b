from __future__ import annotations

import unittest

from tg_feed.termination import TerminationPolicy


class TestTerminationPolicy(unittest.TestCase):
    def test_three_empty_iterations_stall(self) -> None:
        p = TerminationPolicy()
        self.assertIsNone(p.observe(0, 0))
        self.assertIsNone(p.observe(1, 0))
        self.assertEqual(p.observe(2, 0), "stalled")

    def test_two_empty_iterations_do_not_stall(self) -> None:
        p = TerminationPolicy()
        self.assertIsNone(p.observe(0, 0))
        self.assertIsNone(p.observe(1, 0))
        self.assertIsNone(p.observe(2, 4))
        self.assertEqual(p.stall_count, 0)
        self.assertIsNone(p.observe(3, 0))

    def test_boundary_only_after_warmup(self) -> None:
        p = TerminationPolicy(position_warmup=5)
        for i in range(6):
            self.assertIsNone(p.observe(i, 1, (0, 100)))
        self.assertEqual(p.observe(6, 1, (0, 100)), "boundary")
        self.assertEqual(p.last_position, (0, 100))

    def test_moving_position_is_not_boundary(self) -> None:
        p = TerminationPolicy(position_warmup=0)
        for i in range(10):
            self.assertIsNone(p.observe(i, 1, (0, 100 + i)))

    def test_iteration_ceiling(self) -> None:
        p = TerminationPolicy(max_iterations=3)
        self.assertIsNone(p.observe(0, 1))
        self.assertIsNone(p.observe(1, 1))
        self.assertEqual(p.observe(2, 1), "max_iterations")

    def test_rejects_invalid_limits(self) -> None:
        with self.assertRaises(ValueError):
            TerminationPolicy(max_iterations=0)
        with self.assertRaises(ValueError):
            TerminationPolicy(stall_limit=0)


if __name__ == "__main__":
    unittest.main()
