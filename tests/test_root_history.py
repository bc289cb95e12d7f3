"""
Tests for the Root History window and the Nullifier Registry
"""

import unittest
from hashlib import sha256

from commitment_pool.errors import ReplayError
from commitment_pool.history import RootHistory
from commitment_pool.nullifiers import NullifierRegistry


def make_root(i: int) -> bytes:
    return sha256(f"root-{i}".encode()).digest()


class TestRootHistory(unittest.TestCase):

    def test_empty_history_knows_nothing(self):
        history = RootHistory(5)
        self.assertFalse(history.is_known_root(make_root(0)))
        self.assertEqual(len(history), 0)
        with self.assertRaises(IndexError):
            history.latest

    def test_append_returns_position(self):
        history = RootHistory(3)
        self.assertEqual(history.append(make_root(0)), 0)
        self.assertEqual(history.append(make_root(1)), 1)
        self.assertEqual(history.latest, make_root(1))
        self.assertEqual(history[0], make_root(0))

    def test_window_boundary(self):
        """Exactly the last W roots are known, for several window sizes"""
        for window in (1, 2, 5, 30):
            with self.subTest(window=window):
                history = RootHistory(window)
                count = window + 7
                for i in range(count):
                    history.append(make_root(i))

                for i in range(count):
                    expected = i >= count - window
                    self.assertEqual(history.is_known_root(make_root(i)), expected, f"root {i}")
                self.assertEqual(history.recent(), [make_root(i) for i in range(count - window, count)])

    def test_short_history_is_fully_known(self):
        history = RootHistory(30)
        for i in range(4):
            history.append(make_root(i))
        for i in range(4):
            self.assertTrue(history.is_known_root(make_root(i)))
        self.assertFalse(history.is_known_root(make_root(4)))

    def test_roots_are_never_pruned(self):
        history = RootHistory(2)
        for i in range(10):
            history.append(make_root(i))
        self.assertEqual(len(history), 10)
        self.assertEqual(list(history), [make_root(i) for i in range(10)])

    def test_duplicate_root_in_window(self):
        history = RootHistory(2)
        history.append(make_root(0))
        history.append(make_root(1))
        history.append(make_root(0))
        self.assertTrue(history.is_known_root(make_root(0)))

    def test_invalid_window(self):
        for window in (0, -3, 1.5, "30", None, True):
            with self.subTest(window=window):
                with self.assertRaises(ValueError):
                    RootHistory(window)

    def test_invalid_root_size(self):
        history = RootHistory(3)
        with self.assertRaises(ValueError):
            history.append(b"\x00" * 31)

    def test_truncate(self):
        history = RootHistory(3, [make_root(i) for i in range(4)])
        history.truncate(2)
        self.assertEqual(list(history), [make_root(0), make_root(1)])
        with self.assertRaises(ValueError):
            history.truncate(0)
        with self.assertRaises(ValueError):
            history.truncate(3)


class TestNullifierRegistry(unittest.TestCase):

    def test_spend_once(self):
        registry = NullifierRegistry()
        nullifier = make_root(1)
        self.assertFalse(registry.is_spent(nullifier))

        registry.check_and_spend(nullifier)
        self.assertTrue(registry.is_spent(nullifier))
        self.assertIn(nullifier, registry)
        self.assertEqual(len(registry), 1)

    def test_replay_rejected(self):
        registry = NullifierRegistry()
        nullifier = make_root(2)
        registry.check_and_spend(nullifier)
        with self.assertRaises(ReplayError):
            registry.check_and_spend(nullifier)
        self.assertEqual(len(registry), 1)

    def test_iteration_is_sorted(self):
        nullifiers = [make_root(i) for i in range(6)]
        registry = NullifierRegistry(nullifiers)
        self.assertEqual(list(registry), sorted(nullifiers))

    def test_rejects_malformed_initial_entries(self):
        with self.assertRaises(ValueError):
            NullifierRegistry([b"\x01" * 16])


if __name__ == "__main__":
    unittest.main(verbosity=2)
