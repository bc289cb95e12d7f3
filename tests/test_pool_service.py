"""
Tests for the Pool Service layer

The service is exercised against real state files in a temporary directory.
"""

import json
import logging
import os
import shutil
import tempfile
import unittest
from concurrent.futures import ThreadPoolExecutor
from hashlib import sha256
from unittest.mock import patch

from commitment_pool import AcceptAllVerifier, ProofRejected, ReplayError, StaleRootError
from commitment_pool.api.pool_service import PoolService, PoolServiceError, build_verifier
from commitment_pool.config import Settings
from commitment_pool.merkle import verify_merkle_path
from commitment_pool.verifier import UnconfiguredVerifier

logging.getLogger("commitment_pool").setLevel(logging.CRITICAL)


def hex_hash(label: str) -> str:
    return "0x" + sha256(label.encode()).hexdigest()


class TestPoolService(unittest.TestCase):

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.state_file = os.path.join(self.test_dir, "pool.json")
        self.settings = Settings(tree_depth=4, root_history_size=3, state_file=self.state_file)
        self.verifier = AcceptAllVerifier()
        self.service = PoolService.initialize(
            self.state_file, 4, 3, settings=self.settings, verifier=self.verifier
        )

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def reopen(self, verifier=None):
        return PoolService(self.state_file, settings=self.settings, verifier=verifier or self.verifier)

    def test_initialize_writes_state(self):
        self.assertTrue(os.path.exists(self.state_file))
        state = self.service.get_state()
        self.assertEqual(state["depth"], 4)
        self.assertEqual(state["capacity"], 16)
        self.assertEqual(state["next_index"], 0)
        self.assertEqual(state["root_count"], 1)
        self.assertEqual(state["root_history_size"], 3)
        self.assertEqual(state["verifier"], "AcceptAllVerifier")

    def test_initialize_refuses_existing_file(self):
        with self.assertRaises(PoolServiceError):
            PoolService.initialize(self.state_file, 4, 3, settings=self.settings)

    def test_initialize_force_overwrites(self):
        self.service.deposit(hex_hash("c0"), 1)
        service = PoolService.initialize(
            self.state_file, 5, 3, force=True, settings=self.settings, verifier=self.verifier
        )
        self.assertEqual(service.get_state()["depth"], 5)
        self.assertEqual(service.get_state()["next_index"], 0)

    def test_initialize_invalid_parameters(self):
        path = os.path.join(self.test_dir, "other.json")
        with self.assertRaises(PoolServiceError):
            PoolService.initialize(path, 0, 3, settings=self.settings)
        with self.assertRaises(PoolServiceError):
            PoolService.initialize(path, 4, 0, settings=self.settings)

    def test_missing_state_file(self):
        with self.assertRaises(PoolServiceError):
            PoolService(os.path.join(self.test_dir, "absent.json"), settings=self.settings)

    def test_corrupt_state_file(self):
        with open(self.state_file, "w") as f:
            f.write("garbage")
        with self.assertRaises(PoolServiceError):
            self.reopen()

    def test_deposit_persists(self):
        result = self.service.deposit(hex_hash("c0"), 7)
        self.assertEqual(result["leaf_index"], 0)
        self.assertEqual(result["value"], 7)
        self.assertEqual(result["commitment"], hex_hash("c0"))

        reopened = self.reopen()
        state = reopened.get_state()
        self.assertEqual(state["next_index"], 1)
        self.assertEqual(state["current_root"], result["root"])
        self.assertEqual(state["pool_value"], 7)

    def test_withdraw_persists_nullifier_and_payout(self):
        deposit = self.service.deposit(hex_hash("c0"), 10)
        result = self.service.withdraw(hex_hash("n0"), deposit["root"], 4, "alice", "0xdeadbeef")
        self.assertEqual(result["pool_value"], 6)
        self.assertEqual(result["nullifier"], hex_hash("n0"))

        reopened = self.reopen()
        self.assertTrue(reopened.is_spent(hex_hash("n0")))
        self.assertEqual(reopened.payouts.balance_of("alice"), 4)
        with self.assertRaises(ReplayError):
            reopened.withdraw(hex_hash("n0"), deposit["root"], 1, "alice")

    def test_accepts_unprefixed_and_uppercase_hex(self):
        commitment = hex_hash("c0")[2:].upper()
        result = self.service.deposit(commitment, 1)
        self.assertEqual(result["commitment"], hex_hash("c0"))
        self.assertTrue(self.service.is_known_root(result["root"].upper()))

    def test_malformed_hex(self):
        for bad in ("0x1234", "0x" + "zz" * 32, "", 42, "0x" + "a" * 63, "a" * 63, "0x" + "a" * 65):
            with self.subTest(value=bad):
                with self.assertRaises(PoolServiceError):
                    self.service.deposit(bad, 1)
        with self.assertRaises(PoolServiceError):
            self.service.withdraw(hex_hash("n0"), hex_hash("r"), 1, "alice", "0xnothex")
        with self.assertRaises(PoolServiceError):
            self.service.is_known_root(hex_hash("r")[:-1])

    def test_stale_root_propagates(self):
        with self.assertRaises(StaleRootError):
            self.service.withdraw(hex_hash("n0"), hex_hash("unknown"), 1, "alice")

    def test_default_verifier_rejects_withdrawals(self):
        service = PoolService(self.state_file, settings=self.settings)
        self.assertIsInstance(service.verifier, UnconfiguredVerifier)
        deposit = service.deposit(hex_hash("c0"), 5)
        with self.assertRaises(ProofRejected):
            service.withdraw(hex_hash("n0"), deposit["root"], 1, "alice")
        self.assertFalse(self.reopen().is_spent(hex_hash("n0")))

    def test_build_verifier_from_settings(self):
        self.assertIsInstance(build_verifier(Settings()), UnconfiguredVerifier)
        self.assertIsInstance(
            build_verifier(Settings(allow_unverified_proofs=True)), AcceptAllVerifier
        )

    def test_merkle_path(self):
        for i in range(5):
            self.service.deposit(hex_hash(f"c{i}"), 1)
        result = self.service.get_merkle_path(hex_hash("c3"))

        self.assertEqual(result["leaf_index"], 3)
        self.assertEqual(len(result["path"]), 4)
        path = [bytes.fromhex(step[2:]) for step in result["path"]]
        self.assertTrue(
            verify_merkle_path(
                bytes.fromhex(hex_hash("c3")[2:]), 3, path, bytes.fromhex(result["root"][2:])
            )
        )

    def test_merkle_path_unknown_commitment(self):
        with self.assertRaises(PoolServiceError):
            self.service.get_merkle_path(hex_hash("never"))

    def test_list_events(self):
        deposit = self.service.deposit(hex_hash("c0"), 3)
        self.service.deposit(hex_hash("c1"), 3)
        self.service.withdraw(hex_hash("n0"), deposit["root"], 2, "bob")

        events = self.service.list_events()
        self.assertEqual([e["sequence"] for e in events], [0, 1, 2])
        self.assertEqual([e["kind"] for e in events], ["deposit", "deposit", "withdrawal"])

        withdrawals = self.reopen().list_events("withdrawal")
        self.assertEqual(len(withdrawals), 1)
        self.assertEqual(withdrawals[0]["sequence"], 2)
        self.assertEqual(withdrawals[0]["recipient"], "bob")

        with self.assertRaises(PoolServiceError):
            self.service.list_events("mint")

    def test_concurrent_deposits_are_serialised(self):
        commitments = [hex_hash(f"c{i}") for i in range(8)]
        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(lambda c: self.service.deposit(c, 1), commitments))

        self.assertEqual(sorted(r["leaf_index"] for r in results), list(range(8)))
        state = self.reopen().get_state()
        self.assertEqual(state["next_index"], 8)
        self.assertEqual(state["pool_value"], 8)
        self.assertEqual(len(self.service.list_events("deposit")), 8)

    def test_state_file_without_event_log_is_rejected(self):
        self.service.deposit(hex_hash("c0"), 1)
        with open(self.state_file) as f:
            state = json.load(f)
        del state["events"]
        with open(self.state_file, "w") as f:
            json.dump(state, f)
        with self.assertRaises(PoolServiceError):
            self.reopen()

    def test_persist_failure_restores_last_saved_state(self):
        self.service.deposit(hex_hash("c0"), 1)
        with patch(
            "commitment_pool.api.pool_service.save_state", side_effect=OSError("read-only")
        ):
            with self.assertRaises(PoolServiceError):
                self.service.deposit(hex_hash("c1"), 1)

        self.assertEqual(self.service.get_state()["next_index"], 1)
        self.assertEqual(self.reopen().get_state()["next_index"], 1)


if __name__ == "__main__":
    unittest.main(verbosity=2)
