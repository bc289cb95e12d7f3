"""
Tests for the command-line interface
"""

import json
import logging
import os
import shutil
import tempfile
import unittest
from hashlib import sha256
from unittest.mock import patch

from click.testing import CliRunner

from commitment_pool.api.pool_service import PoolService
from commitment_pool.cli import cli

logging.getLogger("commitment_pool").setLevel(logging.CRITICAL)


def hex_hash(label: str) -> str:
    return "0x" + sha256(label.encode()).hexdigest()


NO_VERIFIER = {"POOL_ALLOW_UNVERIFIED_PROOFS": "false"}


class TestCLI(unittest.TestCase):

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.state_file = os.path.join(self.test_dir, "pool.json")
        self.runner = CliRunner()
        self.env = {"POOL_ALLOW_UNVERIFIED_PROOFS": "true"}

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def invoke(self, *args, env=None):
        return self.runner.invoke(
            cli, ["--state-file", self.state_file, *args], env=self.env if env is None else env, obj={}
        )

    def init_pool(self, depth="4", history="3"):
        result = self.invoke("init", "--depth", depth, "--history-size", history)
        self.assertEqual(result.exit_code, 0, result.output)
        return result

    def deposit(self, label, value="5"):
        result = self.invoke("deposit", hex_hash(label), value, "--json")
        self.assertEqual(result.exit_code, 0, result.output)
        return json.loads(result.output)

    def test_init(self):
        result = self.init_pool()
        self.assertIn("Pool Initialized", result.output)
        self.assertTrue(os.path.exists(self.state_file))

        again = self.invoke("init")
        self.assertEqual(again.exit_code, 1)
        self.assertIn("already exists", again.output)

        forced = self.invoke("init", "--depth", "5", "--force")
        self.assertEqual(forced.exit_code, 0, forced.output)
        self.assertEqual(PoolService(self.state_file).get_state()["depth"], 5)

    def test_init_invalid_depth(self):
        result = self.invoke("init", "--depth", "64")
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Invalid pool parameters", result.output)

    def test_deposit_requires_init(self):
        result = self.invoke("deposit", hex_hash("c0"), "1")
        self.assertEqual(result.exit_code, 1)
        self.assertIn("commitment-pool init", result.output)

    def test_deposit_json(self):
        self.init_pool()
        first = self.deposit("c0")
        second = self.deposit("c1", "3")
        self.assertEqual(first["leaf_index"], 0)
        self.assertEqual(second["leaf_index"], 1)
        self.assertNotEqual(first["root"], second["root"])

    def test_deposit_table(self):
        self.init_pool()
        result = self.invoke("deposit", hex_hash("c0"), "1")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Deposit Committed", result.output)

    def test_deposit_rejected(self):
        self.init_pool()
        result = self.invoke("deposit", hex_hash("c0"), "0")
        self.assertEqual(result.exit_code, 1)
        self.assertIn("must be positive", result.output)

        result = self.invoke("deposit", "0x1234", "1")
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Invalid commitment", result.output)

        result = self.invoke("deposit", hex_hash("c0")[:-1], "1")
        self.assertEqual(result.exit_code, 1)
        self.assertIn("expected 64 hex digits", result.output)

    def test_withdraw_and_replay(self):
        self.init_pool()
        root = self.deposit("c0", "10")["root"]

        args = ("withdraw", hex_hash("n0"), root, "4", "alice", "--proof", "0x01", "--json")
        result = self.invoke(*args)
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(json.loads(result.output)["pool_value"], 6)

        replay = self.invoke(*args)
        self.assertEqual(replay.exit_code, 1)
        self.assertIn("already been spent", replay.output)

    def test_withdraw_without_verifier(self):
        self.init_pool()
        root = self.deposit("c0")["root"]
        result = self.invoke("withdraw", hex_hash("n0"), root, "1", "alice", env=NO_VERIFIER)
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Proof rejected", result.output)
        self.assertFalse(PoolService(self.state_file).is_spent(hex_hash("n0")))

    def test_known(self):
        self.init_pool()
        root = self.deposit("c0")["root"]
        self.assertEqual(self.invoke("known", root).exit_code, 0)
        self.assertEqual(self.invoke("known", hex_hash("unknown")).exit_code, 1)

    def test_path_json(self):
        self.init_pool()
        self.deposit("c0")
        self.deposit("c1")
        result = self.invoke("path", hex_hash("c0"), "--json")
        self.assertEqual(result.exit_code, 0, result.output)
        body = json.loads(result.output)
        self.assertEqual(body["leaf_index"], 0)
        self.assertEqual(body["path"][0], hex_hash("c1"))

    def test_path_unknown_commitment(self):
        self.init_pool()
        result = self.invoke("path", hex_hash("c0"))
        self.assertEqual(result.exit_code, 1)
        self.assertIn("has not been deposited", result.output)

    def test_inspect(self):
        self.init_pool()
        self.deposit("c0")
        result = self.invoke("inspect")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Pool State", result.output)
        self.assertIn("AcceptAllVerifier", result.output)

    def test_inspect_warns_without_verifier(self):
        self.init_pool()
        result = self.invoke("inspect", env=NO_VERIFIER)
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("No proof verifier configured", result.output)

    def test_events(self):
        self.init_pool()
        empty = self.invoke("events")
        self.assertIn("No events recorded", empty.output)

        root = self.deposit("c0")["root"]
        self.invoke("withdraw", hex_hash("n0"), root, "1", "bob")

        result = self.invoke("events", "--json")
        events = json.loads(result.output)
        self.assertEqual([e["kind"] for e in events], ["deposit", "withdrawal"])

        result = self.invoke("events", "--kind", "withdrawal", "--json")
        self.assertEqual(len(json.loads(result.output)), 1)

        table = self.invoke("events")
        self.assertIn("Pool Events", table.output)

    def test_health_local(self):
        missing = self.invoke("health")
        self.assertEqual(missing.exit_code, 1)

        self.init_pool()
        result = self.invoke("health")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("System Health Check", result.output)

    def test_remote_mode_uses_api_client(self):
        with patch("commitment_pool.cli.PoolAPIClient") as client_cls:
            client_cls.return_value.deposit.return_value = {
                "commitment": hex_hash("c0"),
                "value": 1,
                "leaf_index": 7,
                "root": hex_hash("root"),
            }
            result = self.runner.invoke(
                cli,
                ["--api-url", "http://pool.test", "deposit", hex_hash("c0"), "1", "--json"],
                obj={},
            )
        self.assertEqual(result.exit_code, 0, result.output)
        client_cls.assert_called_once_with("http://pool.test")
        self.assertEqual(json.loads(result.output)["leaf_index"], 7)
        self.assertFalse(os.path.exists(self.state_file))


if __name__ == "__main__":
    unittest.main(verbosity=2)
