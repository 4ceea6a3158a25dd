import os
import unittest
from unittest import mock

from web3 import Web3

from raffle.config import load_settings

BASE_ENV = {
    "VRF__COORDINATOR_ADDRESS": "0x" + "c0" * 20,
    "VRF__KEY_HASH": "0x" + "ab" * 32,
}


class LoadSettingsTests(unittest.TestCase):
    def setUp(self) -> None:
        load_settings.cache_clear()
        self.addCleanup(load_settings.cache_clear)

    def _load(self, **env):
        with mock.patch.dict(os.environ, env, clear=True), mock.patch("raffle.config.load_dotenv"):
            return load_settings()

    def test_defaults(self) -> None:
        settings = self._load(**BASE_ENV)

        self.assertEqual(settings.raffle.entrance_fee, 10**16)
        self.assertEqual(settings.raffle.interval, 30)
        self.assertEqual(settings.raffle.num_words, 1)
        self.assertEqual(settings.raffle.request_confirmations, 3)
        self.assertEqual(settings.raffle.coordinator_address, Web3.to_checksum_address("0x" + "c0" * 20))
        self.assertEqual(settings.oracle_mode, "local")
        self.assertEqual(settings.payout_mode, "ledger")
        self.assertIsNone(settings.oracle_api_key)

    def test_overrides(self) -> None:
        settings = self._load(
            RAFFLE__ENTRANCE_FEE_WEI="5",
            RAFFLE__INTERVAL_SECONDS="3600",
            VRF__CALLBACK_GAS_LIMIT="100000",
            ORACLE_MODE="VRF",
            PAYOUT_MODE="web3",
            CHAIN_ID="11155111",
            **BASE_ENV,
        )

        self.assertEqual(settings.raffle.entrance_fee, 5)
        self.assertEqual(settings.raffle.interval, 3600)
        self.assertEqual(settings.raffle.callback_gas_limit, 100000)
        self.assertEqual(settings.oracle_mode, "vrf")
        self.assertEqual(settings.web3.chain_id, 11155111)

    def test_coordinator_is_required(self) -> None:
        with self.assertRaises(RuntimeError):
            self._load(VRF__KEY_HASH=BASE_ENV["VRF__KEY_HASH"])

    def test_unknown_modes_are_rejected(self) -> None:
        with self.assertRaises(RuntimeError):
            self._load(ORACLE_MODE="dice", **BASE_ENV)


if __name__ == "__main__":
    unittest.main()
