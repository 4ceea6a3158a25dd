import asyncio
import unittest
from unittest import mock

from keeper.config import KeeperSettings
from keeper.raffle_client import RaffleApiClient
from keeper.types import RaffleStatus


def _response(status_code: int, payload) -> mock.Mock:
    resp = mock.Mock()
    resp.status_code = status_code
    resp.json.return_value = payload
    resp.raise_for_status.return_value = None
    return resp


class RaffleApiClientTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session = mock.Mock()
        settings = KeeperSettings(raffle_api_url="http://raffle.test/", request_timeout_seconds=3)
        self.client = RaffleApiClient(settings, session=self.session)

    def test_check_upkeep_parses_snapshot(self) -> None:
        self.session.get.return_value = _response(
            200,
            {
                "upkeep_needed": True,
                "state": "OPEN",
                "player_count": 3,
                "balance": "30000000000000000",
                "elapsed": 31,
            },
        )

        snapshot = asyncio.run(self.client.check_upkeep())

        self.session.get.assert_called_once_with("http://raffle.test/raffle/upkeep", timeout=3)
        self.assertTrue(snapshot.upkeep_needed)
        self.assertEqual(snapshot.state, RaffleStatus.OPEN)
        self.assertEqual(snapshot.balance, 3 * 10**16)

    def test_check_upkeep_rejects_incomplete_payload(self) -> None:
        self.session.get.return_value = _response(200, {"upkeep_needed": False})

        with self.assertRaises(ValueError):
            asyncio.run(self.client.check_upkeep())

    def test_perform_upkeep_returns_request(self) -> None:
        self.session.post.return_value = _response(200, {"request_id": "1", "state": "CALCULATING"})

        result = asyncio.run(self.client.perform_upkeep())

        self.assertEqual(result.request_id, "1")
        self.assertEqual(result.state, RaffleStatus.CALCULATING)

    def test_perform_upkeep_returns_none_when_not_needed(self) -> None:
        self.session.post.return_value = _response(409, {"error": "upkeep_not_needed"})

        self.assertIsNone(asyncio.run(self.client.perform_upkeep()))

    def test_perform_upkeep_raises_on_other_conflicts(self) -> None:
        self.session.post.return_value = _response(409, {"error": "reentrant_call"})

        with self.assertRaises(RuntimeError):
            asyncio.run(self.client.perform_upkeep())

    def test_get_pending_request(self) -> None:
        self.session.get.return_value = _response(200, {"state": "CALCULATING", "pending_request_id": "4"})

        self.assertEqual(asyncio.run(self.client.get_pending_request()), "4")
        self.session.get.assert_called_once_with("http://raffle.test/raffle", timeout=3)

    def test_no_pending_request(self) -> None:
        self.session.get.return_value = _response(200, {"state": "OPEN", "pending_request_id": None})

        self.assertIsNone(asyncio.run(self.client.get_pending_request()))

    def test_fulfill_sends_oracle_token(self) -> None:
        client = RaffleApiClient(
            KeeperSettings(raffle_api_url="http://raffle.test", request_timeout_seconds=3, oracle_api_key="secret"),
            session=self.session,
        )
        self.session.post.return_value = _response(200, {"request_id": "4", "winner": "0xabc", "state": "OPEN"})

        winner = asyncio.run(client.fulfill("4", [2**255]))

        self.assertEqual(winner, "0xabc")
        self.session.post.assert_called_once_with(
            "http://raffle.test/raffle/fulfill",
            json={"request_id": "4", "random_words": [2**255]},
            headers={"X-Oracle-Token": "secret"},
            timeout=3,
        )

    def test_fulfill_of_settled_request_returns_none(self) -> None:
        client = RaffleApiClient(
            KeeperSettings(raffle_api_url="http://raffle.test", oracle_api_key="secret"), session=self.session
        )
        self.session.post.return_value = _response(409, {"error": "unknown_request"})

        self.assertIsNone(asyncio.run(client.fulfill("4", [1])))

    def test_fulfill_requires_oracle_token(self) -> None:
        with self.assertRaises(RuntimeError):
            asyncio.run(self.client.fulfill("4", [1]))
        self.session.post.assert_not_called()


if __name__ == "__main__":
    unittest.main()
