import itertools
import unittest

from raffle.models import RoundState
from raffle.services.upkeep import evaluate_upkeep

NOW = 1_700_000_100
INTERVAL = 30


class EvaluateUpkeepTests(unittest.TestCase):
    def test_all_sixteen_combinations(self) -> None:
        for is_open, time_passed, has_players, has_balance in itertools.product((False, True), repeat=4):
            with self.subTest(
                is_open=is_open, time_passed=time_passed, has_players=has_players, has_balance=has_balance
            ):
                status = evaluate_upkeep(
                    state=RoundState.OPEN.value if is_open else RoundState.CALCULATING.value,
                    last_timestamp=NOW - (INTERVAL if time_passed else INTERVAL - 1),
                    player_count=2 if has_players else 0,
                    balance=10**16 if has_balance else 0,
                    now=NOW,
                    interval=INTERVAL,
                )

                self.assertEqual(status.is_open, is_open)
                self.assertEqual(status.time_passed, time_passed)
                self.assertEqual(status.has_players, has_players)
                self.assertEqual(status.has_balance, has_balance)
                self.assertEqual(
                    status.upkeep_needed, is_open and time_passed and has_players and has_balance
                )

    def test_interval_boundary_is_inclusive(self) -> None:
        status = evaluate_upkeep(
            state="OPEN", last_timestamp=NOW - INTERVAL, player_count=1, balance=1, now=NOW, interval=INTERVAL
        )

        self.assertTrue(status.upkeep_needed)
        self.assertEqual(status.elapsed, INTERVAL)

    def test_to_dict_carries_diagnostics(self) -> None:
        status = evaluate_upkeep(
            state="CALCULATING", last_timestamp=NOW, player_count=3, balance=3 * 10**16, now=NOW, interval=INTERVAL
        )

        payload = status.to_dict()

        self.assertFalse(payload["upkeep_needed"])
        self.assertEqual(payload["balance"], "30000000000000000")
        self.assertEqual(payload["player_count"], 3)
        self.assertEqual(payload["state"], "CALCULATING")


if __name__ == "__main__":
    unittest.main()
