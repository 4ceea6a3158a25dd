from __future__ import annotations

from dataclasses import asdict, dataclass

from ..models import RoundState


@dataclass(frozen=True)
class UpkeepStatus:
    is_open: bool
    time_passed: bool
    has_players: bool
    has_balance: bool
    balance: int
    player_count: int
    state: str
    elapsed: int

    @property
    def upkeep_needed(self) -> bool:
        return self.is_open and self.time_passed and self.has_players and self.has_balance

    def to_dict(self) -> dict:
        payload = asdict(self)
        payload["balance"] = str(self.balance)
        payload["upkeep_needed"] = self.upkeep_needed
        return payload


def evaluate_upkeep(
    state: str,
    last_timestamp: int,
    player_count: int,
    balance: int,
    now: int,
    interval: int,
) -> UpkeepStatus:
    """Decide whether the current round may be finalised. Never cached."""
    elapsed = now - last_timestamp
    return UpkeepStatus(
        is_open=state == RoundState.OPEN.value,
        time_passed=elapsed >= interval,
        has_players=player_count > 0,
        has_balance=balance > 0,
        balance=balance,
        player_count=player_count,
        state=state,
        elapsed=elapsed,
    )
