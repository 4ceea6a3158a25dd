from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RaffleStatus(str, Enum):
    OPEN = "OPEN"
    CALCULATING = "CALCULATING"


@dataclass(frozen=True)
class UpkeepSnapshot:
    upkeep_needed: bool
    state: RaffleStatus
    player_count: int
    balance: int
    elapsed: int


@dataclass(frozen=True)
class UpkeepResult:
    request_id: str
    state: RaffleStatus
