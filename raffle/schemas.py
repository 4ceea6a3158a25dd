from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator
from web3 import Web3


def _as_str(value: Any) -> Any:
    return str(value) if isinstance(value, int) else value


class EnterRequest(BaseModel):
    participant: str = Field(..., description="Address of the entrant.")
    amount: int = Field(..., ge=0, description="Payment in wei.")

    @field_validator("participant")
    @classmethod
    def validate_participant(cls, value: str) -> str:
        if not Web3.is_address(value):
            raise ValueError("participant must be an address")
        return Web3.to_checksum_address(value)


class EnterResponse(BaseModel):
    participant: str
    index: int
    player_count: int


class RaffleSummaryResponse(BaseModel):
    state: str
    round_id: int
    last_timestamp: int
    recent_winner: Optional[str] = None
    pending_request_id: Optional[str] = None
    pending_since: Optional[int] = None
    player_count: int
    balance: str
    entrance_fee: str
    interval: int


class UpkeepResponse(BaseModel):
    upkeep_needed: bool
    perform_data: str = "0x"
    is_open: bool
    time_passed: bool
    has_players: bool
    has_balance: bool
    balance: str
    player_count: int
    state: str
    elapsed: int


class PerformUpkeepResponse(BaseModel):
    request_id: str
    state: str


class FulfillRequest(BaseModel):
    request_id: str
    random_words: List[int]

    coerce_request_id = field_validator("request_id", mode="before")(_as_str)


class FulfillResponse(BaseModel):
    request_id: str
    winner: str
    state: str


class LocalFulfillRequest(BaseModel):
    request_id: Optional[str] = None
    random_words: Optional[List[int]] = Field(None, min_length=1)

    coerce_request_id = field_validator("request_id", mode="before")(_as_str)


class CancelRequestResponse(BaseModel):
    cancelled_request_id: str
    state: str


class RaffleConfigResponse(BaseModel):
    entrance_fee: str
    interval: int
    coordinator: str
    key_hash: str
    subscription_id: str
    callback_gas_limit: int
    request_confirmations: int
    num_words: int
    request_timeout: int
    oracle_mode: str
    payout_mode: str
