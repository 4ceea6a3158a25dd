from __future__ import annotations

import datetime as dt
from enum import Enum

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class RoundState(str, Enum):
    OPEN = "OPEN"
    CALCULATING = "CALCULATING"


class RaffleState(Base):
    """Singleton row holding the state machine and round bookkeeping."""

    __tablename__ = "raffle_state"

    id = Column(Integer, primary_key=True, default=1)
    state = Column(String(16), nullable=False, default=RoundState.OPEN.value)
    round_id = Column(Integer, nullable=False, default=1)
    last_timestamp = Column(Integer, nullable=False)
    recent_winner = Column(String(42), nullable=True)
    pending_request_id = Column(String(80), nullable=True)
    pending_since = Column(Integer, nullable=True)

    @property
    def round_state(self) -> RoundState:
        return RoundState(self.state)

    def to_dict(self) -> dict:
        return {
            "state": self.state,
            "round_id": self.round_id,
            "last_timestamp": self.last_timestamp,
            "recent_winner": self.recent_winner,
            "pending_request_id": self.pending_request_id,
            "pending_since": self.pending_since,
        }


class Entry(Base):
    __tablename__ = "entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    round_id = Column(Integer, nullable=False, index=True)
    participant = Column(String(42), nullable=False)
    # Wei amounts overflow 64-bit integer columns; kept as decimal strings.
    amount = Column(String(78), nullable=False)
    created_at = Column(DateTime, default=dt.datetime.utcnow, nullable=False)

    def set_amount(self, amount: int) -> None:
        self.amount = str(int(amount))

    def get_amount(self) -> int:
        return int(self.amount)


class Round(Base):
    __tablename__ = "rounds"

    round_id = Column(Integer, primary_key=True)
    winner = Column(String(42), nullable=False)
    payout = Column(String(78), nullable=False)
    player_count = Column(Integer, nullable=False)
    request_id = Column(String(80), nullable=False)
    random_word = Column(String(80), nullable=False)
    finished_at = Column(DateTime, default=dt.datetime.utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "round_id": self.round_id,
            "winner": self.winner,
            "payout": self.payout,
            "player_count": self.player_count,
            "request_id": self.request_id,
            "random_word": self.random_word,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


class Payout(Base):
    """Record of every transfer made out of the pool."""

    __tablename__ = "payouts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    round_id = Column(Integer, nullable=False)
    recipient = Column(String(42), nullable=False)
    amount = Column(String(78), nullable=False)
    tx_ref = Column(String(80), nullable=True)
    created_at = Column(DateTime, default=dt.datetime.utcnow, nullable=False)
