from __future__ import annotations

from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..models import Entry, Payout, RaffleState, Round, RoundState


class RaffleLedger:
    """Entrants and pooled balance of the current round.

    All methods work inside the caller's session so that an operation's reads
    and writes share one unit of work.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def load_state(self, now: int, for_update: bool = False) -> RaffleState:
        query = select(RaffleState).where(RaffleState.id == 1)
        if for_update:
            query = query.with_for_update()
        state = self._session.execute(query).scalar_one_or_none()
        if state is None:
            state = RaffleState(id=1, state=RoundState.OPEN.value, round_id=1, last_timestamp=now)
            self._session.add(state)
            self._session.flush()
        return state

    def entrants(self, round_id: int) -> List[str]:
        rows = self._session.execute(
            select(Entry.participant).where(Entry.round_id == round_id).order_by(Entry.id)
        )
        return [row[0] for row in rows]

    def count(self, round_id: int) -> int:
        return int(
            self._session.execute(
                select(func.count(Entry.id)).where(Entry.round_id == round_id)
            ).scalar_one()
        )

    def entrant_at(self, round_id: int, index: int) -> Optional[str]:
        if index < 0:
            return None
        return self._session.execute(
            select(Entry.participant)
            .where(Entry.round_id == round_id)
            .order_by(Entry.id)
            .offset(index)
            .limit(1)
        ).scalar_one_or_none()

    def balance(self, round_id: int) -> int:
        amounts = self._session.execute(select(Entry.amount).where(Entry.round_id == round_id))
        return sum(int(row[0]) for row in amounts)

    def append(self, round_id: int, participant: str, amount: int) -> Entry:
        entry = Entry(round_id=round_id, participant=participant)
        entry.set_amount(amount)
        self._session.add(entry)
        self._session.flush()
        return entry

    def flush(self) -> None:
        self._session.flush()

    def clear(self, state: RaffleState) -> None:
        # Entries stay on disk as history; the ledger is whatever belongs to the current round.
        state.round_id += 1

    def rounds(self, limit: Optional[int] = None) -> List[dict]:
        query = select(Round).order_by(Round.round_id.desc())
        if limit:
            query = query.limit(limit)
        return [record.to_dict() for record in self._session.execute(query).scalars()]

    def record_round(
        self, state: RaffleState, winner: str, payout: int, player_count: int, request_id: str, random_word: int
    ) -> Round:
        record = Round(
            round_id=state.round_id,
            winner=winner,
            payout=str(payout),
            player_count=player_count,
            request_id=request_id,
            random_word=str(random_word),
        )
        self._session.add(record)
        return record

    def record_payout(self, round_id: int, recipient: str, amount: int) -> Payout:
        payout = Payout(round_id=round_id, recipient=recipient, amount=str(amount))
        self._session.add(payout)
        return payout
