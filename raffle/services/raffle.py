from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence, Tuple

from web3 import Web3

from .. import signals
from ..clock import Clock, system_clock
from ..config import AppSettings, RaffleConfig
from ..db import SessionFactory, session_scope
from ..errors import (
    InsufficientPayment,
    InvalidConfiguration,
    InvalidParticipant,
    InvalidRandomness,
    InvariantViolation,
    OnlyCoordinatorCanFulfill,
    PayoutFailed,
    PlayerNotFound,
    RaffleFull,
    RandomnessRequestFailed,
    ReentrantCall,
    RequestNotStale,
    RoundClosed,
    UnknownRequest,
    UpkeepNotNeeded,
)
from ..models import RaffleState, RoundState
from .ledger import RaffleLedger
from .payouts import LedgerPayoutGateway, PayoutGateway, Web3PayoutGateway
from .randomness import LocalRandomnessOracle, RandomnessOracle, RandomnessRequest
from .upkeep import UpkeepStatus, evaluate_upkeep
from .vrf import VrfCoordinatorClient


def _checksum(address: object) -> Optional[str]:
    if not isinstance(address, str) or not Web3.is_address(address):
        return None
    return Web3.to_checksum_address(address)


class RaffleService:
    """Single-round raffle: entries, upkeep, randomness request and payout.

    Every public method is one unit of work. Operations are serialized inside
    the process and the state row is locked for update across processes, so
    a failure anywhere leaves no partial effect behind.
    """

    def __init__(
        self,
        config: RaffleConfig,
        oracle: RandomnessOracle,
        payouts: PayoutGateway,
        session_factory: Optional[SessionFactory] = None,
        clock: Clock = system_clock,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if _checksum(oracle.coordinator) != config.coordinator_address:
            raise InvalidConfiguration(
                f"oracle coordinator {oracle.coordinator} does not match {config.coordinator_address}"
            )
        self._config = config
        self._oracle = oracle
        self._payouts = payouts
        self._session_factory = session_factory
        self._clock = clock
        self._logger = logger or logging.getLogger("chainraffle.raffle")
        self._lock = threading.RLock()
        self._active_operation: Optional[str] = None

        with self._operation("construct") as ledger:
            state = ledger.load_state(self._clock())
            self._logger.info(
                "Raffle ready: state=%s round=%s fee=%s interval=%ss",
                state.state,
                state.round_id,
                config.entrance_fee,
                config.interval,
            )

    @contextmanager
    def _operation(self, name: str) -> Iterator[RaffleLedger]:
        with self._lock:
            if self._active_operation is not None:
                raise ReentrantCall(name)
            self._active_operation = name
            try:
                with session_scope(self._session_factory) as session:
                    yield RaffleLedger(session)
            finally:
                self._active_operation = None

    @property
    def config(self) -> RaffleConfig:
        return self._config

    @property
    def oracle(self) -> RandomnessOracle:
        return self._oracle

    @property
    def payouts(self) -> PayoutGateway:
        return self._payouts

    # ------------------------------------------------------------------ #
    # Entries
    # ------------------------------------------------------------------ #

    def enter(self, participant: str, amount: int) -> int:
        """Add one entry for ``participant`` and return its ledger index."""
        player = _checksum(participant)
        if player is None:
            raise InvalidParticipant(participant)
        amount = int(amount)

        with self._operation("enter") as ledger:
            state = ledger.load_state(self._clock(), for_update=True)
            if state.state != RoundState.OPEN.value:
                raise RoundClosed(state.state)
            if amount < self._config.entrance_fee:
                raise InsufficientPayment(amount, self._config.entrance_fee)
            count = ledger.count(state.round_id)
            if self._config.max_entries and count >= self._config.max_entries:
                raise RaffleFull(self._config.max_entries)
            ledger.append(state.round_id, player, amount)
            round_id = state.round_id

        self._logger.info("Entered round %s: %s paid %s", round_id, player, amount)
        signals.entered.send(self, participant=player)
        return count

    # ------------------------------------------------------------------ #
    # Upkeep
    # ------------------------------------------------------------------ #

    def _evaluate(
        self, ledger: RaffleLedger, now: int, for_update: bool = False
    ) -> Tuple[RaffleState, UpkeepStatus]:
        state = ledger.load_state(now, for_update=for_update)
        status = evaluate_upkeep(
            state=state.state,
            last_timestamp=state.last_timestamp,
            player_count=ledger.count(state.round_id),
            balance=ledger.balance(state.round_id),
            now=now,
            interval=self._config.interval,
        )
        return state, status

    def check_upkeep(self, check_data: bytes = b"") -> UpkeepStatus:
        with self._operation("check_upkeep") as ledger:
            _, status = self._evaluate(ledger, self._clock())
        return status

    def check_upkeep_result(self, check_data: bytes = b"") -> Tuple[bool, bytes]:
        return self.check_upkeep(check_data).upkeep_needed, b""

    def _build_request(self) -> RandomnessRequest:
        return RandomnessRequest(
            key_hash=self._config.key_hash,
            subscription_id=self._config.subscription_id,
            request_confirmations=self._config.request_confirmations,
            callback_gas_limit=self._config.callback_gas_limit,
            num_words=self._config.num_words,
            native_payment=False,
        )

    def perform_upkeep(self, perform_data: bytes = b"") -> str:
        """Close the round and ask the oracle for randomness."""
        now = self._clock()
        with self._operation("perform_upkeep") as ledger:
            state, status = self._evaluate(ledger, now, for_update=True)
            if not status.upkeep_needed:
                raise UpkeepNotNeeded(status.balance, status.player_count, status.state)

            state.state = RoundState.CALCULATING.value
            ledger.flush()

            try:
                request_id = self._oracle.request_random_words(self._build_request())
            except Exception as exc:
                self._logger.exception("Randomness request failed for round %s", state.round_id)
                raise RandomnessRequestFailed(str(exc)) from exc

            state.pending_request_id = str(request_id)
            state.pending_since = now
            round_id = state.round_id

        self._logger.info(
            "Round %s calculating: request %s (players=%s, balance=%s)",
            round_id,
            request_id,
            status.player_count,
            status.balance,
        )
        return str(request_id)

    # ------------------------------------------------------------------ #
    # Fulfillment
    # ------------------------------------------------------------------ #

    def handle_fulfillment(self, caller: Optional[str], request_id: str, random_words: Sequence[int]) -> str:
        """Entry point for the oracle; only the coordinator may deliver words."""
        if _checksum(caller) != self._config.coordinator_address:
            raise OnlyCoordinatorCanFulfill(caller, self._config.coordinator_address)
        return self.fulfill_random_words(request_id, random_words)

    def fulfill_random_words(self, request_id: str, random_words: Sequence[int]) -> str:
        request_id = str(request_id)
        now = self._clock()

        with self._operation("fulfill_random_words") as ledger:
            state = ledger.load_state(now, for_update=True)
            if state.pending_request_id is None or state.pending_request_id != request_id:
                raise UnknownRequest(request_id, state.pending_request_id)
            if state.state != RoundState.CALCULATING.value:
                raise InvariantViolation(
                    "pending request outside CALCULATING",
                    {"state": state.state, "request_id": request_id},
                )
            if not random_words:
                raise InvalidRandomness("no random words delivered")
            word = int(random_words[0])
            if word < 0:
                raise InvalidRandomness("random words must be unsigned")

            entrants = ledger.entrants(state.round_id)
            if not entrants:
                raise InvariantViolation("no entrants to pick a winner from", {"round_id": state.round_id})
            winner = entrants[word % len(entrants)]
            amount = ledger.balance(state.round_id)
            round_id = state.round_id

            ledger.record_round(state, winner, amount, len(entrants), request_id, word)
            payout = ledger.record_payout(round_id, winner, amount)
            state.recent_winner = winner
            state.state = RoundState.OPEN.value
            ledger.clear(state)
            state.last_timestamp = now
            state.pending_request_id = None
            state.pending_since = None
            ledger.flush()

            # Funds move only after the bookkeeping above; any failure rolls it back.
            try:
                payout.tx_ref = self._payouts.transfer(winner, amount)
            except Exception as exc:
                self._logger.error("Payout of %s to %s failed in round %s: %s", amount, winner, round_id, exc)
                raise PayoutFailed(winner, amount, str(exc)) from exc

        self._logger.info("Round %s won by %s (payout=%s, request=%s)", round_id, winner, amount, request_id)
        signals.winner_picked.send(self, winner=winner, amount=amount, round_id=round_id)
        return winner

    def cancel_stale_request(self, operator: str = "operator") -> str:
        """Give up on a request the oracle never answered; the pool rolls over."""
        now = self._clock()
        timeout = self._config.request_timeout
        with self._operation("cancel_stale_request") as ledger:
            state = ledger.load_state(now, for_update=True)
            pending_since = state.pending_since
            if (
                state.state != RoundState.CALCULATING.value
                or pending_since is None
                or timeout == 0
                or now - pending_since < timeout
            ):
                raise RequestNotStale(state.state, pending_since, timeout)
            cancelled = state.pending_request_id
            state.state = RoundState.OPEN.value
            state.pending_request_id = None
            state.pending_since = None

        self._oracle.cancel(cancelled)
        self._logger.warning("%s cancelled stale request %s pending since %s", operator, cancelled, pending_since)
        return cancelled

    # ------------------------------------------------------------------ #
    # Read accessors
    # ------------------------------------------------------------------ #

    def get_entrance_fee(self) -> int:
        return self._config.entrance_fee

    def get_interval(self) -> int:
        return self._config.interval

    def get_coordinator(self) -> str:
        return self._config.coordinator_address

    def get_key_hash(self) -> str:
        return self._config.key_hash

    def get_subscription_id(self) -> int:
        return self._config.subscription_id

    def get_callback_gas_limit(self) -> int:
        return self._config.callback_gas_limit

    def get_request_confirmations(self) -> int:
        return self._config.request_confirmations

    def get_num_words(self) -> int:
        return self._config.num_words

    def get_raffle_state(self) -> RoundState:
        with self._operation("get_raffle_state") as ledger:
            return ledger.load_state(self._clock()).round_state

    def get_player(self, index: int) -> str:
        with self._operation("get_player") as ledger:
            state = ledger.load_state(self._clock())
            player = ledger.entrant_at(state.round_id, index)
            if player is None:
                raise PlayerNotFound(index, ledger.count(state.round_id))
            return player

    def get_players(self) -> List[str]:
        with self._operation("get_players") as ledger:
            state = ledger.load_state(self._clock())
            return ledger.entrants(state.round_id)

    def get_number_of_players(self) -> int:
        with self._operation("get_number_of_players") as ledger:
            state = ledger.load_state(self._clock())
            return ledger.count(state.round_id)

    def get_recent_winner(self) -> Optional[str]:
        with self._operation("get_recent_winner") as ledger:
            return ledger.load_state(self._clock()).recent_winner

    def get_last_timestamp(self) -> int:
        with self._operation("get_last_timestamp") as ledger:
            return ledger.load_state(self._clock()).last_timestamp

    def get_balance(self) -> int:
        with self._operation("get_balance") as ledger:
            state = ledger.load_state(self._clock())
            return ledger.balance(state.round_id)

    def get_pending_request(self) -> Optional[str]:
        with self._operation("get_pending_request") as ledger:
            return ledger.load_state(self._clock()).pending_request_id

    def snapshot(self) -> dict:
        with self._operation("snapshot") as ledger:
            state = ledger.load_state(self._clock())
            payload = state.to_dict()
            payload["player_count"] = ledger.count(state.round_id)
            payload["balance"] = str(ledger.balance(state.round_id))
        payload["entrance_fee"] = str(self._config.entrance_fee)
        payload["interval"] = self._config.interval
        return payload

    def list_rounds(self, limit: Optional[int] = None) -> List[dict]:
        with self._operation("list_rounds") as ledger:
            return ledger.rounds(limit)


def build_raffle_service(
    settings: AppSettings,
    session_factory: Optional[SessionFactory] = None,
    clock: Clock = system_clock,
) -> RaffleService:
    config = settings.raffle

    oracle: RandomnessOracle
    if settings.oracle_mode == "vrf":
        oracle = VrfCoordinatorClient.from_artifact(
            settings.web3.rpc_url,
            config.coordinator_address,
            settings.web3.vrf_abi_path,
            signer_key=settings.web3.signer_key,
            chain_id=settings.web3.chain_id,
        )
    else:
        oracle = LocalRandomnessOracle(config.coordinator_address)

    payouts: PayoutGateway
    if settings.payout_mode == "web3":
        payouts = Web3PayoutGateway.from_settings(
            settings.web3.rpc_url, settings.web3.signer_key, chain_id=settings.web3.chain_id
        )
    else:
        payouts = LedgerPayoutGateway()

    service = RaffleService(config, oracle, payouts, session_factory=session_factory, clock=clock)
    if isinstance(oracle, LocalRandomnessOracle):
        oracle.bind(service.handle_fulfillment)
    return service
