"""
Raffle domain errors.

Every error raised by the core aborts the enclosing unit of work; the HTTP
layer turns them into structured JSON responses using ``code``,
``http_status`` and ``context``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class InvalidConfiguration(ValueError):
    """Raffle parameters or oracle linkage are unusable."""


class RaffleError(Exception):
    """Base class for every raffle failure."""

    code = "raffle_error"
    http_status = 400

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message, "context": self.context}


# ============ Entries ============

class InsufficientPayment(RaffleError):
    code = "insufficient_payment"

    def __init__(self, amount: int, entrance_fee: int) -> None:
        super().__init__(
            f"Payment {amount} is below the entrance fee {entrance_fee}",
            {"amount": str(amount), "entrance_fee": str(entrance_fee)},
        )


class InvalidParticipant(RaffleError):
    code = "invalid_participant"

    def __init__(self, participant: object) -> None:
        super().__init__(f"Not a valid participant address: {participant!r}", {"participant": str(participant)})


class RoundClosed(RaffleError):
    code = "round_closed"
    http_status = 409

    def __init__(self, state: str) -> None:
        super().__init__(f"Raffle is not open (state={state})", {"state": state})


class RaffleFull(RaffleError):
    code = "raffle_full"
    http_status = 409

    def __init__(self, max_entries: int) -> None:
        super().__init__(f"Raffle already holds {max_entries} entries", {"max_entries": max_entries})


class PlayerNotFound(RaffleError):
    code = "player_not_found"
    http_status = 404

    def __init__(self, index: int, player_count: int) -> None:
        super().__init__(
            f"No entrant at index {index}",
            {"index": index, "player_count": player_count},
        )


# ============ Upkeep / randomness requests ============

class UpkeepNotNeeded(RaffleError):
    code = "upkeep_not_needed"
    http_status = 409

    def __init__(self, balance: int, player_count: int, state: str) -> None:
        self.balance = balance
        self.player_count = player_count
        self.state = state
        super().__init__(
            f"Upkeep not needed (balance={balance}, players={player_count}, state={state})",
            {"balance": str(balance), "player_count": player_count, "state": state},
        )


class RandomnessRequestFailed(RaffleError):
    code = "randomness_request_failed"
    http_status = 502

    def __init__(self, reason: str) -> None:
        super().__init__(f"Randomness request was not accepted: {reason}", {"reason": reason})


# ============ Fulfillment ============

class OnlyCoordinatorCanFulfill(RaffleError):
    code = "only_coordinator_can_fulfill"
    http_status = 403

    def __init__(self, caller: Optional[str], coordinator: str) -> None:
        super().__init__(
            f"Caller {caller} is not the coordinator {coordinator}",
            {"caller": caller, "coordinator": coordinator},
        )


class UnknownRequest(RaffleError):
    code = "unknown_request"
    http_status = 409

    def __init__(self, request_id: str, pending_request_id: Optional[str]) -> None:
        super().__init__(
            f"Request {request_id} does not match the pending request",
            {"request_id": request_id, "pending_request_id": pending_request_id},
        )


class InvalidRandomness(RaffleError):
    code = "invalid_randomness"

    def __init__(self, reason: str) -> None:
        super().__init__(reason, {})


class PayoutFailed(RaffleError):
    code = "payout_failed"
    http_status = 502

    def __init__(self, winner: str, amount: int, reason: str) -> None:
        super().__init__(
            f"Payout of {amount} to {winner} failed: {reason}",
            {"winner": winner, "amount": str(amount), "reason": reason},
        )


class InvariantViolation(RaffleError):
    """Internal state contradicts an invariant; should be unreachable."""

    code = "invariant_violation"
    http_status = 500


# ============ Operator actions ============

class RequestNotStale(RaffleError):
    code = "request_not_stale"
    http_status = 409

    def __init__(self, state: str, pending_since: Optional[int], request_timeout: int) -> None:
        super().__init__(
            "No pending request can be cancelled yet",
            {"state": state, "pending_since": pending_since, "request_timeout": request_timeout},
        )


class ReentrantCall(RaffleError):
    code = "reentrant_call"
    http_status = 409

    def __init__(self, operation: str) -> None:
        super().__init__(f"{operation} called while another raffle operation is running", {})
