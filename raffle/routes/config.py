from __future__ import annotations

from flask import Blueprint, jsonify

from ..config import load_settings
from ..schemas import RaffleConfigResponse

bp = Blueprint("config", __name__)


@bp.get("/config")
def get_config():
    settings = load_settings()
    raffle = settings.raffle
    response = RaffleConfigResponse(
        entrance_fee=str(raffle.entrance_fee),
        interval=raffle.interval,
        coordinator=raffle.coordinator_address,
        key_hash=raffle.key_hash,
        subscription_id=str(raffle.subscription_id),
        callback_gas_limit=raffle.callback_gas_limit,
        request_confirmations=raffle.request_confirmations,
        num_words=raffle.num_words,
        request_timeout=raffle.request_timeout,
        oracle_mode=settings.oracle_mode,
        payout_mode=settings.payout_mode,
    )
    return jsonify(response.model_dump())
