from __future__ import annotations

from functools import lru_cache

from flask import Blueprint, current_app, jsonify, request

from ..config import load_settings
from ..schemas import (
    EnterRequest,
    EnterResponse,
    FulfillRequest,
    FulfillResponse,
    PerformUpkeepResponse,
    RaffleSummaryResponse,
    UpkeepResponse,
)
from ..services.raffle import RaffleService, build_raffle_service

bp = Blueprint("raffle", __name__)


@lru_cache(maxsize=1)
def get_raffle_service() -> RaffleService:
    return build_raffle_service(load_settings())


def _oracle_token_valid() -> bool:
    expected = load_settings().oracle_api_key
    if not expected:
        return False
    return request.headers.get("X-Oracle-Token") == expected


@bp.get("")
def get_raffle():
    summary = get_raffle_service().snapshot()
    return jsonify(RaffleSummaryResponse(**summary).model_dump())


@bp.post("/enter")
def enter_raffle():
    payload = request.get_json(force=True, silent=True) or {}
    data = EnterRequest(**payload)

    service = get_raffle_service()
    index = service.enter(data.participant, data.amount)
    response = EnterResponse(
        participant=data.participant,
        index=index,
        player_count=service.get_number_of_players(),
    )
    return jsonify(response.model_dump()), 201


@bp.get("/players/<int:index>")
def get_player(index: int):
    player = get_raffle_service().get_player(index)
    return jsonify({"index": index, "participant": player})


@bp.get("/upkeep")
def check_upkeep():
    status = get_raffle_service().check_upkeep()
    return jsonify(UpkeepResponse(**status.to_dict()).model_dump())


@bp.post("/upkeep")
def perform_upkeep():
    service = get_raffle_service()
    request_id = service.perform_upkeep()
    response = PerformUpkeepResponse(request_id=request_id, state=service.get_raffle_state().value)
    return jsonify(response.model_dump())


@bp.post("/fulfill")
def fulfill_random_words():
    if not _oracle_token_valid():
        current_app.logger.warning("Rejected fulfillment from %s", request.remote_addr)
        return jsonify({"error": "unauthorized"}), 403

    payload = request.get_json(force=True, silent=True) or {}
    data = FulfillRequest(**payload)

    # The oracle token is the caller identity over HTTP.
    service = get_raffle_service()
    winner = service.fulfill_random_words(data.request_id, data.random_words)
    response = FulfillResponse(
        request_id=data.request_id,
        winner=winner,
        state=service.get_raffle_state().value,
    )
    return jsonify(response.model_dump())


@bp.get("/rounds")
def list_rounds():
    limit = request.args.get("limit", type=int)
    return jsonify(get_raffle_service().list_rounds(limit))
