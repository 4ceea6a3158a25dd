from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from ..config import load_settings
from ..schemas import CancelRequestResponse, FulfillResponse, LocalFulfillRequest
from ..services.randomness import LocalRandomnessOracle
from .raffle import get_raffle_service

bp = Blueprint("admin", __name__)


def _require_admin() -> bool:
    # No configured key means no admin access at all.
    api_key = load_settings().admin_api_key
    if not api_key:
        return False
    return request.headers.get("X-Admin-Token") == api_key


@bp.before_request
def verify_admin():
    if not _require_admin():
        return jsonify({"error": "unauthorized"}), 401
    return None


@bp.post("/requests/cancel")
def cancel_stale_request():
    service = get_raffle_service()
    cancelled = service.cancel_stale_request(operator="admin")
    response = CancelRequestResponse(
        cancelled_request_id=cancelled,
        state=service.get_raffle_state().value,
    )
    return jsonify(response.model_dump())


@bp.get("/oracle/pending")
def list_local_requests():
    oracle = get_raffle_service().oracle
    if not isinstance(oracle, LocalRandomnessOracle):
        return jsonify({"error": "local oracle not enabled"}), 400
    return jsonify({"pending": oracle.pending_requests()})


@bp.post("/oracle/fulfill")
def fulfill_local_request():
    service = get_raffle_service()
    oracle = service.oracle
    if not isinstance(oracle, LocalRandomnessOracle):
        return jsonify({"error": "local oracle not enabled"}), 400

    payload = request.get_json(force=True, silent=True) or {}
    data = LocalFulfillRequest(**payload)
    request_id = data.request_id or service.get_pending_request()
    if request_id is None:
        return jsonify({"error": "no pending request"}), 404

    try:
        oracle.fulfill(request_id, data.random_words)
    except KeyError:
        return jsonify({"error": f"request {request_id} unknown to the local oracle"}), 404
    current_app.logger.info("Local oracle fulfilled request %s", request_id)

    response = FulfillResponse(
        request_id=request_id,
        winner=service.get_recent_winner(),
        state=service.get_raffle_state().value,
    )
    return jsonify(response.model_dump())
