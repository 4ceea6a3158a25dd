from __future__ import annotations

import asyncio
from typing import Any, Mapping, Optional, Sequence

import requests

from .config import KeeperSettings
from .types import RaffleStatus, UpkeepResult, UpkeepSnapshot


class RaffleApiClient:
    """HTTP wrapper around the raffle service's upkeep endpoints."""

    def __init__(self, settings: KeeperSettings, session: Optional[requests.Session] = None) -> None:
        self._base_url = settings.raffle_api_url.rstrip("/")
        self._timeout = settings.request_timeout_seconds
        self._oracle_api_key = settings.oracle_api_key
        self._session = session or requests.Session()

    async def check_upkeep(self) -> UpkeepSnapshot:
        payload = await asyncio.to_thread(self._get_json, "/raffle/upkeep")
        return self._parse_snapshot(payload)

    async def perform_upkeep(self) -> Optional[UpkeepResult]:
        """Trigger the round; ``None`` when the service says upkeep is not needed."""
        return await asyncio.to_thread(self._sync_perform_upkeep)

    async def get_pending_request(self) -> Optional[str]:
        payload = await asyncio.to_thread(self._get_json, "/raffle")
        pending = payload.get("pending_request_id")
        return str(pending) if pending is not None else None

    async def fulfill(self, request_id: str, random_words: Sequence[int]) -> Optional[str]:
        """Forward delivered words; returns the winner, or ``None`` if the request is no longer pending."""
        return await asyncio.to_thread(self._sync_fulfill, request_id, list(random_words))

    async def close(self) -> None:
        await asyncio.to_thread(self._session.close)

    def _get_json(self, path: str) -> Mapping[str, Any]:
        resp = self._session.get(f"{self._base_url}{path}", timeout=self._timeout)
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, Mapping):
            raise ValueError("Raffle API returned non-object payload")
        return data

    def _sync_perform_upkeep(self) -> Optional[UpkeepResult]:
        resp = self._session.post(f"{self._base_url}/raffle/upkeep", json={}, timeout=self._timeout)
        if resp.status_code == 409:
            body = resp.json()
            if body.get("error") == "upkeep_not_needed":
                return None
            raise RuntimeError(f"performUpkeep rejected: {body}")
        resp.raise_for_status()
        data = resp.json()
        try:
            return UpkeepResult(request_id=str(data["request_id"]), state=RaffleStatus(data["state"]))
        except (KeyError, ValueError) as exc:
            raise ValueError(f"Malformed performUpkeep response: {data}") from exc

    def _sync_fulfill(self, request_id: str, random_words: list) -> Optional[str]:
        if not self._oracle_api_key:
            raise RuntimeError("ORACLE_API_KEY is required to forward fulfillments")
        resp = self._session.post(
            f"{self._base_url}/raffle/fulfill",
            json={"request_id": request_id, "random_words": random_words},
            headers={"X-Oracle-Token": self._oracle_api_key},
            timeout=self._timeout,
        )
        if resp.status_code == 409:
            body = resp.json()
            if body.get("error") == "unknown_request":
                return None
            raise RuntimeError(f"fulfillment rejected: {body}")
        resp.raise_for_status()
        return str(resp.json()["winner"])

    @staticmethod
    def _parse_snapshot(payload: Mapping[str, Any]) -> UpkeepSnapshot:
        try:
            return UpkeepSnapshot(
                upkeep_needed=bool(payload["upkeep_needed"]),
                state=RaffleStatus(payload["state"]),
                player_count=int(payload["player_count"]),
                balance=int(payload["balance"]),
                elapsed=int(payload["elapsed"]),
            )
        except KeyError as exc:
            raise ValueError(f"Missing upkeep field: {exc.args[0]}") from exc
