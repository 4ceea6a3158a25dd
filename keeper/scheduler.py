from __future__ import annotations

import asyncio
import json
import logging
import pathlib
import time
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

from .config import KeeperSettings
from .types import UpkeepResult, UpkeepSnapshot


class RaffleClientProtocol(Protocol):
    async def check_upkeep(self) -> UpkeepSnapshot:
        ...

    async def perform_upkeep(self) -> Optional[UpkeepResult]:
        ...

    async def get_pending_request(self) -> Optional[str]:
        ...

    async def fulfill(self, request_id: str, random_words: Sequence[int]) -> Optional[str]:
        ...

    async def close(self) -> None:
        ...


class FulfillmentSource(Protocol):
    def random_words_for(self, request_id: str, num_words: int = 1) -> Optional[List[int]]:
        ...


@dataclass
class KeeperRunResult:
    request_id: str
    player_count: int
    balance: int


class KeeperStateStore:
    """Remembers the last request this keeper triggered."""

    def __init__(self, path: str) -> None:
        self._path = pathlib.Path(path)

    def load_last_request(self) -> Optional[str]:
        if not self._path.exists():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return None
        return data.get("last_request_id")

    def save_last_request(self, request_id: str) -> None:
        payload = {"last_request_id": request_id, "triggered_at": int(time.time())}
        self._path.write_text(json.dumps(payload), encoding="utf-8")


class KeeperScheduler:
    def __init__(
        self,
        settings: KeeperSettings,
        client: RaffleClientProtocol,
        logger: Optional[logging.Logger] = None,
        fulfillments: Optional[FulfillmentSource] = None,
    ) -> None:
        self._settings = settings
        self._client = client
        self._fulfillments = fulfillments
        self._state = KeeperStateStore(settings.state_file)
        self._last_request_id = self._state.load_last_request()
        self._logger = logger or logging.getLogger("chainraffle.keeper")

    @property
    def last_request_id(self) -> Optional[str]:
        return self._last_request_id

    async def run_forever(self) -> None:
        interval = self._settings.poll_interval_seconds
        self._logger.info("Keeper loop started; poll interval=%s", interval)
        while True:
            try:
                await self._tick()
            except Exception as exc:
                self._logger.exception("Keeper iteration failed: %s", exc)
            await asyncio.sleep(interval)

    async def run_once(self) -> Optional[KeeperRunResult]:
        try:
            return await self._tick()
        finally:
            await self._client.close()

    async def _tick(self) -> Optional[KeeperRunResult]:
        if self._fulfillments is not None:
            await self._relay_fulfillment()
        return await self._attempt_upkeep()

    async def _relay_fulfillment(self) -> Optional[str]:
        request_id = await self._client.get_pending_request()
        if request_id is None:
            return None

        words = await asyncio.to_thread(self._fulfillments.random_words_for, request_id)
        if words is None:
            self._logger.debug("Request %s not fulfilled by the coordinator yet.", request_id)
            return None

        winner = await self._client.fulfill(request_id, words)
        if winner is None:
            self._logger.info("Request %s is no longer pending; fulfillment dropped.", request_id)
            return None
        self._logger.info("Relayed fulfillment of request %s; winner=%s", request_id, winner)
        return winner

    async def _attempt_upkeep(self) -> Optional[KeeperRunResult]:
        snapshot = await self._client.check_upkeep()
        if not snapshot.upkeep_needed:
            self._logger.debug(
                "Upkeep not needed (state=%s, players=%s, balance=%s, elapsed=%ss).",
                snapshot.state.value,
                snapshot.player_count,
                snapshot.balance,
                snapshot.elapsed,
            )
            return None

        self._logger.info(
            "Upkeep needed: players=%s balance=%s; triggering round.",
            snapshot.player_count,
            snapshot.balance,
        )
        result = await self._client.perform_upkeep()
        if result is None:
            self._logger.info("Another keeper triggered the round first; skipping.")
            return None

        self._logger.info("performUpkeep accepted: request=%s state=%s", result.request_id, result.state.value)
        self._last_request_id = result.request_id
        self._state.save_last_request(result.request_id)

        return KeeperRunResult(
            request_id=result.request_id,
            player_count=snapshot.player_count,
            balance=snapshot.balance,
        )
