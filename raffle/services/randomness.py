from __future__ import annotations

import abc
import secrets
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from web3 import Web3

from ..errors import UnknownRequest

FulfillmentHandler = Callable[[str, str, Sequence[int]], None]


@dataclass(frozen=True)
class RandomnessRequest:
    """Parameters of a single randomness request, paid from the subscription."""

    key_hash: str
    subscription_id: int
    request_confirmations: int
    callback_gas_limit: int
    num_words: int = 1
    native_payment: bool = False


class RandomnessOracle(abc.ABC):
    """Boundary to the service that supplies verifiable random words."""

    @property
    @abc.abstractmethod
    def coordinator(self) -> str:
        """Identity that is allowed to deliver fulfillments."""

    @abc.abstractmethod
    def request_random_words(self, request: RandomnessRequest) -> str:
        """Submit ``request`` and return the identifier assigned to it.

        Implementations raise if the request was not accepted.
        """

    def cancel(self, request_id: str) -> None:
        """Forget a request the consumer gave up on.

        Remote coordinators cannot withdraw a request, so the default does
        nothing; a late answer is still refused by request id.
        """


class LocalRandomnessOracle(RandomnessOracle):
    """In-process coordinator for development and tests.

    Requests are queued until :meth:`fulfill` is called, which delivers the
    words to the bound consumer using the coordinator identity.
    """

    def __init__(self, coordinator_address: str) -> None:
        self._coordinator = Web3.to_checksum_address(coordinator_address)
        self._lock = threading.Lock()
        self._next_request_id = 1
        self._pending: Dict[str, RandomnessRequest] = {}
        self._consumer: Optional[FulfillmentHandler] = None

    @property
    def coordinator(self) -> str:
        return self._coordinator

    def bind(self, consumer: FulfillmentHandler) -> None:
        self._consumer = consumer

    def request_random_words(self, request: RandomnessRequest) -> str:
        if request.num_words < 1:
            raise ValueError("at least one random word must be requested")
        with self._lock:
            request_id = str(self._next_request_id)
            self._next_request_id += 1
            self._pending[request_id] = request
        return request_id

    def pending_requests(self) -> List[str]:
        with self._lock:
            return list(self._pending)

    def cancel(self, request_id: str) -> None:
        with self._lock:
            self._pending.pop(request_id, None)

    def fulfill(self, request_id: str, words: Optional[Sequence[int]] = None) -> List[int]:
        with self._lock:
            request = self._pending.get(request_id)
        if request is None:
            raise KeyError(f"no pending request {request_id}")
        if self._consumer is None:
            raise RuntimeError("no consumer bound to the local oracle")

        if words is None:
            words = [secrets.randbits(256) for _ in range(request.num_words)]
        delivered = [int(w) for w in words]
        try:
            self._consumer(self._coordinator, request_id, delivered)
        except UnknownRequest:
            # The consumer no longer waits for this id.
            self.cancel(request_id)
            raise

        with self._lock:
            self._pending.pop(request_id, None)
        return delivered
