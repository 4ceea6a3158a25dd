from __future__ import annotations

import abc
import threading
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from web3 import Web3

from .blockchain import TransactionSender, connect


class PayoutGateway(abc.ABC):
    """Moves pooled funds to a winner."""

    @abc.abstractmethod
    def transfer(self, recipient: str, amount: int) -> str:
        """Send ``amount`` to ``recipient`` and return a transfer reference.

        Must raise if the funds did not arrive.
        """


class LedgerPayoutGateway(PayoutGateway):
    """Keeps payee balances in memory; used for local runs and tests.

    Like an on-chain transfer, a credit made here is not undone if the
    surrounding unit of work fails to commit after it returns.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._balances: Dict[str, int] = defaultdict(int)
        self._transfers: List[Tuple[str, int]] = []

    def transfer(self, recipient: str, amount: int) -> str:
        if amount < 0:
            raise ValueError("transfer amount must not be negative")
        with self._lock:
            self._balances[recipient] += amount
            self._transfers.append((recipient, amount))
            return f"ledger-{len(self._transfers)}"

    def balance_of(self, address: str) -> int:
        with self._lock:
            return self._balances.get(address, 0)

    @property
    def transfers(self) -> List[Tuple[str, int]]:
        with self._lock:
            return list(self._transfers)


class Web3PayoutGateway(PayoutGateway):
    """Pays winners with native value transfers from the raffle's account."""

    def __init__(self, sender: TransactionSender) -> None:
        self._sender = sender

    @classmethod
    def from_settings(
        cls, rpc_url: Optional[str], signer_key: Optional[str], chain_id: Optional[int] = None
    ) -> "Web3PayoutGateway":
        return cls(TransactionSender(connect(rpc_url), signer_key, chain_id=chain_id))

    def transfer(self, recipient: str, amount: int) -> str:
        tx_meta = self._sender.send(
            {
                "from": self._sender.address,
                "to": Web3.to_checksum_address(recipient),
                "value": int(amount),
            }
        )
        return tx_meta["tx_hash"]
