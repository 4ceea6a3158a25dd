from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any, Dict, Optional

from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware

DEFAULT_GAS_LIMIT = 250000


def connect(rpc_url: Optional[str]) -> Web3:
    if not rpc_url:
        raise RuntimeError("RPC_URL is not configured.")
    web3 = Web3(Web3.HTTPProvider(rpc_url))
    if not web3.is_connected():
        raise ConnectionError(f"Cannot connect to RPC endpoint: {rpc_url}")

    # Inject PoA middleware to support networks such as Hardhat or Polygon.
    web3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
    return web3


def load_artifact(path: str) -> Dict[str, Any]:
    artifact_path = Path(path)
    if not artifact_path.exists():
        raise FileNotFoundError(f"Contract artifact not found: {artifact_path}")
    with artifact_path.open("r", encoding="utf-8") as fh:
        artifact = json.load(fh)
    if not isinstance(artifact.get("abi"), list):
        raise ValueError(f"ABI not found in artifact: {artifact_path}")
    return artifact


class TransactionSender:
    """Signs, broadcasts and waits for transactions from one account."""

    def __init__(
        self,
        web3: Web3,
        signer_key: Optional[str],
        chain_id: Optional[int] = None,
    ) -> None:
        if not signer_key:
            raise RuntimeError("Blockchain signer not configured; set SIGNER_PRIVATE_KEY in .env")
        self._web3 = web3
        self._account = web3.eth.account.from_key(signer_key)
        self._chain_id = chain_id

    @property
    def web3(self) -> Web3:
        return self._web3

    @property
    def address(self) -> str:
        return self._account.address

    def send(self, tx_params: Dict[str, Any], fn=None) -> Dict[str, Any]:
        """Send a contract call (``fn``) or a plain value transfer."""
        tx_params = dict(tx_params)
        tx_params.setdefault("from", self._account.address)

        try:
            gas_estimate = fn.estimate_gas(tx_params) if fn is not None else self._web3.eth.estimate_gas(tx_params)
        except Exception:  # pragma: no cover - rely on conservative gas limit if estimation fails
            gas_estimate = DEFAULT_GAS_LIMIT

        tx_params.update(
            {
                "nonce": self._web3.eth.get_transaction_count(self._account.address),
                "gas": max(int(math.ceil(gas_estimate * 1.2)), 21000),
                "gasPrice": self._web3.eth.gas_price,
            }
        )
        if self._chain_id is not None:
            tx_params["chainId"] = self._chain_id
        tx = fn.build_transaction(tx_params) if fn is not None else tx_params

        signed = self._account.sign_transaction(tx)
        tx_hash = self._web3.eth.send_raw_transaction(signed.raw_transaction)
        receipt = self._web3.eth.wait_for_transaction_receipt(tx_hash, timeout=180, poll_latency=2)
        if receipt["status"] != 1:
            raise RuntimeError(f"Transaction reverted: {tx_hash.hex()}")
        return {"tx_hash": tx_hash.hex(), "receipt": receipt}
