from __future__ import annotations

from typing import Any, List, Optional, Tuple

from eth_abi import encode
from web3 import Web3
from web3.contract import Contract
from web3.logs import DISCARD

from .blockchain import TransactionSender, connect, load_artifact
from .randomness import RandomnessOracle, RandomnessRequest

EXTRA_ARGS_V1_TAG = Web3.keccak(text="VRF ExtraArgsV1")[:4]


def encode_extra_args(native_payment: bool) -> bytes:
    """``abi.encodeWithSelector(EXTRA_ARGS_V1_TAG, ExtraArgsV1(nativePayment))``."""
    return bytes(EXTRA_ARGS_V1_TAG) + encode(["bool"], [native_payment])


def expand_random_words(output_seed: int, num_words: int) -> List[int]:
    """Words the coordinator derives from a proof output: ``keccak256(abi.encode(seed, i))``."""
    return [
        int.from_bytes(Web3.keccak(encode(["uint256", "uint256"], [output_seed, i])), "big")
        for i in range(num_words)
    ]


def build_request_tuple(request: RandomnessRequest) -> Tuple[Any, ...]:
    return (
        Web3.to_bytes(hexstr=request.key_hash),
        int(request.subscription_id),
        int(request.request_confirmations),
        int(request.callback_gas_limit),
        int(request.num_words),
        encode_extra_args(request.native_payment),
    )


class VrfCoordinatorClient(RandomnessOracle):
    """Submits randomness requests to an on-chain VRF v2.5 coordinator."""

    def __init__(self, contract: Contract, sender: TransactionSender) -> None:
        self._contract = contract
        self._sender = sender

    @classmethod
    def from_artifact(
        cls,
        rpc_url: Optional[str],
        coordinator_address: str,
        artifact_path: str,
        signer_key: Optional[str] = None,
        chain_id: Optional[int] = None,
    ) -> "VrfCoordinatorClient":
        abi = load_artifact(artifact_path)["abi"]
        web3 = connect(rpc_url)
        contract = web3.eth.contract(address=Web3.to_checksum_address(coordinator_address), abi=abi)
        return cls(contract, TransactionSender(web3, signer_key, chain_id=chain_id))

    @property
    def coordinator(self) -> str:
        return self._contract.address

    def request_random_words(self, request: RandomnessRequest) -> str:
        fn = self._contract.functions.requestRandomWords(build_request_tuple(request))
        tx_meta = self._sender.send({"from": self._sender.address}, fn=fn)

        request_id = self._extract_request_id(tx_meta["receipt"])
        if request_id is None:
            raise RuntimeError(f"RandomWordsRequested log missing from {tx_meta['tx_hash']}")
        return str(request_id)

    def _extract_request_id(self, receipt) -> Optional[int]:
        events = self._contract.events.RandomWordsRequested().process_receipt(receipt, errors=DISCARD)
        if events:
            return int(events[0]["args"]["requestId"])
        return None


class VrfFulfillmentReader:
    """Finds coordinator fulfillments of requests sent from a plain account.

    The coordinator's callback into an account without code delivers
    nothing, so the words are rebuilt from the ``RandomWordsFulfilled`` log.
    """

    def __init__(self, web3: Web3, contract: Contract, lookback_blocks: int = 5000) -> None:
        self._web3 = web3
        self._contract = contract
        self._lookback_blocks = lookback_blocks

    @classmethod
    def from_artifact(
        cls,
        rpc_url: Optional[str],
        coordinator_address: str,
        artifact_path: str,
        lookback_blocks: int = 5000,
    ) -> "VrfFulfillmentReader":
        abi = load_artifact(artifact_path)["abi"]
        web3 = connect(rpc_url)
        contract = web3.eth.contract(address=Web3.to_checksum_address(coordinator_address), abi=abi)
        return cls(web3, contract, lookback_blocks=lookback_blocks)

    def random_words_for(self, request_id: str, num_words: int = 1) -> Optional[List[int]]:
        """Words delivered for ``request_id``, or ``None`` while it is unanswered."""
        latest = self._web3.eth.block_number
        events = self._contract.events.RandomWordsFulfilled().get_logs(
            argument_filters={"requestId": int(request_id)},
            from_block=max(0, latest - self._lookback_blocks),
            to_block=latest,
        )
        if not events:
            return None
        return expand_random_words(int(events[-1]["args"]["outputSeed"]), num_words)
