from __future__ import annotations

import os
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from web3 import Web3

from .errors import InvalidConfiguration

ZERO_ADDRESS = "0x" + "0" * 40
DEFAULT_VRF_ABI_PATH = os.path.join(os.path.dirname(__file__), "abi", "VRFCoordinatorV2_5.json")

_KEY_HASH_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")


@dataclass(frozen=True)
class FlaskSettings:
    secret_key: str = "chainraffle-dev-secret"
    debug: bool = True


@dataclass(frozen=True)
class RaffleConfig:
    """Immutable round parameters fixed when the raffle is constructed."""

    entrance_fee: int
    interval: int
    coordinator_address: str
    key_hash: str
    subscription_id: int = 0
    callback_gas_limit: int = 500000
    request_confirmations: int = 3
    num_words: int = 1
    request_timeout: int = 3600
    max_entries: int = 0

    def __post_init__(self) -> None:
        if self.entrance_fee < 0:
            raise InvalidConfiguration("entrance fee must not be negative")
        if self.interval < 0:
            raise InvalidConfiguration("interval must not be negative")
        if not self.coordinator_address or not Web3.is_address(self.coordinator_address):
            raise InvalidConfiguration(f"invalid coordinator address: {self.coordinator_address!r}")
        checksummed = Web3.to_checksum_address(self.coordinator_address)
        if checksummed == Web3.to_checksum_address(ZERO_ADDRESS):
            raise InvalidConfiguration("coordinator address must not be the zero address")
        # Frozen dataclass: bypass __setattr__ to store the normalised value.
        object.__setattr__(self, "coordinator_address", checksummed)
        if not _KEY_HASH_RE.match(self.key_hash or ""):
            raise InvalidConfiguration("key hash must be a 32-byte hex string")
        if self.subscription_id < 0:
            raise InvalidConfiguration("subscription id must not be negative")
        if self.callback_gas_limit <= 0:
            raise InvalidConfiguration("callback gas limit must be positive")
        if self.request_confirmations < 0:
            raise InvalidConfiguration("request confirmations must not be negative")
        if self.num_words != 1:
            raise InvalidConfiguration("exactly one random word is requested per round")
        if self.request_timeout < 0 or self.max_entries < 0:
            raise InvalidConfiguration("request timeout and max entries must not be negative")


@dataclass(frozen=True)
class Web3Settings:
    rpc_url: Optional[str] = None
    signer_key: Optional[str] = None
    chain_id: Optional[int] = None
    vrf_abi_path: str = DEFAULT_VRF_ABI_PATH


@dataclass(frozen=True)
class AppSettings:
    flask: FlaskSettings
    raffle: RaffleConfig
    web3: Web3Settings
    database_url: str
    oracle_mode: str = "local"
    payout_mode: str = "ledger"
    admin_api_key: Optional[str] = None
    oracle_api_key: Optional[str] = None


def _require(key: str) -> str:
    value = os.getenv(key)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {key}")
    return value


def _int_from_env(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value == "":
        return default
    return int(value)


@lru_cache(maxsize=1)
def load_settings(dotenv_path: Optional[str] = None) -> AppSettings:
    if dotenv_path:
        load_dotenv(dotenv_path)
    else:
        load_dotenv()

    flask_settings = FlaskSettings(
        secret_key=os.getenv("FLASK_SECRET_KEY", "chainraffle-dev-secret"),
        debug=os.getenv("FLASK_DEBUG", "1") == "1",
    )

    raffle_config = RaffleConfig(
        entrance_fee=_int_from_env("RAFFLE__ENTRANCE_FEE_WEI", 10**16),
        interval=_int_from_env("RAFFLE__INTERVAL_SECONDS", 30),
        coordinator_address=_require("VRF__COORDINATOR_ADDRESS"),
        key_hash=_require("VRF__KEY_HASH"),
        subscription_id=_int_from_env("VRF__SUBSCRIPTION_ID", 0),
        callback_gas_limit=_int_from_env("VRF__CALLBACK_GAS_LIMIT", 500000),
        request_confirmations=_int_from_env("VRF__REQUEST_CONFIRMATIONS", 3),
        request_timeout=_int_from_env("RAFFLE__REQUEST_TIMEOUT_SECONDS", 3600),
        max_entries=_int_from_env("RAFFLE__MAX_ENTRIES", 0),
    )

    chain_id = os.getenv("CHAIN_ID")
    web3_settings = Web3Settings(
        rpc_url=os.getenv("RPC_URL"),
        signer_key=os.getenv("SIGNER_PRIVATE_KEY"),
        chain_id=int(chain_id) if chain_id else None,
        vrf_abi_path=os.getenv("VRF__ABI_PATH", DEFAULT_VRF_ABI_PATH),
    )

    oracle_mode = os.getenv("ORACLE_MODE", "local").strip().lower()
    payout_mode = os.getenv("PAYOUT_MODE", "ledger").strip().lower()
    if oracle_mode not in {"local", "vrf"}:
        raise RuntimeError(f"Unsupported ORACLE_MODE: {oracle_mode}")
    if payout_mode not in {"ledger", "web3"}:
        raise RuntimeError(f"Unsupported PAYOUT_MODE: {payout_mode}")

    return AppSettings(
        flask=flask_settings,
        raffle=raffle_config,
        web3=web3_settings,
        database_url=os.getenv("DATABASE_URL", "sqlite:///chainraffle.db"),
        oracle_mode=oracle_mode,
        payout_mode=payout_mode,
        admin_api_key=os.getenv("ADMIN_API_KEY"),
        oracle_api_key=os.getenv("ORACLE_API_KEY"),
    )
