from __future__ import annotations

import os
import pathlib
from dataclasses import dataclass, replace
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv


def _bool_from_env(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_from_env(value: Optional[str], default: int) -> int:
    if value is None or value == "":
        return default
    return int(value)


def _require_env(key: str) -> str:
    value = os.getenv(key)
    if value is None or value == "":
        raise RuntimeError(f"Missing required environment variable: {key}")
    return value


@dataclass(frozen=True)
class KeeperSettings:
    raffle_api_url: str
    poll_interval_seconds: int = 30
    run_once: bool = False
    state_file: str = "keeper_state.json"
    request_timeout_seconds: int = 10
    oracle_api_key: Optional[str] = None
    relay_vrf_fulfillments: bool = False
    rpc_url: Optional[str] = None
    vrf_coordinator_address: Optional[str] = None
    vrf_abi_path: Optional[str] = None
    vrf_lookback_blocks: int = 5000

    def copy(self, **updates) -> "KeeperSettings":
        return replace(self, **updates)


def load_from_environment() -> KeeperSettings:
    relay = _bool_from_env(os.getenv("RELAY_VRF_FULFILLMENTS"), False)
    return KeeperSettings(
        raffle_api_url=_require_env("RAFFLE_API_URL").rstrip("/"),
        poll_interval_seconds=_int_from_env(os.getenv("POLL_INTERVAL_SECONDS"), 30),
        run_once=_bool_from_env(os.getenv("RUN_ONCE"), False),
        state_file=os.getenv("STATE_FILE", "keeper_state.json"),
        request_timeout_seconds=_int_from_env(os.getenv("REQUEST_TIMEOUT_SECONDS"), 10),
        oracle_api_key=_require_env("ORACLE_API_KEY") if relay else os.getenv("ORACLE_API_KEY"),
        relay_vrf_fulfillments=relay,
        rpc_url=_require_env("RPC_URL") if relay else os.getenv("RPC_URL"),
        vrf_coordinator_address=(
            _require_env("VRF__COORDINATOR_ADDRESS") if relay else os.getenv("VRF__COORDINATOR_ADDRESS")
        ),
        vrf_abi_path=os.getenv("VRF__ABI_PATH") or None,
        vrf_lookback_blocks=_int_from_env(os.getenv("VRF__LOOKBACK_BLOCKS"), 5000),
    )


@lru_cache(maxsize=1)
def load_config(dotenv_path: Optional[str] = None) -> KeeperSettings:
    if dotenv_path:
        load_dotenv(dotenv_path)
    else:
        default_path = pathlib.Path(".env")
        if default_path.exists():
            load_dotenv(default_path)
    return load_from_environment()
