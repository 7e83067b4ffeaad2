from __future__ import annotations

import os
from dataclasses import dataclass
from dotenv import load_dotenv

from .project_constants import (
    DEFAULT_COMMITMENT,
    DEFAULT_POLL_INTERVAL_S,
    DEFAULT_TX_TIMEOUT_MS,
)

COMMITMENTS = ("processed", "confirmed", "finalized")


@dataclass(frozen=True)
class Settings:
    rpc_url: str
    fair_launch_id: str | None = None
    candy_machine_id: str | None = None
    tx_timeout_ms: int = DEFAULT_TX_TIMEOUT_MS
    commitment: str = DEFAULT_COMMITMENT
    poll_interval_s: float = DEFAULT_POLL_INTERVAL_S

    @staticmethod
    def from_env(
        rpc_url_override: str | None = None,
        fair_launch_override: str | None = None,
    ) -> "Settings":
        load_dotenv()

        commitment = os.getenv("COMMITMENT", DEFAULT_COMMITMENT).strip().lower()
        if commitment not in COMMITMENTS:
            raise RuntimeError(
                f"COMMITMENT must be one of {', '.join(COMMITMENTS)} "
                f"(got {commitment!r})."
            )

        try:
            tx_timeout_ms = int(os.getenv("TX_TIMEOUT_MS", str(DEFAULT_TX_TIMEOUT_MS)))
            poll_interval_s = float(
                os.getenv("POLL_INTERVAL_S", str(DEFAULT_POLL_INTERVAL_S))
            )
        except ValueError as e:
            raise RuntimeError(f"Invalid numeric setting in environment: {e}") from e

        fair_launch_id = (
            fair_launch_override or os.getenv("FAIR_LAUNCH_ID", "").strip() or None
        )
        candy_machine_id = os.getenv("CANDY_MACHINE_ID", "").strip() or None

        return Settings(
            rpc_url=_resolve_rpc_url(rpc_url_override),
            fair_launch_id=fair_launch_id,
            candy_machine_id=candy_machine_id,
            tx_timeout_ms=tx_timeout_ms,
            commitment=commitment,
            poll_interval_s=poll_interval_s,
        )


def _resolve_rpc_url(rpc_url_override: str | None) -> str:
    # If user provides --rpc-url, trust it.
    if rpc_url_override:
        return rpc_url_override

    env_rpc = os.getenv("RPC_URL", "").strip()
    if env_rpc:
        return env_rpc

    helius_key = os.getenv("HELIUS_API_KEY", "").strip()
    if not helius_key:
        raise RuntimeError(
            "Missing HELIUS_API_KEY (or RPC_URL). Put it in .env or export it."
        )

    return f"https://mainnet.helius-rpc.com/?api-key={helius_key}"
