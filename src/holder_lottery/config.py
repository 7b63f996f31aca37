from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from .errors import ConfigurationMissing
from .project_constants import HELIUS_RPC_TEMPLATE


@dataclass(frozen=True)
class Settings:
    helius_api_key: str
    rpc_url: str
    birdeye_api_key: Optional[str] = None
    timeout_s: float = 30.0
    history_pages: int = 1

    @staticmethod
    def from_env(rpc_url_override: str | None = None) -> "Settings":
        load_dotenv(find_dotenv(usecwd=True))

        # Transaction history only comes from Helius, so the key is mandatory.
        helius_key = os.getenv("HELIUS_API_KEY", "").strip()
        if not helius_key:
            raise ConfigurationMissing(
                "Missing HELIUS_API_KEY. Put it in .env or export it."
            )

        # --rpc-url wins, then RPC_URL, else the Helius mainnet endpoint.
        rpc_url = (rpc_url_override or os.getenv("RPC_URL", "")).strip()
        if not rpc_url:
            rpc_url = HELIUS_RPC_TEMPLATE.format(api_key=helius_key)

        birdeye_key = os.getenv("BIRDEYE_API_KEY", "").strip() or None

        return Settings(
            helius_api_key=helius_key,
            rpc_url=rpc_url,
            birdeye_api_key=birdeye_key,
            timeout_s=float(os.getenv("LOTTERY_TIMEOUT_S", "30") or 30),
            history_pages=max(1, int(os.getenv("LOTTERY_HISTORY_PAGES", "1") or 1)),
        )
