from __future__ import annotations

import json
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

from .errors import ProviderUnavailable
from .models import Holder, TokenMetadata
from .project_constants import (
    DEFAULT_DECIMALS,
    HELIUS_MIN_INTERVAL_S,
    HELIUS_PAGE_SIZE,
    MAX_HOLDERS,
)
from .throttle import Deadline, RateLimiter

log = logging.getLogger(__name__)


def to_ui_amount(raw_amount: int, decimals: int) -> Decimal:
    return Decimal(int(raw_amount)).scaleb(-int(decimals))


class RpcClient:
    """Solana JSON-RPC client (Helius endpoint, including DAS methods).

    Serves as the fallback holder provider: DAS `getTokenAccounts` pages with
    an opaque cursor and signals the last page by omitting it.
    """

    name = "helius"

    def __init__(
        self,
        rpc_url: str,
        timeout_s: float = 60.0,
        limiter: Optional[RateLimiter] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.client = httpx.Client(timeout=timeout_s, transport=transport)
        self.limiter = limiter or RateLimiter(HELIUS_MIN_INTERVAL_S)
        self._decimals: Dict[str, int] = {}

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "RpcClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _post(self, method: str, params: Any) -> Dict[str, Any]:
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        try:
            resp = self.client.post(self.rpc_url, json=payload)
        except httpx.HTTPError as e:
            raise ProviderUnavailable(f"{method}: request failed: {e}") from e
        if not resp.is_success:
            raise ProviderUnavailable(
                f"{method}: HTTP {resp.status_code}", status_code=resp.status_code
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderUnavailable(f"{method}: invalid JSON response") from e
        if "error" in data:
            raise ProviderUnavailable(f"{method}: RPC error: {data['error']}")
        return data

    def get_slot(self, commitment: str = "finalized") -> int:
        """Returns the current slot."""
        data = self._post("getSlot", [{"commitment": commitment}])
        return int(data["result"])

    def get_block_time(self, slot: int) -> int:
        """Returns the Unix timestamp for a given slot."""
        data = self._post("getBlockTime", [slot])
        if data.get("result") is None:
            raise ProviderUnavailable(f"Timestamp not available for slot {slot}")
        return int(data["result"])

    def get_blockhash_for_slot(self, slot: int) -> str:
        data = self._post(
            "getBlock",
            [slot, {"encoding": "json", "transactionDetails": "none", "rewards": False}],
        )
        result = data.get("result")
        if not result or "blockhash" not in result:
            raise ProviderUnavailable(f"Slot {slot}: getBlock returned no blockhash.")
        return result["blockhash"]

    def get_asset(self, mint: str) -> Optional[Dict[str, Any]]:
        return self._post("getAsset", {"id": mint}).get("result")

    def get_token_accounts_page(
        self, mint: str, limit: int = HELIUS_PAGE_SIZE, cursor: Optional[str] = None
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"mint": mint, "limit": limit}
        if cursor:
            params["cursor"] = cursor
        return self._post("getTokenAccounts", params).get("result") or {}

    def token_metadata(self, mint: str) -> Optional[TokenMetadata]:
        try:
            asset = self.get_asset(mint)
        except ProviderUnavailable as e:
            log.warning("[helius] getAsset failed for %s: %s", mint, e)
            return None
        if not asset:
            return None

        meta = (asset.get("content") or {}).get("metadata") or {}
        token_info = asset.get("token_info") or {}
        decimals = int(token_info.get("decimals") or DEFAULT_DECIMALS)
        self._decimals[mint] = decimals
        return TokenMetadata(
            symbol=meta.get("symbol") or "UNKNOWN",
            name=meta.get("name") or "Unknown Token",
            decimals=decimals,
            supply=to_ui_amount(int(token_info.get("supply") or 0), decimals),
        )

    def _decimals_for(self, mint: str) -> int:
        if mint not in self._decimals:
            meta = self.token_metadata(mint)
            self._decimals[mint] = meta.decimals if meta else DEFAULT_DECIMALS
        return self._decimals[mint]

    def fetch_holders(
        self,
        mint: str,
        max_holders: int = MAX_HOLDERS,
        deadline: Optional[Deadline] = None,
    ) -> List[Holder]:
        holders: List[Holder] = []
        cursor: Optional[str] = None

        log.info("[helius] Fetching holders for %s...", mint)

        while len(holders) < max_holders:
            if deadline is not None and deadline.check():
                log.warning("[helius] Deadline reached after %d holders", len(holders))
                break

            self.limiter.wait()
            try:
                result = self.get_token_accounts_page(mint, HELIUS_PAGE_SIZE, cursor)
            except ProviderUnavailable as e:
                log.error("[helius] Failed: %s", e)
                break

            accounts = result.get("token_accounts") or []
            if not accounts:
                log.info("[helius] No more accounts")
                break

            for acc in accounts:
                try:
                    amount = int(acc.get("amount") or 0)
                    owner = acc["owner"]
                except (AttributeError, KeyError, TypeError, ValueError):
                    log.warning("[helius] Skipping malformed token account: %r", acc)
                    continue
                if amount <= 0:
                    continue
                decimals = acc.get("decimals")
                if decimals is None:
                    decimals = self._decimals_for(mint)
                holders.append(Holder(owner, to_ui_amount(amount, decimals)))

            log.info("[helius] Fetched %d holders...", len(holders))

            cursor = result.get("cursor")
            if not cursor:
                break

        holders.sort(key=lambda h: h.balance, reverse=True)
        log.info("[helius] Total holders fetched: %d", len(holders))
        return holders[:max_holders]


def load_seed_from_block_feed_file(path: str, slot_hint: Optional[int] = None) -> str:
    """
    Supports:
    1) Raw blockhash string in file
    2) JSON object containing:
       - {"blockhash": "..."}
       - {"result": {"blockhash": "..."}}
       - {"slot": 123, "blockhash": "..."}   (optionally verified against slot_hint)
       - {"blocks": {"123": {"blockhash": "..."}}}  (optionally with slot_hint)
    """
    with open(path, "r", encoding="utf-8") as f:
        raw = f.read().strip()

    if raw and raw[0] != "{":
        return raw

    try:
        j = json.loads(raw)
    except ValueError as e:
        raise RuntimeError(f"Block feed file is not valid JSON or raw string: {e}")

    if isinstance(j, dict):
        if isinstance(j.get("blockhash"), str):
            if slot_hint is not None and "slot" in j and int(j["slot"]) != int(slot_hint):
                raise RuntimeError(
                    f"Block feed slot mismatch: file slot={j['slot']} vs expected slot={slot_hint}"
                )
            return j["blockhash"]

        if isinstance(j.get("result"), dict) and isinstance(
            j["result"].get("blockhash"), str
        ):
            return j["result"]["blockhash"]

        # A feed of many blocks
        if slot_hint is not None and isinstance(j.get("blocks"), dict):
            block_obj = j["blocks"].get(str(int(slot_hint)))
            if isinstance(block_obj, dict) and isinstance(block_obj.get("blockhash"), str):
                return block_obj["blockhash"]

    raise RuntimeError(
        "Could not find a blockhash in block feed file. "
        "Expected raw string or JSON with blockhash/result.blockhash/(blocks[slot].blockhash)."
    )
