"""Birdeye API client, the primary holder provider.

The holder list endpoint (/defi/v3/token/holder) requires Birdeye Starter tier
or higher and answers 404 otherwise; that is reported as `TierRestricted` so
the holder source can fall back. Token overview works on the free tier.
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import httpx

from .errors import TierRestricted
from .models import Holder, TokenMetadata
from .project_constants import (
    BIRDEYE_BASE,
    BIRDEYE_MIN_INTERVAL_S,
    BIRDEYE_PAGE_SIZE,
    DEFAULT_DECIMALS,
    MAX_HOLDERS,
)
from .throttle import Deadline, RateLimiter

log = logging.getLogger(__name__)

TIER_RESTRICTED_STATUS = 404


def _parse_holder(item: Any) -> Optional[Holder]:
    if not isinstance(item, dict) or not item.get("owner"):
        return None
    amount = item.get("ui_amount")
    if amount is None:
        return None
    try:
        balance = Decimal(str(amount))
    except InvalidOperation:
        return None
    if not balance.is_finite():
        return None
    return Holder(str(item["owner"]), balance)


class BirdeyeClient:
    name = "birdeye"

    def __init__(
        self,
        api_key: str,
        timeout_s: float = 30.0,
        limiter: Optional[RateLimiter] = None,
        transport: Optional[httpx.BaseTransport] = None,
        base_url: str = BIRDEYE_BASE,
    ) -> None:
        self.client = httpx.Client(
            base_url=base_url,
            timeout=timeout_s,
            transport=transport,
            headers={
                "Accept": "application/json",
                "X-API-KEY": api_key,
                "x-chain": "solana",
            },
        )
        self.limiter = limiter or RateLimiter(BIRDEYE_MIN_INTERVAL_S)

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "BirdeyeClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def fetch_holders(
        self,
        mint: str,
        max_holders: int = MAX_HOLDERS,
        deadline: Optional[Deadline] = None,
    ) -> List[Holder]:
        """Pages through holders by offset until a short or empty page.

        Non-404 failures end pagination and return what was gathered so far.
        """
        holders: List[Holder] = []
        offset = 0

        log.info("[birdeye] Fetching holders for %s...", mint)

        while len(holders) < max_holders:
            if deadline is not None and deadline.check():
                log.warning("[birdeye] Deadline reached at offset %d", offset)
                break

            self.limiter.wait()
            try:
                resp = self.client.get(
                    "/defi/v3/token/holder",
                    params={"address": mint, "offset": offset, "limit": BIRDEYE_PAGE_SIZE},
                )
            except httpx.HTTPError as e:
                log.error("[birdeye] Request failed at offset %d: %s", offset, e)
                break

            if resp.status_code == TIER_RESTRICTED_STATUS:
                log.error("[birdeye] 404 - holder endpoint requires Starter tier or higher")
                raise TierRestricted(
                    "Birdeye holder API requires Starter tier or higher",
                    status_code=resp.status_code,
                )

            if not resp.is_success:
                log.error(
                    "[birdeye] Failed at offset %d: %d - %s",
                    offset,
                    resp.status_code,
                    resp.text[:200],
                )
                break

            try:
                data = resp.json()
            except ValueError:
                log.error("[birdeye] Invalid JSON at offset %d", offset)
                break
            page = data.get("data") if isinstance(data, dict) else None
            items = page.get("items") if isinstance(page, dict) else None
            if not isinstance(items, list) or not items or not data.get("success"):
                log.info("[birdeye] No more holders at offset %d", offset)
                break

            for item in items:
                holder = _parse_holder(item)
                if holder is None:
                    log.warning("[birdeye] Skipping malformed holder item: %r", item)
                    continue
                holders.append(holder)

            log.info("[birdeye] Fetched %d holders...", len(holders))

            if len(items) < BIRDEYE_PAGE_SIZE:
                break
            offset += BIRDEYE_PAGE_SIZE

        log.info("[birdeye] Total holders fetched: %d", len(holders))
        return holders[:max_holders]

    def token_metadata(self, mint: str) -> Optional[TokenMetadata]:
        try:
            resp = self.client.get("/defi/token_overview", params={"address": mint})
        except httpx.HTTPError as e:
            log.warning("[birdeye] token_overview failed: %s", e)
            return None
        if not resp.is_success:
            return None

        try:
            data: Dict[str, Any] = resp.json()
        except ValueError:
            return None
        if not data.get("success"):
            return None

        info = data.get("data") or {}
        return TokenMetadata(
            symbol=info.get("symbol") or "UNKNOWN",
            name=info.get("name") or "Unknown Token",
            decimals=int(info.get("decimals") or DEFAULT_DECIMALS),
            supply=Decimal(str(info.get("supply") or 0)),
        )
