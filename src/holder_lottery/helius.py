"""Helius enhanced-transactions client: transfer history per wallet."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from .errors import HistoryCheckFailed
from .project_constants import HELIUS_API_BASE


class HeliusClient:
    def __init__(
        self,
        api_key: str,
        timeout_s: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
        base_url: str = HELIUS_API_BASE,
    ) -> None:
        self.api_key = api_key
        self.client = httpx.Client(base_url=base_url, timeout=timeout_s, transport=transport)

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "HeliusClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def get_transfer_transactions(
        self, wallet: str, before: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """One page of parsed TRANSFER transactions, newest first.

        Raises HistoryCheckFailed on transport errors and non-2xx answers.
        """
        params: Dict[str, Any] = {"api-key": self.api_key, "type": "TRANSFER"}
        if before:
            params["before"] = before
        try:
            resp = self.client.get(f"/v0/addresses/{wallet}/transactions", params=params)
        except httpx.HTTPError as e:
            raise HistoryCheckFailed(f"request failed: {e}") from e
        if not resp.is_success:
            raise HistoryCheckFailed(
                f"API error: {resp.status_code}", status_code=resp.status_code
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise HistoryCheckFailed("invalid JSON in history response") from e
        if not isinstance(data, list):
            raise HistoryCheckFailed("unexpected history response shape")
        return data
