from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional

import pytest

from holder_lottery.errors import HistoryCheckFailed
from holder_lottery.models import LotteryEntry


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeHistory:
    """Stands in for HeliusClient.get_transfer_transactions."""

    def __init__(
        self,
        transactions: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        failures: Optional[Dict[str, int]] = None,
    ) -> None:
        self.transactions = transactions or {}
        self.failures = failures or {}
        self.calls: List[tuple] = []

    def get_transfer_transactions(self, wallet: str, before: Optional[str] = None):
        self.calls.append((wallet, before))
        if wallet in self.failures:
            raise HistoryCheckFailed("boom", status_code=self.failures[wallet])
        if before:
            return []
        return self.transactions.get(wallet, [])


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def history() -> FakeHistory:
    return FakeHistory()


@pytest.fixture
def make_entry():
    def _make(wallet: str, tickets: int, eligible: bool = True, reason: Optional[str] = None):
        return LotteryEntry(wallet, Decimal(tickets * 10_000), tickets, eligible, reason)

    return _make


def sell_tx(signature: str, mint: str, wallet: str, amount: float) -> Dict[str, Any]:
    return {
        "signature": signature,
        "type": "TRANSFER",
        "tokenTransfers": [
            {
                "mint": mint,
                "fromUserAccount": wallet,
                "toUserAccount": "Dest111111111111111111111111111111111111111",
                "tokenAmount": amount,
            }
        ],
    }


@pytest.fixture
def make_sell_tx():
    return sell_tx


@pytest.fixture
def history_factory():
    return FakeHistory
