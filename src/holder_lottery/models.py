from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class Holder:
    owner: str
    balance: Decimal  # UI units


@dataclass(frozen=True)
class TokenMetadata:
    symbol: str
    name: str
    decimals: int
    supply: Decimal


@dataclass(frozen=True)
class EligibilityResult:
    eligible: bool
    reason: Optional[str] = None
    cached_at: float = 0.0


@dataclass(frozen=True)
class LotteryEntry:
    wallet: str
    balance: Decimal
    tickets: int
    eligible: bool
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "wallet": self.wallet,
            "balance": str(self.balance),
            "tickets": self.tickets,
            "eligible": self.eligible,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class LotterySnapshot:
    """Eligible entries frozen in canonical (wallet ascending) order."""

    entries: Tuple[LotteryEntry, ...]
    total_tickets: int
    token_mint: str
    snapshot_time: datetime


@dataclass(frozen=True)
class LotteryResult:
    winner: LotteryEntry
    total_tickets: int
    total_eligible: int
    winning_ticket: int
    timestamp: datetime
    seed: Optional[str] = None
    block_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "winner": self.winner.to_dict(),
            "total_tickets": self.total_tickets,
            "total_eligible": self.total_eligible,
            "winning_ticket": self.winning_ticket,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.seed is not None:
            out["seed"] = self.seed
            out["block_id"] = self.block_id
        return out


@dataclass(frozen=True)
class VerificationResult:
    valid: bool
    calculated_winner: str
    winning_ticket: int


@dataclass(frozen=True)
class HolderListing:
    holders: List[Holder]
    source: str


@dataclass
class AnalysisReport:
    token_mint: str
    symbol: str
    name: str
    source: str
    total_holders: int
    holders_with_min_balance: int
    excluded: int
    entries: List[LotteryEntry] = field(default_factory=list)
    timed_out: bool = False
    result: Optional[LotteryResult] = None

    @property
    def eligible_entries(self) -> List[LotteryEntry]:
        return [e for e in self.entries if e.eligible]

    @property
    def total_tickets(self) -> int:
        return sum(e.tickets for e in self.eligible_entries)

    def stats(self) -> Dict[str, Any]:
        eligible = self.eligible_entries
        return {
            "total_holders": self.total_holders,
            "holders_with_min_balance": self.holders_with_min_balance,
            "excluded": self.excluded,
            "eligible_holders": len(eligible),
            "disqualified": len(self.entries) - len(eligible),
            "total_tickets": self.total_tickets,
            "source": self.source,
        }

    def to_dict(self, preview: Optional[int] = 100) -> Dict[str, Any]:
        entries = self.entries if preview is None else self.entries[:preview]
        return {
            "token": {"mint": self.token_mint, "symbol": self.symbol, "name": self.name},
            "stats": self.stats(),
            "entries": [e.to_dict() for e in entries],
            "timed_out": self.timed_out,
            "result": self.result.to_dict() if self.result else None,
        }
