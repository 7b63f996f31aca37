from __future__ import annotations

import logging
import secrets
import string
from bisect import bisect_left
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

import base58

from .errors import InvalidSeed, NoEligibleEntries
from .models import LotteryEntry, LotteryResult

log = logging.getLogger(__name__)

DrawFn = Callable[[int], int]


@dataclass(frozen=True)
class TicketRange:
    entry: LotteryEntry
    start_ticket: int  # inclusive, 1-indexed
    end_ticket: int  # inclusive


def eligible_entries(entries: Iterable[LotteryEntry]) -> List[LotteryEntry]:
    return [e for e in entries if e.eligible and e.tickets > 0]


def canonical_order(entries: Iterable[LotteryEntry]) -> List[LotteryEntry]:
    # Deterministic ordering (critical for reproducibility)
    return sorted(entries, key=lambda e: e.wallet)


def build_ranges(entries: Sequence[LotteryEntry]) -> Tuple[List[TicketRange], int]:
    ranges: List[TicketRange] = []
    cursor = 0
    for entry in entries:
        start = cursor + 1
        cursor += entry.tickets
        ranges.append(TicketRange(entry, start, cursor))
    return ranges, cursor


def find_winner(ranges: Sequence[TicketRange], ticket: int) -> TicketRange:
    """First range whose running total reaches `ticket`."""
    ends = [r.end_ticket for r in ranges]
    idx = bisect_left(ends, ticket)
    if ticket < 1 or idx >= len(ranges):
        raise RuntimeError(f"Ticket {ticket} out of range (unexpected).")
    return ranges[idx]


def secure_draw(total_tickets: int) -> int:
    return secrets.randbelow(total_tickets) + 1


def pick_winner(entries: Sequence[LotteryEntry], draw: Optional[DrawFn] = None) -> LotteryResult:
    """Weighted random draw over eligible entries in their given order."""
    eligible = eligible_entries(entries)
    ranges, total_tickets = build_ranges(eligible)
    if total_tickets <= 0:
        log.error("[draw] No eligible entries!")
        raise NoEligibleEntries("No eligible entries to draw from")

    winning_ticket = (draw or secure_draw)(total_tickets)
    winner = find_winner(ranges, winning_ticket)
    return LotteryResult(
        winner=winner.entry,
        total_tickets=total_tickets,
        total_eligible=len(eligible),
        winning_ticket=winning_ticket,
        timestamp=datetime.now(timezone.utc),
    )


def normalize_seed(seed: str) -> str:
    s = seed.strip()
    if s[:2].lower() == "0x":
        s = s[2:]
    if not s:
        raise InvalidSeed("Seed is empty")
    if any(c not in string.hexdigits for c in s):
        raise InvalidSeed(f"Seed is not hexadecimal: {seed!r}")
    return s.lower()


def seed_from_blockhash(blockhash: str) -> str:
    """Solana blockhashes are base58; the draw consumes their bytes as hex."""
    try:
        raw = base58.b58decode(blockhash.strip())
    except ValueError as e:
        raise InvalidSeed(f"Blockhash is not base58: {blockhash!r}") from e
    if not raw:
        raise InvalidSeed("Blockhash is empty")
    return raw.hex()


def compute_winning_ticket(seed: str, total_tickets: int) -> Tuple[int, str, int]:
    if total_tickets <= 0:
        raise NoEligibleEntries("No tickets to draw from")
    normalized = normalize_seed(seed)
    seed_int = int(normalized, 16)  # arbitrary precision
    return seed_int % total_tickets + 1, normalized, seed_int


def pick_verifiable(
    entries: Iterable[LotteryEntry], seed: str, block_id: str | int
) -> LotteryResult:
    """Deterministic draw any third party can repeat from the same entries and seed.

    Entries are always re-sorted by wallet, whatever order the caller used.
    """
    ordered = canonical_order(eligible_entries(entries))
    ranges, total_tickets = build_ranges(ordered)
    if total_tickets <= 0:
        raise NoEligibleEntries("No eligible entries to draw from")

    winning_ticket, normalized, _ = compute_winning_ticket(seed, total_tickets)
    winner = find_winner(ranges, winning_ticket)
    return LotteryResult(
        winner=winner.entry,
        total_tickets=total_tickets,
        total_eligible=len(ordered),
        winning_ticket=winning_ticket,
        timestamp=datetime.now(timezone.utc),
        seed=normalized,
        block_id=str(block_id),
    )
