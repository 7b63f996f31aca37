"""
Ticket rules:
- Every 10,000 tokens = 1 ticket
- Balances are capped at 20,000,000 tokens = 2,000 tickets
- Wallets below one ticket are not entrants at all
- LP / program addresses are never entrants
"""

from __future__ import annotations

from decimal import Decimal
from typing import AbstractSet, Dict, Iterable, List, Union

from .models import EligibilityResult, Holder, LotteryEntry
from .project_constants import EXCLUDED_ADDRESSES, MAX_TICKETS, MAX_TOKENS, TOKENS_PER_TICKET

Number = Union[int, float, Decimal, str]


def calculate_tickets(balance: Number) -> int:
    bal = balance if isinstance(balance, Decimal) else Decimal(str(balance))
    if not bal.is_finite() or bal <= 0:
        return 0
    capped = min(bal, Decimal(MAX_TOKENS))
    return min(int(capped // TOKENS_PER_TICKET), MAX_TICKETS)


def prefilter_holders(
    holders: Iterable[Holder], excluded: AbstractSet[str] = EXCLUDED_ADDRESSES
) -> List[Holder]:
    """Holders worth an eligibility check: not excluded, at least one ticket."""
    return [
        h for h in holders if h.owner not in excluded and calculate_tickets(h.balance) >= 1
    ]


def build_entries(
    holders: Iterable[Holder],
    eligibility_map: Dict[str, EligibilityResult],
    excluded: AbstractSet[str] = EXCLUDED_ADDRESSES,
) -> List[LotteryEntry]:
    entries: List[LotteryEntry] = []
    for holder in holders:
        if holder.owner in excluded:
            continue
        tickets = calculate_tickets(holder.balance)
        if tickets < 1:
            continue

        eligibility = eligibility_map.get(holder.owner)
        entries.append(
            LotteryEntry(
                wallet=holder.owner,
                balance=holder.balance,
                tickets=tickets,
                eligible=eligibility.eligible if eligibility else False,
                reason=eligibility.reason if eligibility else None,
            )
        )
    return entries


def rank_entries(entries: Iterable[LotteryEntry]) -> List[LotteryEntry]:
    """Display order: most tickets first, then largest balance, then wallet."""
    return sorted(entries, key=lambda e: (-e.tickets, -e.balance, e.wallet))
