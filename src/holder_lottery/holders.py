from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from .errors import TierRestricted
from .models import Holder, HolderListing, TokenMetadata
from .project_constants import MAX_HOLDERS
from .throttle import Deadline

log = logging.getLogger(__name__)


def aggregate_holders(holders: Iterable[Holder]) -> List[Holder]:
    """Merges token accounts of the same owner, keeping first-seen order."""
    balances: Dict[str, Decimal] = {}
    for h in holders:
        balances[h.owner] = balances.get(h.owner, Decimal(0)) + h.balance
    return [Holder(owner, bal) for owner, bal in balances.items()]


class HolderSource:
    """Ordered chain of holder providers.

    Each provider exposes `name`, `fetch_holders(mint, max_holders, deadline)`
    and `token_metadata(mint)`. Providers keep their own pagination and
    end-of-list rules; the chain only decides which answer to use.
    """

    def __init__(self, providers: Sequence) -> None:
        if not providers:
            raise ValueError("HolderSource needs at least one provider")
        self.providers = list(providers)

    def fetch_holders(
        self,
        token_mint: str,
        max_holders: int = MAX_HOLDERS,
        deadline: Optional[Deadline] = None,
    ) -> HolderListing:
        tried = self.providers[0].name
        for provider in self.providers:
            if deadline is not None and deadline.check():
                break
            tried = provider.name
            try:
                holders = provider.fetch_holders(token_mint, max_holders, deadline)
            except TierRestricted as e:
                log.info("[holders] %s unavailable (%s), falling back...", provider.name, e)
                continue

            if holders:
                holders = aggregate_holders(holders)
                log.info("[holders] Fetched %d holders via %s", len(holders), provider.name)
                return HolderListing(holders, provider.name)

            log.info("[holders] %s returned no holders", provider.name)

        return HolderListing([], tried)

    def token_metadata(self, token_mint: str) -> Optional[TokenMetadata]:
        for provider in self.providers:
            meta = provider.token_metadata(token_mint)
            if meta is not None:
                return meta
        return None
