"""Sold-history eligibility checks.

A wallet is eligible only if its transfer history holds no outgoing transfer
of the lottery token. Anything that prevents a positive answer (HTTP error,
timeout, missing data) makes the wallet ineligible.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Set

from .cache import EligibilityCache
from .errors import HistoryCheckFailed
from .models import EligibilityResult
from .project_constants import (
    ELIGIBILITY_GROUP_DELAY_S,
    ELIGIBILITY_GROUP_SIZE,
    EXCLUDED_ADDRESSES,
)
from .throttle import Deadline

log = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

NOT_CHECKED_REASON = "Not checked before deadline"


def is_excluded_address(address: str) -> bool:
    """Known LP pool or program address."""
    return address in EXCLUDED_ADDRESSES


def load_excluded_wallets(path: str | None) -> Set[str]:
    if not path:
        return set()
    out: Set[str] = set()
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            w = line.strip()
            if not w or w.startswith("#"):
                continue
            out.add(w)
    return out


def _fmt_amount(amount: Any) -> str:
    value = float(amount)
    return str(int(value)) if value.is_integer() else str(value)


def find_outgoing_transfer(
    transactions: Iterable[Dict[str, Any]], wallet: str, token_mint: str
) -> Optional[str]:
    """Returns a disqualification reason for the first outgoing transfer, if any."""
    for tx in transactions:
        for transfer in tx.get("tokenTransfers") or []:
            if (
                transfer.get("mint") == token_mint
                and transfer.get("fromUserAccount") == wallet
                and float(transfer.get("tokenAmount") or 0) > 0
            ):
                signature = tx.get("signature") or ""
                return (
                    f"Sold/transferred {_fmt_amount(transfer['tokenAmount'])} tokens "
                    f"(tx: {signature[:8]}...)"
                )
    return None


class EligibilityChecker:
    EXCLUDED_ADDRESSES: FrozenSet[str] = EXCLUDED_ADDRESSES

    def __init__(
        self,
        history,
        cache: Optional[EligibilityCache] = None,
        group_size: int = ELIGIBILITY_GROUP_SIZE,
        group_delay_s: float = ELIGIBILITY_GROUP_DELAY_S,
        history_pages: int = 1,
        extra_excluded: Iterable[str] = (),
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.history = history
        self.cache = cache if cache is not None else EligibilityCache()
        self.group_size = max(1, group_size)
        self.group_delay_s = group_delay_s
        self.history_pages = max(1, history_pages)
        self.excluded: FrozenSet[str] = self.EXCLUDED_ADDRESSES | frozenset(extra_excluded)
        self.sleep = sleep

    def is_excluded(self, address: str) -> bool:
        return address in self.excluded

    def _scan_history(self, wallet: str, token_mint: str) -> Optional[str]:
        before: Optional[str] = None
        for _ in range(self.history_pages):
            transactions = self.history.get_transfer_transactions(wallet, before=before)
            try:
                reason = find_outgoing_transfer(transactions, wallet, token_mint)
                if reason or not transactions:
                    return reason
                before = transactions[-1].get("signature")
            except (AttributeError, TypeError, ValueError) as e:
                raise HistoryCheckFailed(f"malformed history record: {e}") from e
            if not before:
                break
        return None

    def check_eligibility(self, wallet: str, token_mint: str) -> EligibilityResult:
        cached = self.cache.get(token_mint, wallet)
        if cached is not None:
            return cached

        try:
            reason = self._scan_history(wallet, token_mint)
        except HistoryCheckFailed as e:
            # Not cached: a later run may get a definitive answer.
            log.warning("[eligibility] History check failed for %s: %s", wallet, e)
            status = getattr(e, "status_code", None)
            if status is not None:
                return EligibilityResult(False, f"API error: {status}", self.cache.clock())
            return EligibilityResult(False, "Error checking transaction history", self.cache.clock())

        result = EligibilityResult(reason is None, reason, self.cache.clock())
        self.cache.set(token_mint, wallet, result)
        return result

    def batch_check(
        self,
        wallets: Iterable[str],
        token_mint: str,
        on_progress: Optional[ProgressCallback] = None,
        deadline: Optional[Deadline] = None,
    ) -> Dict[str, EligibilityResult]:
        """Checks wallets in concurrent groups with a pause between groups.

        Every distinct input wallet is present in the returned mapping.
        """
        unique: List[str] = list(dict.fromkeys(wallets))
        total = len(unique)
        results: Dict[str, EligibilityResult] = {}
        groups = [unique[i : i + self.group_size] for i in range(0, total, self.group_size)]

        with ThreadPoolExecutor(max_workers=self.group_size) as pool:
            for n, group in enumerate(groups):
                if deadline is not None and deadline.check():
                    log.warning(
                        "[eligibility] Deadline reached after %d/%d wallets", len(results), total
                    )
                    break

                checked = pool.map(lambda w: self.check_eligibility(w, token_mint), group)
                for wallet, result in zip(group, checked):
                    results[wallet] = result

                if on_progress is not None:
                    on_progress(len(results), total)
                log.debug("[eligibility] Checked %d/%d wallets", len(results), total)

                if n < len(groups) - 1:
                    self.sleep(self.group_delay_s)

        for wallet in unique:
            if wallet not in results:
                results[wallet] = EligibilityResult(False, NOT_CHECKED_REASON, self.cache.clock())

        return results
