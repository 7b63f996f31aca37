from __future__ import annotations

import logging
import time
from contextlib import ExitStack
from typing import Any, Callable, Iterable, List, Optional

from .birdeye import BirdeyeClient
from .cache import EligibilityCache
from .config import Settings
from .draw import DrawFn, pick_verifiable, pick_winner
from .eligibility import EligibilityChecker, ProgressCallback
from .entries import build_entries, prefilter_holders, rank_entries
from .errors import NoHoldersFound, PipelineTimeout, TokenMetadataUnavailable
from .helius import HeliusClient
from .holders import HolderSource
from .models import AnalysisReport, LotteryResult, LotterySnapshot, VerificationResult
from .project_constants import MAX_HOLDERS
from .rpc import RpcClient
from .snapshot import create_snapshot
from .throttle import Deadline
from .verify import verify

log = logging.getLogger(__name__)


class LotteryPipeline:
    """holders -> eligibility -> entries -> selection, strictly in that order."""

    def __init__(
        self,
        holder_source: HolderSource,
        checker: EligibilityChecker,
        max_holders: int = MAX_HOLDERS,
        closeables: Iterable[Any] = (),
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.holder_source = holder_source
        self.checker = checker
        self.max_holders = max_holders
        self._closeables: List[Any] = list(closeables)
        self.clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        cache: Optional[EligibilityCache] = None,
        extra_excluded: Iterable[str] = (),
    ) -> "LotteryPipeline":
        with ExitStack() as stack:
            providers: List[Any] = []
            if settings.birdeye_api_key:
                providers.append(
                    stack.enter_context(
                        BirdeyeClient(settings.birdeye_api_key, timeout_s=settings.timeout_s)
                    )
                )
            else:
                log.info("BIRDEYE_API_KEY not set; using Helius for holders")
            providers.append(
                stack.enter_context(RpcClient(settings.rpc_url, timeout_s=settings.timeout_s))
            )
            history = stack.enter_context(
                HeliusClient(settings.helius_api_key, timeout_s=settings.timeout_s)
            )
            checker = EligibilityChecker(
                history,
                cache=cache,
                history_pages=settings.history_pages,
                extra_excluded=extra_excluded,
            )
            pipeline = cls(HolderSource(providers), checker, closeables=providers + [history])
            stack.pop_all()
        return pipeline

    def close(self) -> None:
        for c in self._closeables:
            c.close()

    def __enter__(self) -> "LotteryPipeline":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def analyze(
        self,
        token_mint: str,
        deadline_s: Optional[float] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> AnalysisReport:
        """Full pipeline without a draw.

        When the deadline expires, the report carries the partial data with
        `timed_out` set; unchecked wallets are ineligible.
        """
        deadline = Deadline(deadline_s, self.clock)

        token = self.holder_source.token_metadata(token_mint)
        if token is None:
            raise TokenMetadataUnavailable(f"Could not fetch token info for {token_mint}")

        log.info("[lottery] Fetching holders for %s...", token.symbol)
        listing = self.holder_source.fetch_holders(token_mint, self.max_holders, deadline)
        if not listing.holders:
            if deadline.cut_short:
                raise PipelineTimeout("Deadline reached before any holder was fetched")
            raise NoHoldersFound(f"No holders found for {token_mint}")

        log.info("[lottery] Fetched %d holders via %s", len(listing.holders), listing.source)

        candidates = prefilter_holders(listing.holders, self.checker.excluded)
        excluded = sum(1 for h in listing.holders if self.checker.is_excluded(h.owner))
        log.info("[lottery] %d holders with 10k+ tokens (excluding LPs)", len(candidates))

        log.info("[lottery] Checking sell history...")
        eligibility = self.checker.batch_check(
            [h.owner for h in candidates], token_mint, on_progress=on_progress, deadline=deadline
        )

        entries = build_entries(candidates, eligibility, self.checker.excluded)
        report = AnalysisReport(
            token_mint=token_mint,
            symbol=token.symbol,
            name=token.name,
            source=listing.source,
            total_holders=len(listing.holders),
            holders_with_min_balance=len(candidates),
            excluded=excluded,
            entries=rank_entries(entries),
            timed_out=deadline.cut_short,
        )
        if report.timed_out:
            log.warning("[lottery] Deadline reached; report is partial")
        return report

    def pick(
        self,
        token_mint: str,
        deadline_s: Optional[float] = None,
        on_progress: Optional[ProgressCallback] = None,
        draw: Optional[DrawFn] = None,
    ) -> AnalysisReport:
        report = self.analyze(token_mint, deadline_s=deadline_s, on_progress=on_progress)
        if report.timed_out:
            raise PipelineTimeout("Refusing to draw from a partial holder list", report=report)
        report.result = pick_winner(report.entries, draw=draw)
        log.info(
            "[lottery] Winner %s (ticket %d of %d)",
            report.result.winner.wallet,
            report.result.winning_ticket,
            report.result.total_tickets,
        )
        return report

    @staticmethod
    def snapshot(report: AnalysisReport) -> LotterySnapshot:
        return create_snapshot(report.entries, report.token_mint)

    @staticmethod
    def pick_verifiable(snapshot: LotterySnapshot, seed: str, block_id: str | int) -> LotteryResult:
        return pick_verifiable(snapshot.entries, seed, block_id)

    @staticmethod
    def verify(snapshot: LotterySnapshot, seed: str, claimed_wallet: str) -> VerificationResult:
        return verify(snapshot, seed, claimed_wallet)

