from __future__ import annotations

from typing import Any, Optional


class LotteryError(Exception):
    """Base class for every error raised by the lottery pipeline."""


class ProviderUnavailable(LotteryError):
    """An upstream provider answered with a transport error, non-2xx or RPC error."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TierRestricted(ProviderUnavailable):
    """The provider endpoint requires a paid plan; the next provider is tried."""


class NoHoldersFound(LotteryError):
    pass


class NoEligibleEntries(LotteryError):
    pass


class HistoryCheckFailed(LotteryError):
    """Transaction history for one wallet could not be fetched."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConfigurationMissing(LotteryError, RuntimeError):
    pass


class TokenMetadataUnavailable(LotteryError):
    pass


class InvalidSeed(LotteryError, ValueError):
    pass


class SnapshotIntegrityError(LotteryError):
    pass


class PipelineTimeout(LotteryError):
    """The deadline expired; `report` holds whatever was gathered."""

    def __init__(self, message: str, report: Any = None) -> None:
        super().__init__(message)
        self.report = report
