"""
Tunable thresholds for extraction retries, waits and payload capture.

Every value can be overridden from Scrapy settings (see settings.py).
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class ExtractionPolicy:
    min_signals: int = 3
    sparse_ratio: float = 0.1
    min_sparse_items: int = 3
    max_missing_listings: int = 3
    hydration_wait_ms: int = 600
    block_retry_wait_ms: int = 2500
    networkidle_timeout_ms: int = 6000
    scroll_rounds: int = 15
    max_payloads: int = 50

    @classmethod
    def from_settings(cls, settings):
        """Build a policy from a Scrapy Settings object."""
        defaults = cls()
        return cls(
            min_signals=settings.getint('SPARSE_MIN_SIGNALS', defaults.min_signals),
            sparse_ratio=settings.getfloat('SPARSE_RATIO_THRESHOLD', defaults.sparse_ratio),
            min_sparse_items=settings.getint('SPARSE_MIN_ITEMS', defaults.min_sparse_items),
            max_missing_listings=settings.getint('MAX_MISSING_LISTINGS', defaults.max_missing_listings),
            hydration_wait_ms=settings.getint('HYDRATION_WAIT_MS', defaults.hydration_wait_ms),
            block_retry_wait_ms=settings.getint('BLOCK_RETRY_WAIT_MS', defaults.block_retry_wait_ms),
            networkidle_timeout_ms=settings.getint('NETWORKIDLE_TIMEOUT_MS', defaults.networkidle_timeout_ms),
            scroll_rounds=settings.getint('SCROLL_ROUNDS', defaults.scroll_rounds),
            max_payloads=settings.getint('MAX_INTERCEPTED_PAYLOADS', defaults.max_payloads),
        )
