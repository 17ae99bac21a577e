"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass

MAX_MEMBER_PAGE_SIZE = 1000


@dataclass(frozen=True)
class ReconcileConfig:
    """Timing and throughput settings for the reconciliation pipeline."""

    debounce_seconds: float = 10.0
    rate_per_minute: int = 10
    rate_burst: int = 3
    member_page_size: int = MAX_MEMBER_PAGE_SIZE

    def __post_init__(self) -> None:
        if self.debounce_seconds < 0:
            raise ValueError("debounce_seconds must be >= 0")
        if self.rate_per_minute <= 0:
            raise ValueError("rate_per_minute must be positive")
        if self.rate_burst <= 0:
            raise ValueError("rate_burst must be positive")
        if not 1 <= self.member_page_size <= MAX_MEMBER_PAGE_SIZE:
            raise ValueError(f"member_page_size must be within 1..{MAX_MEMBER_PAGE_SIZE}")
