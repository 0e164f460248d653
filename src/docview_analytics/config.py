"""
Configuration for document view analytics.
"""
import logging
from dataclasses import dataclass
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

# Longest window the dashboard will bucket
MAX_WINDOW_DAYS = 90


@dataclass
class AnalyticsConfig:
    """Configuration for a single analytics instance."""

    # Required
    d1_database_id: str
    cf_account_id: str
    cf_api_token: str

    # Location lookups (ipapi.com). Without a key every viewer is "Unknown".
    ipapi_key: str | None = None

    # Calendar used for daily view buckets
    timezone: str = "UTC"

    # Session tracking
    tick_interval_seconds: float = 1
    checkpoint_interval_seconds: float = 30

    # Dashboard
    window_days: int = 7

    # Network
    lookup_timeout_seconds: float = 10
    query_timeout_seconds: float = 30

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_intervals()
        self._validate_timezone()

        if not self.ipapi_key:
            logger.warning(
                "No ipapi key configured: viewer locations will be recorded as Unknown"
            )

    def _validate_intervals(self) -> None:
        if self.tick_interval_seconds <= 0:
            raise ValueError("tick_interval_seconds must be positive")
        if self.checkpoint_interval_seconds <= 0:
            raise ValueError("checkpoint_interval_seconds must be positive")
        if not 1 <= self.window_days <= MAX_WINDOW_DAYS:
            raise ValueError(
                f"window_days must be between 1 and {MAX_WINDOW_DAYS}, got {self.window_days}"
            )

    def _validate_timezone(self) -> None:
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {self.timezone!r}") from None

    @property
    def tzinfo(self) -> ZoneInfo:
        """Timezone used to decide which calendar day a view falls on."""
        return ZoneInfo(self.timezone)
