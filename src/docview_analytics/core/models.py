"""
Pydantic models for document view analytics.
"""
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

UNKNOWN = "Unknown"

# =============================================================================
# Raw Data Models
# =============================================================================

class ViewerLocation(BaseModel):
    """Coarse viewer location, as resolved from the viewer's IP."""
    city: str = UNKNOWN
    region: str = UNKNOWN
    country: str = UNKNOWN

    @property
    def key(self) -> tuple[str, str, str]:
        """Triple used to estimate unique viewers."""
        return (self.city, self.region, self.country)

    @property
    def label(self) -> str:
        return f"{self.city}, {self.region}, {self.country}"


class DeviceInfo(BaseModel):
    """Viewer device, as classified from the user-agent."""
    browser: str = ""  # "Chrome 120"
    os: str = ""  # "macOS 10.15"
    device: str = "desktop"  # desktop, mobile, tablet, tv

    @property
    def label(self) -> str:
        parts = [p for p in (self.browser, self.os) if p]
        return " on ".join(parts) or self.device


class DocumentView(BaseModel):
    """One reader's visit to one document (a session)."""
    id: str
    document_id: str

    location: ViewerLocation = Field(default_factory=ViewerLocation)
    device_info: DeviceInfo = Field(default_factory=DeviceInfo)

    # Wall-clock seconds since the view began
    total_time: int = Field(default=0, ge=0)
    # Seconds credited per 1-based page number by per-second ticks
    page_times: dict[int, int] = Field(default_factory=dict)

    created_at: datetime
    updated_at: datetime | None = None

    @field_validator("page_times")
    @classmethod
    def _check_page_times(cls, value: dict[int, int]) -> dict[int, int]:
        for page, seconds in value.items():
            if page < 1:
                raise ValueError(f"page numbers are 1-based, got {page}")
            if seconds < 0:
                raise ValueError(f"page {page} has negative time {seconds}")
        return value

    @property
    def total_page_time(self) -> int:
        """Sum of per-page ticks. May differ from total_time."""
        return sum(self.page_times.values())


class EventType(str, Enum):
    """Discrete reader actions."""
    PAGE_CHANGE = "page_change"
    DOWNLOAD = "download"


class DocumentEvent(BaseModel):
    """A discrete, timestamped reader action."""
    id: int | None = None
    document_id: str
    view_id: str
    event_type: EventType
    event_data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime

    @classmethod
    def page_change(
        cls,
        document_id: str,
        view_id: str,
        from_page: int,
        to_page: int,
        timestamp: datetime | None = None,
    ) -> "DocumentEvent":
        ts = timestamp or datetime.now(timezone.utc)
        return cls(
            document_id=document_id,
            view_id=view_id,
            event_type=EventType.PAGE_CHANGE,
            event_data={"from": from_page, "to": to_page, "timestamp": ts.isoformat()},
            timestamp=ts,
        )

    @classmethod
    def download(
        cls,
        document_id: str,
        view_id: str,
        timestamp: datetime | None = None,
    ) -> "DocumentEvent":
        ts = timestamp or datetime.now(timezone.utc)
        return cls(
            document_id=document_id,
            view_id=view_id,
            event_type=EventType.DOWNLOAD,
            event_data={"timestamp": ts.isoformat()},
            timestamp=ts,
        )


# =============================================================================
# Aggregated Stats Models
# =============================================================================

class ViewSummary(BaseModel):
    """Headline numbers for a document."""
    total_views: int = 0
    unique_viewers: int = 0  # distinct (city, region, country), an estimate
    average_time: float = 0.0  # seconds, from total_time


class DailyBucket(BaseModel):
    """Views created on one calendar day."""
    date: date
    view_count: int = 0


class PageAverage(BaseModel):
    """Mean dwell time on a page, over views that visited it."""
    page_number: int
    average_seconds: float


class EventSummary(BaseModel):
    """Counts of discrete reader actions."""
    downloads: int = 0
    page_changes: int = 0


class PageTime(BaseModel):
    page_number: int
    seconds: int
    display: str  # "M:SS"


class ViewDetail(BaseModel):
    """One row of the per-view breakdown."""
    id: str
    created_at: datetime
    updated_at: datetime | None = None
    location: str
    device: str
    total_time: int
    total_time_display: str
    pages: list[PageTime]


# =============================================================================
# Dashboard Response Models
# =============================================================================

class DocumentAnalyticsData(BaseModel):
    """Complete analytics response for one document."""
    document_id: str
    title: str | None = None
    window_days: int

    summary: ViewSummary
    average_time_display: str

    # Oldest day first
    daily_views: list[DailyBucket]
    page_averages: list[PageAverage]

    events: EventSummary
    # Newest view first
    views: list[ViewDetail]
