"""
Core analytics module.

Contains the data models, the D1 client and the aggregation functions.
"""

from .aggregator import (
    build_dashboard,
    daily_view_series,
    format_duration,
    navigation_path,
    per_page_averages,
    summarize,
    summarize_events,
    view_details,
)
from .client import AnalyticsClient, D1QueryError
from .models import (
    DailyBucket,
    DeviceInfo,
    DocumentAnalyticsData,
    DocumentEvent,
    DocumentView,
    EventSummary,
    EventType,
    PageAverage,
    ViewDetail,
    ViewerLocation,
    ViewSummary,
)

__all__ = [
    "DocumentView", "DocumentEvent", "EventType", "ViewerLocation", "DeviceInfo",
    "ViewSummary", "DailyBucket", "PageAverage", "EventSummary", "ViewDetail",
    "DocumentAnalyticsData",
    "summarize", "daily_view_series", "per_page_averages", "format_duration",
    "summarize_events", "navigation_path", "view_details", "build_dashboard",
    "AnalyticsClient", "D1QueryError",
]
