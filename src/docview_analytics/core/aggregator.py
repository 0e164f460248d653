"""
Aggregation of document views into dashboard statistics.

Everything here is a pure function of its arguments: no I/O, no clocks
read behind the caller's back, no module state. Safe to call from any
number of requests at once.

Two time sources live on a view and they are NOT interchangeable:
- total_time: wall-clock seconds since the view began (presence)
- page_times: per-second ticks credited to the page on screen (attention)

A backgrounded viewer accrues the first without the second, so the
headline average uses total_time and the per-page averages use page_times.
Neither is ever derived from the other.
"""

import math
from collections import defaultdict
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Iterable, Sequence

from .models import (
    DailyBucket,
    DocumentAnalyticsData,
    DocumentEvent,
    DocumentView,
    EventSummary,
    EventType,
    PageAverage,
    PageTime,
    ViewDetail,
    ViewSummary,
)


def format_duration(seconds: float) -> str:
    """Format seconds as M:SS (minutes unbounded).

    >>> format_duration(45)
    '0:45'
    >>> format_duration(3725)
    '62:05'
    """
    total = max(0, math.floor(seconds + 0.5))
    minutes, secs = divmod(total, 60)
    return f"{minutes}:{secs:02d}"


def summarize(views: Sequence[DocumentView]) -> ViewSummary:
    """Total views, estimated unique viewers and mean wall-clock time.

    Unique viewers are counted by distinct (city, region, country), so two
    readers in the same city count once. This is an estimate, not an
    identity count.
    """
    total_views = len(views)
    if total_views == 0:
        return ViewSummary()

    unique_viewers = len({view.location.key for view in views})
    average_time = sum(view.total_time for view in views) / total_views

    return ViewSummary(
        total_views=total_views,
        unique_viewers=unique_viewers,
        average_time=average_time,
    )


def _as_utc(moment: datetime) -> datetime:
    # Naive timestamps are taken as UTC, which is how the store writes them
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def _local_date(moment: datetime, tz: tzinfo):
    return _as_utc(moment).astimezone(tz).date()


def daily_view_series(
    views: Iterable[DocumentView],
    window_days: int,
    reference: datetime,
    tz: tzinfo = timezone.utc,
) -> list[DailyBucket]:
    """Views per calendar day for the window ending on reference's day.

    Returns exactly window_days buckets, oldest first, zero-filled. Days are
    calendar days in tz; a view lands on the day containing its created_at.
    Views outside the window are ignored.
    """
    if window_days <= 0:
        return []

    last_day = _local_date(reference, tz)
    days = [last_day - timedelta(days=offset) for offset in range(window_days - 1, -1, -1)]
    counts = dict.fromkeys(days, 0)

    for view in views:
        day = _local_date(view.created_at, tz)
        if day in counts:
            counts[day] += 1

    return [DailyBucket(date=day, view_count=counts[day]) for day in days]


def per_page_averages(views: Iterable[DocumentView]) -> list[PageAverage]:
    """Mean seconds per page, ascending page number.

    A page's average only counts views that have an entry for it; views
    that never reached the page do not pull the mean toward zero. Zero
    entries are real data and do count.
    """
    samples: dict[int, list[int]] = defaultdict(list)
    for view in views:
        for page, seconds in view.page_times.items():
            samples[page].append(seconds)

    return [
        PageAverage(page_number=page, average_seconds=sum(times) / len(times))
        for page, times in sorted(samples.items())
    ]


def summarize_events(events: Iterable[DocumentEvent]) -> EventSummary:
    """Count downloads and page changes."""
    summary = EventSummary()
    for event in events:
        if event.event_type == EventType.DOWNLOAD:
            summary.downloads += 1
        elif event.event_type == EventType.PAGE_CHANGE:
            summary.page_changes += 1
    return summary


def navigation_path(events: Iterable[DocumentEvent], view_id: str) -> list[int]:
    """Replay a view's page changes into the ordered list of pages visited."""
    changes = sorted(
        (
            e for e in events
            if e.view_id == view_id and e.event_type == EventType.PAGE_CHANGE
        ),
        key=lambda e: _as_utc(e.timestamp),
    )
    if not changes:
        return []

    path = [changes[0].event_data.get("from")]
    path.extend(e.event_data.get("to") for e in changes)
    return [page for page in path if page is not None]


def view_details(views: Iterable[DocumentView]) -> list[ViewDetail]:
    """Per-view breakdown rows, newest view first."""
    rows = []
    for view in sorted(views, key=lambda v: _as_utc(v.created_at), reverse=True):
        pages = [
            PageTime(page_number=page, seconds=seconds, display=format_duration(seconds))
            for page, seconds in sorted(view.page_times.items())
        ]
        rows.append(
            ViewDetail(
                id=view.id,
                created_at=view.created_at,
                updated_at=view.updated_at,
                location=view.location.label,
                device=view.device_info.label,
                total_time=view.total_time,
                total_time_display=format_duration(view.total_time),
                pages=pages,
            )
        )
    return rows


def build_dashboard(
    document_id: str,
    views: Sequence[DocumentView],
    events: Sequence[DocumentEvent] = (),
    window_days: int = 7,
    reference: datetime | None = None,
    tz: tzinfo = timezone.utc,
    title: str | None = None,
) -> DocumentAnalyticsData:
    """Everything the owner's dashboard shows for one document."""
    reference = reference or datetime.now(timezone.utc)
    summary = summarize(views)

    return DocumentAnalyticsData(
        document_id=document_id,
        title=title,
        window_days=window_days,
        summary=summary,
        average_time_display=format_duration(summary.average_time),
        daily_views=daily_view_series(views, window_days, reference, tz),
        page_averages=per_page_averages(views),
        events=summarize_events(events),
        views=view_details(views),
    )
