"""
Dashboard routes for document view analytics.

JSON endpoints the owner-facing presentation layer renders from. Charts,
lists and forms live in that layer; these routes only aggregate.
"""

import asyncio
import csv
import logging
from datetime import datetime
from io import StringIO

import httpx
from fastapi import APIRouter, HTTPException, Query, Response
from fastapi.responses import StreamingResponse

from ..config import MAX_WINDOW_DAYS, AnalyticsConfig
from ..core.aggregator import build_dashboard, format_duration
from ..core.client import AnalyticsClient, D1QueryError
from ..core.models import DocumentAnalyticsData, DocumentEvent

logger = logging.getLogger(__name__)

# Failures talking to D1 that turn into a 502
STORE_ERRORS = (httpx.HTTPError, D1QueryError)


def _parse_window(days: int | None, default: int) -> int:
    """Validate the requested window length in days.

    Raises:
        HTTPException: If days is outside 1..MAX_WINDOW_DAYS
    """
    if days is None:
        return default
    if not 1 <= days <= MAX_WINDOW_DAYS:
        raise HTTPException(
            status_code=400,
            detail=f"days must be between 1 and {MAX_WINDOW_DAYS}",
        )
    return days


def create_dashboard_router(
    config: AnalyticsConfig,
    client: AnalyticsClient | None = None,
) -> APIRouter:
    """Create the analytics router.

    Args:
        config: Analytics configuration
        client: Store client; built from config when omitted
    """
    router = APIRouter(tags=["analytics"])

    if client is None:
        client = AnalyticsClient(
            d1_database_id=config.d1_database_id,
            cf_account_id=config.cf_account_id,
            cf_api_token=config.cf_api_token,
            timeout=config.query_timeout_seconds,
        )

    async def _require_document(document_id: str) -> dict:
        try:
            document = await client.get_document(document_id)
        except STORE_ERRORS as e:
            logger.error(f"Document lookup failed for {document_id}: {e}")
            raise HTTPException(status_code=502, detail="Analytics store unavailable") from None
        if document is None:
            raise HTTPException(status_code=404, detail="Document not found")
        return document

    # -------------------------------------------------------------------------
    # Dashboard Routes
    # -------------------------------------------------------------------------

    @router.get("/documents/{document_id}", response_model=DocumentAnalyticsData)
    async def document_analytics(
        document_id: str,
        days: int | None = Query(None, description="Days of daily view counts"),
    ):
        """Summary, daily views, per-page averages and per-view breakdown."""
        window_days = _parse_window(days, config.window_days)
        document = await _require_document(document_id)

        try:
            views, events = await asyncio.gather(
                client.list_views(document_id),
                client.list_events(document_id),
            )
        except STORE_ERRORS as e:
            logger.error(f"Fetching analytics for {document_id} failed: {e}")
            raise HTTPException(status_code=502, detail="Analytics store unavailable") from None

        return build_dashboard(
            document_id,
            views,
            events,
            window_days=window_days,
            reference=datetime.now(config.tzinfo),
            tz=config.tzinfo,
            title=document.get("title"),
        )

    @router.get("/documents/{document_id}/events", response_model=list[DocumentEvent])
    async def document_events(document_id: str):
        """A document's events in replay order."""
        await _require_document(document_id)
        try:
            return await client.list_events(document_id)
        except STORE_ERRORS as e:
            logger.error(f"Fetching events for {document_id} failed: {e}")
            raise HTTPException(status_code=502, detail="Analytics store unavailable") from None

    @router.get("/view-counts")
    async def view_counts(ids: list[str] = Query([])) -> dict[str, int]:
        """View count per document for the owner's document list."""
        try:
            return await client.count_views(ids)
        except STORE_ERRORS as e:
            logger.error(f"Counting views failed: {e}")
            raise HTTPException(status_code=502, detail="Analytics store unavailable") from None

    @router.delete("/documents/{document_id}", status_code=204)
    async def delete_document_analytics(document_id: str):
        """Delete a document's events and views."""
        try:
            await client.delete_document_analytics(document_id)
        except STORE_ERRORS as e:
            logger.error(f"Deleting analytics for {document_id} failed: {e}")
            raise HTTPException(status_code=502, detail="Analytics store unavailable") from None
        return Response(status_code=204)

    # -------------------------------------------------------------------------
    # Export Routes
    # -------------------------------------------------------------------------

    @router.get("/documents/{document_id}/views.csv")
    async def export_views_csv(document_id: str):
        """Export every view of a document as CSV."""
        await _require_document(document_id)
        try:
            views = await client.list_views(document_id)
        except STORE_ERRORS as e:
            logger.error(f"Exporting views for {document_id} failed: {e}")
            raise HTTPException(status_code=502, detail="Analytics store unavailable") from None

        output = StringIO()
        writer = csv.writer(output)
        writer.writerow([
            "View ID", "Created", "City", "Region", "Country",
            "Browser", "OS", "Device", "Total Time (s)", "Total Time", "Pages",
        ])

        for view in views:
            writer.writerow([
                view.id,
                view.created_at.isoformat(),
                view.location.city,
                view.location.region,
                view.location.country,
                view.device_info.browser,
                view.device_info.os,
                view.device_info.device,
                view.total_time,
                format_duration(view.total_time),
                " ".join(f"{page}:{seconds}" for page, seconds in sorted(view.page_times.items())),
            ])

        output.seek(0)
        return StreamingResponse(
            iter([output.getvalue()]),
            media_type="text/csv",
            headers={"Content-Disposition": f"attachment; filename=views_{document_id}.csv"},
        )

    return router
