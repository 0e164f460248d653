"""
HTTP client for the Cloudflare D1 database holding document views and events.

Implements the ViewStore contract used by the session tracker, plus the
owner-side queries the dashboard needs (view counts, cascade delete).

Tables:
    documents        (id, title, ...)
    document_views   (id, document_id, location, device_info, total_time,
                      page_times, created_at, updated_at)
    document_events  (id, document_id, view_id, event_type, event_data,
                      timestamp)

location, device_info, page_times and event_data are JSON text columns.
Rows whose JSON or values don't parse are logged and left out of results,
so one bad row can't take down a document's dashboard.

created_at may be ISO 8601 (written here) or SQLite's "YYYY-MM-DD HH:MM:SS";
ordering goes through datetime() so both forms sort together.
"""
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

import httpx
from pydantic import ValidationError

from .models import DeviceInfo, DocumentEvent, DocumentView, ViewerLocation

logger = logging.getLogger(__name__)


class D1QueryError(Exception):
    """Raised when D1 answers a query with success: false."""
    pass


class AnalyticsClient:
    """Client for reading and writing view analytics in Cloudflare D1."""

    def __init__(
        self,
        d1_database_id: str,
        cf_account_id: str,
        cf_api_token: str,
        timeout: float = 30.0,
    ):
        self.database_id = d1_database_id
        self.account_id = cf_account_id
        self.api_token = cf_api_token
        self.timeout = timeout
        self.base_url = f"https://api.cloudflare.com/client/v4/accounts/{cf_account_id}/d1/database/{d1_database_id}"

    async def _query(self, sql: str, params: Optional[list] = None) -> list[dict]:
        """Execute a SQL query against D1."""
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.base_url}/query",
                headers={
                    "Authorization": f"Bearer {self.api_token}",
                    "Content-Type": "application/json",
                },
                json={"sql": sql, "params": params or []},
            )
            response.raise_for_status()
            data = response.json()

            if not data.get("success"):
                raise D1QueryError(f"D1 query failed: {data.get('errors')}")

            results = data.get("result", [])
            if results and len(results) > 0:
                return results[0].get("results", [])
            return []

    async def _execute(self, sql: str, params: Optional[list] = None) -> None:
        """Execute a SQL statement without returning results."""
        await self._query(sql, params)

    # =========================================================================
    # ROW MAPPING
    # =========================================================================

    @staticmethod
    def _load_json(value, default):
        if value is None or value == "":
            return default
        if isinstance(value, (dict, list)):
            return value
        return json.loads(value)

    def _row_to_view(self, row: dict) -> DocumentView:
        return DocumentView(
            id=row["id"],
            document_id=row["document_id"],
            location=ViewerLocation(**self._load_json(row.get("location"), {})),
            device_info=DeviceInfo(**self._load_json(row.get("device_info"), {})),
            total_time=row.get("total_time") or 0,
            page_times=self._load_json(row.get("page_times"), {}),
            created_at=row["created_at"],
            updated_at=row.get("updated_at"),
        )

    @staticmethod
    def _map_rows(rows: list[dict], mapper, kind: str) -> list:
        """Map rows to models, skipping (and logging) rows that don't parse."""
        mapped = []
        for row in rows:
            try:
                mapped.append(mapper(row))
            except (ValidationError, ValueError, TypeError, KeyError) as e:
                logger.warning(f"Skipping malformed {kind} row {row.get('id')}: {e}")
        return mapped

    def _row_to_event(self, row: dict) -> DocumentEvent:
        return DocumentEvent(
            id=row.get("id"),
            document_id=row["document_id"],
            view_id=row["view_id"],
            event_type=row["event_type"],
            event_data=self._load_json(row.get("event_data"), {}),
            timestamp=row["timestamp"],
        )

    # =========================================================================
    # DOCUMENTS
    # =========================================================================

    async def get_document(self, document_id: str) -> dict | None:
        """Get the document's id and title, or None if it doesn't exist."""
        results = await self._query(
            "SELECT id, title FROM documents WHERE id = ?",
            [document_id],
        )
        return results[0] if results else None

    # =========================================================================
    # VIEWS
    # =========================================================================

    async def create_view(
        self,
        document_id: str,
        location: ViewerLocation,
        device_info: DeviceInfo,
    ) -> DocumentView:
        """Insert a new view with zero time and return it."""
        view = DocumentView(
            id=str(uuid.uuid4()),
            document_id=document_id,
            location=location,
            device_info=device_info,
            created_at=datetime.now(timezone.utc),
        )
        await self._execute(
            """
            INSERT INTO document_views
                (id, document_id, location, device_info, total_time, page_times, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                view.id,
                view.document_id,
                view.location.model_dump_json(),
                view.device_info.model_dump_json(),
                view.total_time,
                json.dumps({}),
                view.created_at.isoformat(),
            ],
        )
        return view

    async def update_view(
        self,
        view_id: str,
        total_time: int,
        page_times: dict[int, int],
        updated_at: datetime,
    ) -> None:
        """Write a checkpoint of a view's accumulated time."""
        await self._execute(
            """
            UPDATE document_views
            SET total_time = ?, page_times = ?, updated_at = ?
            WHERE id = ?
            """,
            [
                total_time,
                json.dumps({str(page): seconds for page, seconds in page_times.items()}),
                updated_at.isoformat(),
                view_id,
            ],
        )

    async def list_views(self, document_id: str) -> list[DocumentView]:
        """All views of a document, newest first."""
        results = await self._query(
            """
            SELECT id, document_id, location, device_info, total_time,
                   page_times, created_at, updated_at
            FROM document_views
            WHERE document_id = ?
            ORDER BY datetime(created_at) DESC, created_at DESC
            """,
            [document_id],
        )
        return self._map_rows(results, self._row_to_view, "view")

    async def count_views(self, document_ids: list[str]) -> dict[str, int]:
        """View count per document, zero for documents never viewed."""
        counts = {document_id: 0 for document_id in document_ids}
        if not document_ids:
            return counts

        placeholders = ", ".join("?" for _ in document_ids)
        results = await self._query(
            f"""
            SELECT document_id, COUNT(*) as views
            FROM document_views
            WHERE document_id IN ({placeholders})
            GROUP BY document_id
            """,
            list(document_ids),
        )
        for r in results:
            counts[r["document_id"]] = r["views"] or 0
        return counts

    # =========================================================================
    # EVENTS
    # =========================================================================

    async def append_event(self, event: DocumentEvent) -> None:
        """Append a reader action. Events are never updated."""
        await self._execute(
            """
            INSERT INTO document_events
                (document_id, view_id, event_type, event_data, timestamp)
            VALUES (?, ?, ?, ?, ?)
            """,
            [
                event.document_id,
                event.view_id,
                event.event_type.value,
                json.dumps(event.event_data),
                event.timestamp.isoformat(),
            ],
        )

    async def list_events(self, document_id: str) -> list[DocumentEvent]:
        """All events of a document in replay order."""
        results = await self._query(
            """
            SELECT id, document_id, view_id, event_type, event_data, timestamp
            FROM document_events
            WHERE document_id = ?
            ORDER BY datetime(timestamp) ASC, id ASC
            """,
            [document_id],
        )
        return self._map_rows(results, self._row_to_event, "event")

    # =========================================================================
    # DELETION
    # =========================================================================

    async def delete_document_analytics(self, document_id: str) -> None:
        """Delete a document's events, then its views."""
        await self._execute(
            "DELETE FROM document_events WHERE document_id = ?",
            [document_id],
        )
        await self._execute(
            "DELETE FROM document_views WHERE document_id = ?",
            [document_id],
        )
        logger.info(f"Deleted analytics for document {document_id}")
