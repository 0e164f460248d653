"""
Durable store contract consumed by the session tracker and the dashboard.

Each write is independent; no multi-row transaction is assumed.
"""
from datetime import datetime
from typing import Protocol

from .models import DeviceInfo, DocumentEvent, DocumentView, ViewerLocation


class ViewStore(Protocol):
    async def get_document(self, document_id: str) -> dict | None:
        """The document row (at least id and title), or None if it doesn't exist."""
        ...

    async def create_view(
        self,
        document_id: str,
        location: ViewerLocation,
        device_info: DeviceInfo,
    ) -> DocumentView:
        """Insert a fresh view with zero time and no page times."""
        ...

    async def update_view(
        self,
        view_id: str,
        total_time: int,
        page_times: dict[int, int],
        updated_at: datetime,
    ) -> None:
        ...

    async def append_event(self, event: DocumentEvent) -> None:
        ...

    async def list_views(self, document_id: str) -> list[DocumentView]:
        ...

    async def list_events(self, document_id: str) -> list[DocumentEvent]:
        ...
