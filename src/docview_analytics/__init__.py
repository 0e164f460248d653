"""
Document view analytics: time-on-page tracking for shared documents.

Usage:
    from docview_analytics import setup_analytics

    analytics = setup_analytics(
        d1_database_id="your-d1-id",
        cf_account_id="your-account-id",
        cf_api_token="your-api-token",
        ipapi_key="your-ipapi-key",
    )

    # Owner dashboard
    app.include_router(analytics.dashboard_router, prefix="/analytics")

    # Viewer side, for as long as the document is on screen
    context = ClientContext(
        user_agent=request.headers.get("user-agent", ""),
        ip_address=request.client.host if request.client else None,
    )
    async with analytics.tracker.track(document_id, context) as view:
        view.navigate(2)
        view.record_download()
"""

from .config import AnalyticsConfig
from .core.client import AnalyticsClient
from .core.models import DocumentEvent, DocumentView
from .core.tracker import DocumentNotFoundError, SessionTracker, ViewSession
from .geo import IpapiLocationResolver
from .routes import create_dashboard_router
from .user_agent import ClientContext

__version__ = "0.1.0"
__all__ = [
    "setup_analytics",
    "DocumentAnalytics",
    "AnalyticsConfig",
    "AnalyticsClient",
    "SessionTracker",
    "ViewSession",
    "ClientContext",
    "DocumentNotFoundError",
    "DocumentView",
    "DocumentEvent",
]


class DocumentAnalytics:
    """Main analytics interface: one tracker, one store, one dashboard."""

    def __init__(self, config: AnalyticsConfig):
        self.config = config
        self.client = AnalyticsClient(
            d1_database_id=config.d1_database_id,
            cf_account_id=config.cf_account_id,
            cf_api_token=config.cf_api_token,
            timeout=config.query_timeout_seconds,
        )
        self.tracker = SessionTracker(
            self.client,
            resolver=IpapiLocationResolver(
                config.ipapi_key, timeout=config.lookup_timeout_seconds
            ),
            tick_interval=config.tick_interval_seconds,
            checkpoint_interval=config.checkpoint_interval_seconds,
        )
        self.dashboard_router = create_dashboard_router(config, client=self.client)


def setup_analytics(
    d1_database_id: str,
    cf_account_id: str,
    cf_api_token: str,
    ipapi_key: str | None = None,
    **options,
) -> DocumentAnalytics:
    """
    Set up document view analytics.

    Args:
        d1_database_id: Cloudflare D1 database ID
        cf_account_id: Cloudflare account ID
        cf_api_token: Cloudflare API token with D1 read/write access
        ipapi_key: ipapi.com access key for viewer locations
        **options: Any other AnalyticsConfig field (timezone, window_days, ...)

    Returns:
        DocumentAnalytics with client, tracker and dashboard_router
    """
    config = AnalyticsConfig(
        d1_database_id=d1_database_id,
        cf_account_id=cf_account_id,
        cf_api_token=cf_api_token,
        ipapi_key=ipapi_key,
        **options,
    )
    return DocumentAnalytics(config)
