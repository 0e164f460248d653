"""Tests for configuration and package setup."""

import logging

import pytest
from fastapi import APIRouter

from docview_analytics import (
    AnalyticsClient,
    AnalyticsConfig,
    DocumentAnalytics,
    SessionTracker,
    setup_analytics,
)


def _config(**overrides):
    defaults = {
        "d1_database_id": "test-db",
        "cf_account_id": "test-account",
        "cf_api_token": "test-token",
        "ipapi_key": "test-key",
    }
    defaults.update(overrides)
    return AnalyticsConfig(**defaults)


class TestAnalyticsConfig:
    """Test AnalyticsConfig validation."""

    def test_defaults(self):
        config = _config()
        assert config.timezone == "UTC"
        assert config.tick_interval_seconds == 1
        assert config.checkpoint_interval_seconds == 30
        assert config.window_days == 7

    @pytest.mark.parametrize("field", ["tick_interval_seconds", "checkpoint_interval_seconds"])
    @pytest.mark.parametrize("value", [0, -5])
    def test_non_positive_interval(self, field, value):
        with pytest.raises(ValueError, match=field):
            _config(**{field: value})

    @pytest.mark.parametrize("days", [0, 91])
    def test_window_out_of_range(self, days):
        with pytest.raises(ValueError, match="window_days"):
            _config(window_days=days)

    def test_unknown_timezone(self):
        with pytest.raises(ValueError, match="Unknown timezone"):
            _config(timezone="Mars/Olympus_Mons")

    def test_tzinfo(self):
        assert _config(timezone="Europe/Lisbon").tzinfo.key == "Europe/Lisbon"

    def test_missing_ipapi_key_warns(self, caplog):
        with caplog.at_level(logging.WARNING):
            _config(ipapi_key=None)
        assert "No ipapi key configured" in caplog.text


class TestSetupAnalytics:
    """Test setup_analytics() wiring."""

    def test_builds_components(self):
        analytics = setup_analytics(
            d1_database_id="test-db",
            cf_account_id="test-account",
            cf_api_token="test-token",
            ipapi_key="test-key",
            checkpoint_interval_seconds=10,
        )

        assert isinstance(analytics, DocumentAnalytics)
        assert isinstance(analytics.client, AnalyticsClient)
        assert isinstance(analytics.tracker, SessionTracker)
        assert isinstance(analytics.dashboard_router, APIRouter)
        assert analytics.config.checkpoint_interval_seconds == 10
        assert analytics.tracker.checkpoint_interval == 10
        assert analytics.tracker.store is analytics.client

    def test_invalid_option_raises(self):
        with pytest.raises(ValueError):
            setup_analytics("db", "acct", "token", window_days=365)
