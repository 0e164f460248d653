"""Tests for viewer device classification."""

import pytest

from docview_analytics.user_agent import (
    ClientContext,
    DeviceType,
    classify_device,
    parse_user_agent,
)

CHROME_MAC = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
SAFARI_IPHONE = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
SAFARI_IPAD = "Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
FIREFOX_WINDOWS = "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0"
EDGE_WINDOWS = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36 Edg/119.0.0.0"
CHROME_ANDROID = "Mozilla/5.0 (Linux; Android 13; Pixel 7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.6099.43 Mobile Safari/537.36"
CHROME_ANDROID_TABLET = "Mozilla/5.0 (Linux; Android 13; SM-X700) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"


class TestUserAgentParsing:
    """Test browser and OS detection from user-agents."""

    def test_chrome_macos(self):
        info = parse_user_agent(CHROME_MAC)
        assert info.browser == "Chrome"
        assert info.browser_version == "120"
        assert info.os == "Mac OS"
        assert info.os_version == "10.15.7"
        assert info.device_type is None

    def test_safari_ios(self):
        info = parse_user_agent(SAFARI_IPHONE)
        assert info.browser == "Safari"
        assert info.browser_version == "17"
        assert info.os == "iOS"
        assert info.os_version == "17.0"
        assert info.device_type == DeviceType.MOBILE

    def test_firefox_windows(self):
        info = parse_user_agent(FIREFOX_WINDOWS)
        assert info.browser == "Firefox"
        assert info.browser_version == "121"
        assert info.os == "Windows"
        assert info.os_version == "10.0"

    def test_edge_before_chrome(self):
        info = parse_user_agent(EDGE_WINDOWS)
        assert info.browser == "Edge"
        assert info.browser_version == "119"

    def test_android_phone(self):
        info = parse_user_agent(CHROME_ANDROID)
        assert info.browser == "Chrome"
        assert info.os == "Android"
        assert info.os_version == "13"
        assert info.device_type == DeviceType.MOBILE

    def test_android_without_mobile_is_tablet(self):
        assert parse_user_agent(CHROME_ANDROID_TABLET).device_type == DeviceType.TABLET

    def test_ipad_is_tablet(self):
        assert parse_user_agent(SAFARI_IPAD).device_type == DeviceType.TABLET

    @pytest.mark.parametrize("ua", ["", "   ", None])
    def test_empty_ua(self, ua):
        info = parse_user_agent(ua)
        assert info.browser == ""
        assert info.os == ""
        assert info.device_type is None


class TestClassifyDevice:
    """Test the DeviceInfo recorded on views."""

    def test_desktop_chrome(self):
        info = classify_device(ClientContext(CHROME_MAC))
        assert info.browser == "Chrome 120"
        assert info.os == "Mac OS 10.15.7"
        assert info.device == "desktop"

    def test_mobile_safari(self):
        info = classify_device(ClientContext(SAFARI_IPHONE))
        assert info.browser == "Safari 17"
        assert info.os == "iOS 17.0"
        assert info.device == "mobile"

    def test_unknown_client_falls_back(self):
        """Unrecognised clients get empty names and the desktop class."""
        info = classify_device(ClientContext("curl/8.4.0"))
        assert info.browser == ""
        assert info.os == ""
        assert info.device == "desktop"

    def test_no_context(self):
        info = classify_device(None)
        assert info.browser == ""
        assert info.device == "desktop"
