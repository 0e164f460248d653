"""
Viewer device classification from the User-Agent header.

Produces the DeviceInfo recorded on every document view: browser and OS
as "<name> <version>" strings, and a coarse device class. Classification
is synchronous and never raises; anything unrecognised degrades to empty
strings, and an unrecognised device class to "desktop".

Order matters in every pattern table below: more specific entries come
first (Edge before Chrome, Chrome before Safari, Android before Linux).
"""

import re
from dataclasses import dataclass
from enum import Enum

from .core.models import DeviceInfo


class DeviceType(str, Enum):
    """Device category."""
    DESKTOP = "desktop"
    MOBILE = "mobile"
    TABLET = "tablet"
    TV = "tv"


@dataclass(frozen=True)
class ClientContext:
    """What the viewing surface knows about the reader's client."""
    user_agent: str = ""
    # The reader's address (request.client.host), used for location lookup
    ip_address: str | None = None


@dataclass(frozen=True)
class UserAgentInfo:
    """Parsed user-agent. Names are empty when not recognised."""
    browser: str = ""
    browser_version: str | None = None
    os: str = ""
    os_version: str | None = None
    device_type: DeviceType | None = None


# (pattern, browser_name); group 1 is the major version when present
BROWSER_PATTERNS = [
    (r"Edg(?:e|A|iOS)?/(\d+)", "Edge"),
    (r"OPR/(\d+)", "Opera"),
    (r"Vivaldi/(\d+)", "Vivaldi"),
    (r"SamsungBrowser/(\d+)", "Samsung Internet"),
    (r"YaBrowser/(\d+)", "Yandex"),
    (r"Firefox/(\d+)", "Firefox"),
    (r"FxiOS/(\d+)", "Firefox"),
    (r"CriOS/(\d+)", "Chrome"),
    (r"Chrome/(\d+)", "Chrome"),
    (r"Version/(\d+).*Safari", "Safari"),
    (r"MSIE (\d+)", "IE"),
    (r"Trident.*rv:(\d+)", "IE"),
]

# (pattern, os_name, version_regex)
OS_PATTERNS = [
    (r"iPhone|iPod", "iOS", r"OS (\d+[_.]\d+)"),
    (r"iPad", "iOS", r"OS (\d+[_.]\d+)"),
    (r"Android", "Android", r"Android (\d+(?:\.\d+)?)"),
    (r"Windows NT", "Windows", r"Windows NT (\d+\.\d+)"),
    (r"Macintosh|Mac OS X", "Mac OS", r"Mac OS X (\d+[_.]\d+(?:[_.]\d+)?)"),
    (r"CrOS", "Chrome OS", None),
    (r"Ubuntu", "Ubuntu", None),
    (r"Linux", "Linux", None),
]

# Checked in this order: a TV UA may also say "Mobile", an iPad may too
DEVICE_PATTERNS = [
    (DeviceType.TV, r"SmartTV|Smart-TV|Web0S|Tizen|Roku|BRAVIA|AppleTV|FireTV|CrKey"),
    (DeviceType.TABLET, r"iPad|Tablet|Kindle|Silk|PlayBook|Android(?!.*Mobile)"),
    (DeviceType.MOBILE, r"Mobile|iPhone|iPod|BlackBerry|IEMobile|Opera Mini|Windows Phone"),
]


def _detect_browser(ua: str) -> tuple[str, str | None]:
    for pattern, name in BROWSER_PATTERNS:
        match = re.search(pattern, ua, re.IGNORECASE)
        if match:
            return (name, match.group(1))
    return ("", None)


def _detect_os(ua: str) -> tuple[str, str | None]:
    for pattern, name, version_pattern in OS_PATTERNS:
        if not re.search(pattern, ua, re.IGNORECASE):
            continue
        version = None
        if version_pattern:
            match = re.search(version_pattern, ua)
            if match:
                version = match.group(1).replace("_", ".")
        return (name, version)
    return ("", None)


def _detect_device_type(ua: str) -> DeviceType | None:
    for device_type, pattern in DEVICE_PATTERNS:
        if re.search(pattern, ua, re.IGNORECASE):
            return device_type
    return None


def parse_user_agent(user_agent: str | None) -> UserAgentInfo:
    """
    Parse a user-agent string into structured information.

    Examples:
        >>> parse_user_agent("Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0")
        UserAgentInfo(browser='Firefox', browser_version='121', os='Windows', os_version='10.0', device_type=None)
    """
    if not user_agent or not user_agent.strip():
        return UserAgentInfo()

    browser, browser_version = _detect_browser(user_agent)
    os_name, os_version = _detect_os(user_agent)

    return UserAgentInfo(
        browser=browser,
        browser_version=browser_version,
        os=os_name,
        os_version=os_version,
        device_type=_detect_device_type(user_agent),
    )


def _join(name: str, version: str | None) -> str:
    return " ".join(part for part in (name, version) if part)


def classify_device(context: ClientContext | None) -> DeviceInfo:
    """Classify the reader's client for the view record. Never raises."""
    info = parse_user_agent(context.user_agent if context else "")
    device = info.device_type or DeviceType.DESKTOP

    return DeviceInfo(
        browser=_join(info.browser, info.browser_version),
        os=_join(info.os, info.os_version),
        device=device.value,
    )
