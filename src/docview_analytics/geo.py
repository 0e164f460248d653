"""
Viewer location lookup via ipapi.com.

The tracker runs server-side, so the reader's address has to be named
explicitly (ipapi's /check endpoint would locate the server instead).

The lookup is best-effort: any failure (no key, no address, network error,
bad JSON, an ipapi error body) yields a location of "Unknown" in every
field and is logged, never raised. A viewer must be able to open a
document when the lookup service is down.
"""
import logging

import httpx

from .core.models import UNKNOWN, ViewerLocation

logger = logging.getLogger(__name__)

IPAPI_URL = "https://api.ipapi.com"


class IpapiLocationResolver:
    """Resolve a reader's coarse location from their IP address."""

    def __init__(
        self,
        access_key: str | None,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.access_key = access_key
        self.timeout = timeout
        self._client = client

    async def _fetch(self, ip_address: str) -> dict:
        url = f"{IPAPI_URL}/{ip_address}"
        params = {"access_key": self.access_key}
        if self._client is not None:
            response = await self._client.get(url, params=params, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, params=params)
        response.raise_for_status()
        return response.json()

    async def lookup(self, ip_address: str | None = None) -> ViewerLocation:
        """Return the location of ip_address, or Unknown on any failure."""
        if not self.access_key or not ip_address:
            return ViewerLocation()

        try:
            data = await self._fetch(ip_address)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Location lookup failed for {ip_address}: {e}")
            return ViewerLocation()

        if not isinstance(data, dict) or data.get("success") is False:
            error = data.get("error") if isinstance(data, dict) else data
            logger.error(f"Location lookup rejected for {ip_address}: {error}")
            return ViewerLocation()

        return ViewerLocation(
            city=data.get("city") or UNKNOWN,
            region=data.get("region_name") or UNKNOWN,
            country=data.get("country_name") or UNKNOWN,
        )
