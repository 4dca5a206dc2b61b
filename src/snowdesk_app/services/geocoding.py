"""HTTP client that resolves free-text addresses to coordinates."""

from __future__ import annotations

import logging

import httpx

from snowdesk_app.core.config import ServicesConfig
from snowdesk_app.models.customer import Coordinates

logger = logging.getLogger(__name__)


class GeocodingClient:
    """Nominatim-compatible geocoder.

    Lookups never raise: a missing match and a transport failure both come
    back as ``None`` and leave the caller's coordinates unchanged.
    """

    def __init__(
        self,
        base_url: str,
        user_agent: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout, connect=5.0),
            headers={"User-Agent": user_agent},
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: ServicesConfig) -> "GeocodingClient":
        return cls(config.geocoding_url, config.user_agent, config.timeout_seconds)

    def geocode(self, address: str) -> Coordinates | None:
        """Return the best match for an address, or None."""
        query = address.strip()
        if not query:
            return None
        try:
            response = self._client.get(
                f"{self.base_url}/search",
                params={"q": query, "format": "json", "limit": 1},
            )
            response.raise_for_status()
            results = response.json()
        except (httpx.HTTPError, ValueError) as error:
            logger.warning("Geocoding failed for %r: %s", query, error)
            return None

        if not isinstance(results, list) or not results:
            logger.info("No geocoding result for %r", query)
            return None
        try:
            return Coordinates(lat=float(results[0]["lat"]), lng=float(results[0]["lon"]))
        except (KeyError, TypeError, ValueError) as error:
            logger.warning("Malformed geocoding response for %r: %s", query, error)
            return None

    def close(self) -> None:
        self._client.close()
