"""HTTP client that turns a 7-digit postal code into a street address."""

from __future__ import annotations

import logging

import httpx

from snowdesk_app.core.config import ServicesConfig
from snowdesk_app.core.validation import is_complete_postal_code, normalize_postal_code

logger = logging.getLogger(__name__)


class PostalLookupClient:
    """zipcloud client; the address is prefecture + city + town concatenated."""

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
    def from_config(cls, config: ServicesConfig) -> "PostalLookupClient":
        return cls(config.postal_lookup_url, config.user_agent, config.timeout_seconds)

    def lookup(self, postal_code: str) -> str | None:
        """Return the address for a postal code, or None on any failure."""
        code = normalize_postal_code(postal_code)
        if not is_complete_postal_code(code):
            return None
        try:
            response = self._client.get(f"{self.base_url}/api/search", params={"zipcode": code})
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as error:
            logger.warning("Postal lookup failed for %s: %s", code, error)
            return None

        results = payload.get("results") if isinstance(payload, dict) else None
        if not results:
            logger.info("No address for postal code %s", code)
            return None
        try:
            first = results[0]
            parts = [first["address1"], first["address2"], first["address3"]]
        except (KeyError, IndexError, TypeError) as error:
            logger.warning("Malformed postal lookup response for %s: %s", code, error)
            return None
        address = "".join(str(part) for part in parts if part)
        return address or None

    def close(self) -> None:
        self._client.close()
