"""HTTP client for multi-stop driving routes with waypoint reordering."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

import httpx

from snowdesk_app.core.config import ServicesConfig
from snowdesk_app.models.customer import Coordinates

logger = logging.getLogger(__name__)


class RoutingError(RuntimeError):
    """Raised when the routing service cannot produce a route."""


@dataclass(frozen=True)
class RouteStop:
    stop_id: str
    coordinates: Coordinates


@dataclass(frozen=True)
class Route:
    """A driving route; ``stop_ids`` lists stops in visiting order."""

    stop_ids: tuple[str, ...]
    distance_m: float
    duration_s: float
    path: tuple[Coordinates, ...]


class RoutingClient:
    """OSRM trip client.

    The first stop is fixed as origin and the last as destination; the
    service is free to reorder everything in between.
    """

    def __init__(
        self,
        base_url: str,
        profile: str = "driving",
        user_agent: str = "snowdesk",
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.profile = profile
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout, connect=5.0),
            headers={"User-Agent": user_agent},
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: ServicesConfig) -> "RoutingClient":
        return cls(
            config.routing_url,
            profile=config.routing_profile,
            user_agent=config.user_agent,
            timeout=config.timeout_seconds,
        )

    def route(self, stops: Sequence[RouteStop]) -> Route:
        if len(stops) < 2:
            raise ValueError("At least two stops are required for a route.")

        # OSRM takes lon,lat order.
        coordinate_str = ";".join(
            f"{stop.coordinates.lng},{stop.coordinates.lat}" for stop in stops
        )
        url = f"{self.base_url}/trip/v1/{self.profile}/{coordinate_str}"
        params = {
            "source": "first",
            "destination": "last",
            "roundtrip": "false",
            "overview": "full",
            "geometries": "geojson",
        }
        try:
            response = self._client.get(url, params=params)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as error:
            raise RoutingError(f"Routing request failed: {error}") from error

        if not isinstance(data, dict):
            raise RoutingError("Malformed routing response")
        if data.get("code") != "Ok":
            raise RoutingError(f"Routing service returned {data.get('code')}: {data.get('message', '')}")
        try:
            trip = data["trips"][0]
            waypoints = data["waypoints"]
            order = sorted(range(len(stops)), key=lambda index: waypoints[index]["waypoint_index"])
            path = tuple(
                Coordinates(lat=float(lat), lng=float(lon))
                for lon, lat in trip["geometry"]["coordinates"]
            )
            route = Route(
                stop_ids=tuple(stops[index].stop_id for index in order),
                distance_m=float(trip["distance"]),
                duration_s=float(trip["duration"]),
                path=path,
            )
        except (KeyError, IndexError, TypeError, ValueError) as error:
            raise RoutingError(f"Malformed routing response: {error}") from error

        logger.info(
            "Route computed for %d stops: %.1f km, %.0f min",
            len(stops),
            route.distance_m / 1000,
            route.duration_s / 60,
        )
        return route

    def close(self) -> None:
        self._client.close()
