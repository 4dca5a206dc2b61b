"""HTTP client tests against httpx.MockTransport."""

from __future__ import annotations

import httpx
import pytest

from snowdesk_app.models.customer import Coordinates
from snowdesk_app.services.geocoding import GeocodingClient
from snowdesk_app.services.postal_lookup import PostalLookupClient
from snowdesk_app.services.routing import RouteStop, RoutingClient, RoutingError


def json_transport(payload, status_code=200, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, json=payload)

    return httpx.MockTransport(handler)


def test_geocode_returns_first_match() -> None:
    seen = []
    client = GeocodingClient(
        "https://geo.test/",
        "snowdesk-test",
        transport=json_transport([{"lat": "43.0618", "lon": "141.3545"}], seen=seen),
    )

    result = client.geocode("  Sapporo Chuo-ku  ")

    assert result == Coordinates(lat=43.0618, lng=141.3545)
    assert seen[0].url.path == "/search"
    assert seen[0].url.params["q"] == "Sapporo Chuo-ku"
    assert seen[0].url.params["limit"] == "1"
    assert seen[0].headers["User-Agent"] == "snowdesk-test"


def test_geocode_no_match_returns_none() -> None:
    client = GeocodingClient("https://geo.test", "ua", transport=json_transport([]))

    assert client.geocode("Nowhere") is None


def test_geocode_server_error_returns_none(caplog) -> None:
    client = GeocodingClient("https://geo.test", "ua", transport=json_transport({}, status_code=500))

    assert client.geocode("Sapporo") is None
    assert "Geocoding failed" in caplog.text


def test_postal_lookup_concatenates_address_parts() -> None:
    seen = []
    payload = {
        "status": 200,
        "results": [
            {"address1": "北海道", "address2": "札幌市中央区", "address3": "北一条西", "zipcode": "0600001"}
        ],
    }
    client = PostalLookupClient("https://zip.test", "ua", transport=json_transport(payload, seen=seen))

    assert client.lookup("060-0001") == "北海道札幌市中央区北一条西"
    assert seen[0].url.params["zipcode"] == "0600001"


def test_postal_lookup_without_results_returns_none() -> None:
    payload = {"status": 200, "message": None, "results": None}
    client = PostalLookupClient("https://zip.test", "ua", transport=json_transport(payload))

    assert client.lookup("0000000") is None


def test_postal_lookup_skips_incomplete_codes() -> None:
    seen = []
    client = PostalLookupClient("https://zip.test", "ua", transport=json_transport({}, seen=seen))

    assert client.lookup("060-00") is None
    assert seen == []


def stops():
    return [
        RouteStop("origin", Coordinates(lat=43.0, lng=141.0)),
        RouteStop("middle", Coordinates(lat=43.1, lng=141.1)),
        RouteStop("other", Coordinates(lat=43.2, lng=141.2)),
        RouteStop("destination", Coordinates(lat=43.3, lng=141.3)),
    ]


def test_route_orders_stops_by_waypoint_index() -> None:
    seen = []
    payload = {
        "code": "Ok",
        "waypoints": [
            {"waypoint_index": 0},
            {"waypoint_index": 2},
            {"waypoint_index": 1},
            {"waypoint_index": 3},
        ],
        "trips": [
            {
                "distance": 5400.0,
                "duration": 720.0,
                "geometry": {"coordinates": [[141.0, 43.0], [141.3, 43.3]]},
            }
        ],
    }
    client = RoutingClient("https://osrm.test", transport=json_transport(payload, seen=seen))

    route = client.route(stops())

    assert route.stop_ids == ("origin", "other", "middle", "destination")
    assert route.distance_m == 5400.0
    assert route.path[0] == Coordinates(lat=43.0, lng=141.0)
    request = seen[0]
    assert request.url.path == "/trip/v1/driving/141.0,43.0;141.1,43.1;141.2,43.2;141.3,43.3"
    assert request.url.params["source"] == "first"
    assert request.url.params["destination"] == "last"
    assert request.url.params["roundtrip"] == "false"


def test_route_service_error_raises() -> None:
    payload = {"code": "NoTrips", "message": "No trips found"}
    client = RoutingClient("https://osrm.test", transport=json_transport(payload))

    with pytest.raises(RoutingError, match="NoTrips"):
        client.route(stops())


def test_route_http_error_raises() -> None:
    client = RoutingClient("https://osrm.test", transport=json_transport({}, status_code=503))

    with pytest.raises(RoutingError):
        client.route(stops())


def test_route_requires_two_stops() -> None:
    client = RoutingClient("https://osrm.test", transport=json_transport({}))

    with pytest.raises(ValueError):
        client.route(stops()[:1])
