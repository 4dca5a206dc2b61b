"""Tests for marker reconciliation, popups, and route requests."""

from __future__ import annotations

import logging
from decimal import Decimal

from snowdesk_app.models.customer import ContractType, Coordinates
from snowdesk_app.services.map_sync import (
    MapFilters,
    MapSynchronizer,
    ViewportBounds,
    build_popup_html,
    visible_customers,
)
from snowdesk_app.services.routing import Route, RoutingError


class FakeRenderer:
    def __init__(self):
        self.markers = {}
        self.open_popups = set()
        self.bounds = []
        self.routes = []
        self.max_open_popups = 0

    def place_marker(self, marker):
        self.markers[marker.marker_id] = marker

    def remove_marker(self, marker_id):
        self.markers.pop(marker_id, None)
        self.open_popups.discard(marker_id)

    def open_popup(self, marker_id):
        self.open_popups.add(marker_id)
        self.max_open_popups = max(self.max_open_popups, len(self.open_popups))

    def close_popup(self, marker_id):
        self.open_popups.discard(marker_id)

    def fit_bounds(self, bounds):
        self.bounds.append(bounds)

    def show_route(self, route):
        self.routes.append(route)


class FakeRoutingClient:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def route(self, stops):
        self.calls.append([stop.stop_id for stop in stops])
        if self.error is not None:
            raise self.error
        return Route(
            stop_ids=tuple(stop.stop_id for stop in stops),
            distance_m=1200.0,
            duration_s=300.0,
            path=tuple(stop.coordinates for stop in stops),
        )


def test_records_without_coordinates_get_no_marker(make_customer) -> None:
    renderer = FakeRenderer()
    sync = MapSynchronizer(renderer, FakeRoutingClient())
    records = [
        make_customer("located"),
        make_customer("unlocated", coordinates=None),
    ]

    shown = sync.sync(records, MapFilters())

    assert [customer.id for customer in shown] == ["located"]
    assert set(renderer.markers) == {"located"}


def test_sync_removes_markers_no_longer_shown(make_customer) -> None:
    renderer = FakeRenderer()
    sync = MapSynchronizer(renderer, FakeRoutingClient())
    records = [make_customer("1", name="Abe"), make_customer("2", name="Mori")]

    sync.sync(records, MapFilters())
    sync.sync(records, MapFilters(query="mori"))

    assert set(renderer.markers) == {"2"}
    assert sync.marker_ids == ["2"]


def test_viewport_encloses_all_markers(make_customer) -> None:
    renderer = FakeRenderer()
    sync = MapSynchronizer(renderer, FakeRoutingClient())
    records = [
        make_customer("1", coordinates=Coordinates(lat=43.0, lng=141.0)),
        make_customer("2", coordinates=Coordinates(lat=44.0, lng=142.5)),
    ]

    sync.sync(records, MapFilters())
    sync.sync([], MapFilters())

    assert renderer.bounds == [ViewportBounds(south=43.0, west=141.0, north=44.0, east=142.5)]


def test_only_one_popup_open_at_a_time(make_customer) -> None:
    renderer = FakeRenderer()
    selected = []
    sync = MapSynchronizer(renderer, FakeRoutingClient(), on_select=selected.append)
    records = [make_customer("1"), make_customer("2"), make_customer("3")]
    sync.sync(records, MapFilters())

    for marker_id in ["1", "2", "3", "2"]:
        sync.handle_marker_click(marker_id)

    assert renderer.max_open_popups == 1
    assert renderer.open_popups == {"2"}
    assert sync.open_popup_id == "2"
    assert [customer.id for customer in selected] == ["1", "2", "3", "2"]


def test_resync_closes_open_popup(make_customer) -> None:
    renderer = FakeRenderer()
    sync = MapSynchronizer(renderer, FakeRoutingClient())
    records = [make_customer("1")]
    sync.sync(records, MapFilters())
    sync.handle_marker_click("1")

    sync.sync(records, MapFilters())

    assert renderer.open_popups == set()
    assert sync.open_popup_id is None


def test_range_filters_are_inclusive_and_combined(make_customer) -> None:
    records = [
        make_customer("1", snow_removal_area=Decimal("50"), billing_amount=Decimal("5000")),
        make_customer("2", snow_removal_area=Decimal("100"), billing_amount=Decimal("8000")),
        make_customer("3", snow_removal_area=Decimal("150"), billing_amount=Decimal("20000")),
        make_customer(
            "4",
            snow_removal_area=Decimal("100"),
            billing_amount=Decimal("8000"),
            contract_type=ContractType.PREMIUM,
        ),
    ]
    filters = MapFilters(
        contract_type=ContractType.BASIC,
        min_area=Decimal("50"),
        max_area=Decimal("100"),
        max_billing=Decimal("8000"),
    )

    assert [customer.id for customer in visible_customers(records, filters)] == ["1", "2"]


def test_route_needs_two_geocoded_customers(make_customer) -> None:
    routing = FakeRoutingClient()
    sync = MapSynchronizer(FakeRenderer(), routing)
    selection = [make_customer("1"), make_customer("2", coordinates=None)]

    assert sync.compute_route(selection) is False
    assert sync.compute_route(selection[:1]) is False
    assert routing.calls == []


def test_route_keeps_origin_and_destination(make_customer) -> None:
    renderer = FakeRenderer()
    routing = FakeRoutingClient()
    sync = MapSynchronizer(renderer, routing)
    selection = [make_customer("a"), make_customer("b"), make_customer("c")]

    assert sync.compute_route(selection) is True

    assert routing.calls == [["a", "b", "c"]]
    assert sync.current_route is renderer.routes[-1]


def test_route_failure_keeps_previous_route(make_customer, caplog) -> None:
    renderer = FakeRenderer()
    routing = FakeRoutingClient()
    sync = MapSynchronizer(renderer, routing)
    selection = [make_customer("a"), make_customer("b")]
    sync.compute_route(selection)
    previous = sync.current_route

    routing.error = RoutingError("service unavailable")
    caplog.set_level(logging.WARNING)
    sync.compute_route(selection)

    assert sync.current_route is previous
    assert len(renderer.routes) == 1
    assert len(routing.calls) == 2
    assert "service unavailable" in caplog.text


def test_popup_html_escapes_customer_values(make_customer) -> None:
    customer = make_customer("x", name="<script>alert(1)</script>", billing_amount=Decimal("12000"))

    popup = build_popup_html(customer)

    assert "<script>" not in popup
    assert "¥12,000" in popup


def test_click_on_filtered_out_customer_reports_no_marker(make_customer) -> None:
    renderer = FakeRenderer()
    selected = []
    sync = MapSynchronizer(renderer, FakeRoutingClient(), on_select=selected.append)
    records = [make_customer("1", name="Abe"), make_customer("2", name="Mori")]
    sync.sync(records, MapFilters(query="abe"))

    assert sync.handle_marker_click("2") is False
    assert sync.handle_marker_click("1") is True
    assert renderer.open_popups == {"1"}
    assert [customer.id for customer in selected] == ["1"]
