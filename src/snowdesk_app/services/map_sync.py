"""Keeps map markers, popups, viewport and route in step with the record list."""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Iterable, Protocol, Sequence

from snowdesk_app.models.customer import ContractType, Coordinates, Customer
from snowdesk_app.services.dispatch import Dispatcher, run_inline
from snowdesk_app.services.routing import Route, RouteStop, RoutingClient, RoutingError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MapFilters:
    """Map-view search box plus range/equality filters; bounds are inclusive."""

    query: str = ""
    contract_type: ContractType | None = None
    min_area: Decimal | None = None
    max_area: Decimal | None = None
    min_billing: Decimal | None = None
    max_billing: Decimal | None = None


@dataclass(frozen=True)
class ViewportBounds:
    south: float
    west: float
    north: float
    east: float

    @classmethod
    def enclosing(cls, points: Iterable[Coordinates]) -> "ViewportBounds":
        points = list(points)
        if not points:
            raise ValueError("Cannot compute bounds without points.")
        return cls(
            south=min(point.lat for point in points),
            west=min(point.lng for point in points),
            north=max(point.lat for point in points),
            east=max(point.lng for point in points),
        )


@dataclass(frozen=True)
class MarkerSpec:
    marker_id: str
    position: Coordinates
    title: str
    popup_html: str


class MapRenderer(Protocol):
    """Drawing surface for markers; marker clicks come back via the synchronizer."""

    def place_marker(self, marker: MarkerSpec) -> None: ...

    def remove_marker(self, marker_id: str) -> None: ...

    def open_popup(self, marker_id: str) -> None: ...

    def close_popup(self, marker_id: str) -> None: ...

    def fit_bounds(self, bounds: ViewportBounds) -> None: ...

    def show_route(self, route: Route) -> None: ...


def _within(value: Decimal, lower: Decimal | None, upper: Decimal | None) -> bool:
    return (lower is None or value >= lower) and (upper is None or value <= upper)


def matches_map_filters(customer: Customer, filters: MapFilters) -> bool:
    query = filters.query.strip().casefold()
    matches_query = not query or (
        query in customer.name.casefold() or query in customer.address.casefold()
    )
    return (
        matches_query
        and (filters.contract_type is None or customer.contract_type is filters.contract_type)
        and _within(customer.snow_removal_area, filters.min_area, filters.max_area)
        and _within(customer.billing_amount, filters.min_billing, filters.max_billing)
    )


def visible_customers(records: Iterable[Customer], filters: MapFilters) -> list[Customer]:
    """Records matching the map filters, in input order."""
    return [customer for customer in records if matches_map_filters(customer, filters)]


def routable_customers(records: Iterable[Customer], filters: MapFilters) -> list[Customer]:
    """Visible records that can carry a marker."""
    return [customer for customer in visible_customers(records, filters) if customer.is_geocoded]


def _format_number(value: Decimal) -> str:
    return f"{value:,.0f}" if value == value.to_integral_value() else f"{value:,}"


def build_popup_html(customer: Customer) -> str:
    """Render the info popup for one customer; every value is escaped."""
    rows = [
        ("Address", customer.address),
        ("Phone", customer.phone or "Not set"),
        ("Contract", customer.contract_type.label),
        ("Snow area", f"{_format_number(customer.snow_removal_area)} m²"),
        ("Billing", f"¥{_format_number(customer.billing_amount)}"),
    ]
    body = "".join(
        f"<p><b>{html.escape(label)}:</b> {html.escape(value)}</p>" for label, value in rows
    )
    return f"<div class='popup'><h3>{html.escape(customer.name)}</h3>{body}</div>"


class MapSynchronizer:
    """Reconciles the filtered record set with the markers on a renderer."""

    def __init__(
        self,
        renderer: MapRenderer,
        routing_client: RoutingClient,
        on_select: Callable[[Customer], None] | None = None,
        dispatcher: Dispatcher = run_inline,
    ) -> None:
        self._renderer = renderer
        self._routing_client = routing_client
        self._on_select = on_select
        self._dispatch = dispatcher
        self._markers: dict[str, Customer] = {}
        self._open_popup: str | None = None
        self._route: Route | None = None
        self._route_token = 0

    @property
    def marker_ids(self) -> list[str]:
        return list(self._markers)

    @property
    def open_popup_id(self) -> str | None:
        return self._open_popup

    @property
    def current_route(self) -> Route | None:
        return self._route

    def sync(self, records: Iterable[Customer], filters: MapFilters) -> list[Customer]:
        """Redraw markers for the filtered set and return the customers shown."""
        shown = routable_customers(records, filters)
        shown_ids = {customer.id for customer in shown}

        if self._open_popup is not None:
            self._renderer.close_popup(self._open_popup)
            self._open_popup = None

        for marker_id in [marker_id for marker_id in self._markers if marker_id not in shown_ids]:
            self._renderer.remove_marker(marker_id)
            del self._markers[marker_id]

        for customer in shown:
            self._renderer.place_marker(
                MarkerSpec(
                    marker_id=customer.id,
                    position=customer.coordinates,
                    title=customer.name,
                    popup_html=build_popup_html(customer),
                )
            )
            self._markers[customer.id] = customer

        if shown:
            self._renderer.fit_bounds(
                ViewportBounds.enclosing(customer.coordinates for customer in shown)
            )
        logger.debug("Map synced: %d markers", len(shown))
        return shown

    def handle_marker_click(self, marker_id: str) -> bool:
        """Open the marker's popup; False when no marker is shown for the id."""
        customer = self._markers.get(marker_id)
        if customer is None:
            logger.debug("Click on unknown marker %s ignored", marker_id)
            return False
        if self._open_popup is not None and self._open_popup != marker_id:
            self._renderer.close_popup(self._open_popup)
        self._renderer.open_popup(marker_id)
        self._open_popup = marker_id
        if self._on_select is not None:
            self._on_select(customer)
        return True

    def compute_route(self, selection: Sequence[Customer]) -> bool:
        """Request a route through the geocoded customers of an ordered selection.

        Returns False without contacting the routing service when fewer than
        two selected customers have coordinates.
        """
        stops = [
            RouteStop(stop_id=customer.id, coordinates=customer.coordinates)
            for customer in selection
            if customer.is_geocoded
        ]
        if len(stops) < 2:
            return False

        self._route_token += 1
        token = self._route_token
        self._dispatch(lambda: self._fetch_route(stops), lambda route: self._apply_route(token, route))
        return True

    def _fetch_route(self, stops: list[RouteStop]) -> Route | None:
        try:
            return self._routing_client.route(stops)
        except RoutingError as error:
            logger.warning("Route calculation failed for %d stops: %s", len(stops), error)
            return None

    def _apply_route(self, token: int, route: Route | None) -> None:
        if route is None or token != self._route_token:
            return
        self._route = route
        self._renderer.show_route(route)
