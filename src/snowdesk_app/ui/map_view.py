"""Map page: Leaflet inside a web view, filters, and route planning."""

from __future__ import annotations

import json
import logging
from decimal import Decimal
from typing import Callable

from PySide6.QtCore import QObject, Qt, QUrl, Signal, Slot
from PySide6.QtWebChannel import QWebChannel
from PySide6.QtWebEngineWidgets import QWebEngineView
from PySide6.QtWidgets import (
    QAbstractItemView,
    QComboBox,
    QGridLayout,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QMessageBox,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from snowdesk_app.core.config import MapConfig
from snowdesk_app.core.validation import parse_non_negative_decimal
from snowdesk_app.models.customer import ContractType, Customer
from snowdesk_app.services.dispatch import Dispatcher
from snowdesk_app.services.map_sync import MapFilters, MapSynchronizer, MarkerSpec, ViewportBounds
from snowdesk_app.services.routing import Route, RoutingClient

logger = logging.getLogger(__name__)

_MAP_HTML = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<link rel="stylesheet" href="https://unpkg.com/leaflet@1.9.4/dist/leaflet.css">
<script src="https://unpkg.com/leaflet@1.9.4/dist/leaflet.js"></script>
<script src="qrc:///qtwebchannel/qwebchannel.js"></script>
<style>html, body, #map { height: 100%; margin: 0; }</style>
</head>
<body>
<div id="map"></div>
<script>
var map = L.map('map').setView([__LAT__, __LNG__], __ZOOM__);
L.tileLayer(__TILE_URL__, {maxZoom: 19, attribution: '&copy; OpenStreetMap'}).addTo(map);
var markers = {};
var popups = {};
var routeLine = null;
var bridge = null;
new QWebChannel(qt.webChannelTransport, function (channel) {
  bridge = channel.objects.bridge;
  bridge.pageReady();
});
function placeMarker(id, lat, lng, title, popupHtml) {
  removeMarker(id);
  var marker = L.marker([lat, lng], {title: title}).addTo(map);
  marker.on('click', function () { if (bridge) { bridge.markerClicked(id); } });
  markers[id] = marker;
  popups[id] = L.popup({autoClose: false, closeOnClick: false}).setLatLng([lat, lng]).setContent(popupHtml);
}
function removeMarker(id) {
  if (markers[id]) { map.removeLayer(markers[id]); delete markers[id]; }
  if (popups[id]) { map.closePopup(popups[id]); delete popups[id]; }
}
function openPopup(id) { if (popups[id]) { popups[id].openOn(map); } }
function closePopup(id) { if (popups[id]) { map.closePopup(popups[id]); } }
function fitBounds(south, west, north, east) {
  map.fitBounds([[south, west], [north, east]], {padding: [32, 32], maxZoom: 16});
}
function showRoute(path) {
  if (routeLine) { map.removeLayer(routeLine); }
  routeLine = L.polyline(path, {color: '#2563eb', weight: 5}).addTo(map);
}
</script>
</body>
</html>
"""


class MapBridge(QObject):
    """Object exposed to the page as ``bridge``."""

    ready = Signal()
    marker_clicked = Signal(str)

    @Slot()
    def pageReady(self) -> None:  # noqa: N802 - called from JavaScript
        self.ready.emit()

    @Slot(str)
    def markerClicked(self, marker_id: str) -> None:  # noqa: N802 - called from JavaScript
        self.marker_clicked.emit(marker_id)


class LeafletMapWidget(QWebEngineView):
    """MapRenderer backed by Leaflet; commands wait until the page is ready."""

    def __init__(self, config: MapConfig, parent: QWidget | None = None):
        super().__init__(parent)
        self._ready = False
        self._queued: list[str] = []
        self.bridge = MapBridge(self)
        self._channel = QWebChannel(self.page())
        self._channel.registerObject("bridge", self.bridge)
        self.page().setWebChannel(self._channel)
        self.bridge.ready.connect(self._on_ready)

        page = (
            _MAP_HTML.replace("__LAT__", json.dumps(config.center_lat))
            .replace("__LNG__", json.dumps(config.center_lng))
            .replace("__ZOOM__", json.dumps(config.zoom))
            .replace("__TILE_URL__", json.dumps(config.tile_url))
        )
        self.setHtml(page, QUrl("https://localhost/"))

    def _on_ready(self) -> None:
        self._ready = True
        queued, self._queued = self._queued, []
        for script in queued:
            self.page().runJavaScript(script)

    def _call(self, function: str, *args: object) -> None:
        script = f"{function}({', '.join(json.dumps(arg) for arg in args)});"
        if self._ready:
            self.page().runJavaScript(script)
        else:
            self._queued.append(script)

    def place_marker(self, marker: MarkerSpec) -> None:
        self._call(
            "placeMarker",
            marker.marker_id,
            marker.position.lat,
            marker.position.lng,
            marker.title,
            marker.popup_html,
        )

    def remove_marker(self, marker_id: str) -> None:
        self._call("removeMarker", marker_id)

    def open_popup(self, marker_id: str) -> None:
        self._call("openPopup", marker_id)

    def close_popup(self, marker_id: str) -> None:
        self._call("closePopup", marker_id)

    def fit_bounds(self, bounds: ViewportBounds) -> None:
        self._call("fitBounds", bounds.south, bounds.west, bounds.north, bounds.east)

    def show_route(self, route: Route) -> None:
        self._call("showRoute", [[point.lat, point.lng] for point in route.path])


class MapPanel(QWidget):
    """Search box, filters, route selection, and the map itself."""

    def __init__(
        self,
        config: MapConfig,
        routing_client: RoutingClient,
        dispatcher: Dispatcher,
        on_select: Callable[[Customer], None],
        parent: QWidget | None = None,
    ):
        super().__init__(parent)
        self._records: tuple[Customer, ...] = ()
        self._shown: list[Customer] = []

        self.map_widget = LeafletMapWidget(config)
        self.synchronizer = MapSynchronizer(
            self.map_widget,
            routing_client,
            on_select=on_select,
            dispatcher=dispatcher,
        )
        self.map_widget.bridge.marker_clicked.connect(self.synchronizer.handle_marker_click)

        layout = QVBoxLayout(self)

        search_row = QHBoxLayout()
        self.search_input = QLineEdit()
        self.search_input.setPlaceholderText("Search by customer name or address...")
        self.search_input.textChanged.connect(self.refresh)
        search_row.addWidget(self.search_input)
        self.toggle_filters_button = QPushButton("Filters")
        self.toggle_filters_button.setCheckable(True)
        search_row.addWidget(self.toggle_filters_button)

        self.filter_panel = QWidget()
        grid = QGridLayout(self.filter_panel)
        self.contract_filter = QComboBox()
        self.contract_filter.addItem("All", None)
        for contract_type in ContractType:
            self.contract_filter.addItem(contract_type.label, contract_type)
        self.contract_filter.currentIndexChanged.connect(self.refresh)
        self.min_area_input = QLineEdit()
        self.max_area_input = QLineEdit()
        self.min_billing_input = QLineEdit()
        self.max_billing_input = QLineEdit()
        for widget, placeholder in [
            (self.min_area_input, "Min"),
            (self.max_area_input, "Max"),
            (self.min_billing_input, "Min"),
            (self.max_billing_input, "Max"),
        ]:
            widget.setPlaceholderText(placeholder)
            widget.editingFinished.connect(self.refresh)
        reset_button = QPushButton("Reset filters")
        reset_button.clicked.connect(self.reset_filters)

        grid.addWidget(QLabel("Contract type"), 0, 0)
        grid.addWidget(self.contract_filter, 0, 1, 1, 2)
        grid.addWidget(QLabel("Snow area (m²)"), 1, 0)
        grid.addWidget(self.min_area_input, 1, 1)
        grid.addWidget(self.max_area_input, 1, 2)
        grid.addWidget(QLabel("Billing (¥)"), 2, 0)
        grid.addWidget(self.min_billing_input, 2, 1)
        grid.addWidget(self.max_billing_input, 2, 2)
        grid.addWidget(reset_button, 3, 2)
        self.filter_panel.setVisible(False)
        self.toggle_filters_button.toggled.connect(self.filter_panel.setVisible)

        route_row = QHBoxLayout()
        self.route_selector = QListWidget()
        self.route_selector.setSelectionMode(QAbstractItemView.SelectionMode.MultiSelection)
        self.route_selector.setMaximumHeight(120)
        self.route_selector.itemSelectionChanged.connect(self._update_route_button)
        self.route_button = QPushButton("Show route")
        self.route_button.setEnabled(False)
        self.route_button.clicked.connect(self.calculate_route)
        route_row.addWidget(self.route_selector)
        route_row.addWidget(self.route_button, alignment=Qt.AlignmentFlag.AlignTop)

        layout.addLayout(search_row)
        layout.addWidget(self.filter_panel)
        layout.addLayout(route_row)
        layout.addWidget(self.map_widget, stretch=1)

    def set_records(self, records: tuple[Customer, ...]) -> None:
        self._records = records
        self.refresh()

    def reset_filters(self) -> None:
        for widget in [
            self.min_area_input,
            self.max_area_input,
            self.min_billing_input,
            self.max_billing_input,
        ]:
            widget.clear()
        self.contract_filter.setCurrentIndex(0)
        self.refresh()

    def current_filters(self) -> MapFilters:
        return MapFilters(
            query=self.search_input.text(),
            contract_type=self.contract_filter.currentData(),
            min_area=self._optional_amount(self.min_area_input, "Minimum snow area"),
            max_area=self._optional_amount(self.max_area_input, "Maximum snow area"),
            min_billing=self._optional_amount(self.min_billing_input, "Minimum billing"),
            max_billing=self._optional_amount(self.max_billing_input, "Maximum billing"),
        )

    @staticmethod
    def _optional_amount(widget: QLineEdit, field_name: str) -> Decimal | None:
        if not widget.text().strip():
            return None
        return parse_non_negative_decimal(widget.text(), field_name)

    def refresh(self) -> None:
        try:
            filters = self.current_filters()
        except ValueError as error:
            QMessageBox.warning(self, "Filter", str(error))
            return
        self._shown = self.synchronizer.sync(self._records, filters)
        self._rebuild_route_selector()

    def focus_customer(self, customer_id: str) -> bool:
        """Open a customer's popup; False when current filters hide it."""
        return self.synchronizer.handle_marker_click(customer_id)

    def _rebuild_route_selector(self) -> None:
        selected = {item.data(Qt.ItemDataRole.UserRole) for item in self.route_selector.selectedItems()}
        self.route_selector.blockSignals(True)
        self.route_selector.clear()
        for customer in self._shown:
            item = QListWidgetItem(customer.name)
            item.setData(Qt.ItemDataRole.UserRole, customer.id)
            self.route_selector.addItem(item)
            item.setSelected(customer.id in selected)
        self.route_selector.blockSignals(False)
        self._update_route_button()

    def _selected_customers(self) -> list[Customer]:
        selected_ids = {
            item.data(Qt.ItemDataRole.UserRole) for item in self.route_selector.selectedItems()
        }
        return [customer for customer in self._shown if customer.id in selected_ids]

    def _update_route_button(self) -> None:
        self.route_button.setEnabled(len(self._selected_customers()) >= 2)

    def calculate_route(self) -> None:
        if not self.synchronizer.compute_route(self._selected_customers()):
            QMessageBox.information(self, "Route", "Select at least two customers on the map.")
