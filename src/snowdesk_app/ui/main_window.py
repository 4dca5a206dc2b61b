"""Main window: list, map, and form views over one record store."""

from __future__ import annotations

import logging

from PySide6.QtCore import QThreadPool, Qt
from PySide6.QtWidgets import (
    QComboBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QStackedWidget,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from snowdesk_app.core.container import ServiceContainer
from snowdesk_app.models.customer import ContractType, Customer, CustomerDraft
from snowdesk_app.services.record_store import RecordStore
from snowdesk_app.services.search import SearchParams, SortDirection, SortKey, SortState, search_customers
from snowdesk_app.ui.form_view import CustomerFormView
from snowdesk_app.ui.map_view import MapPanel
from snowdesk_app.ui.tasks import LoadCustomersTask, QtDispatcher

logger = logging.getLogger(__name__)

LIST_COLUMNS: list[tuple[str, SortKey | None]] = [
    ("Name", SortKey.NAME),
    ("Postal code", SortKey.POSTAL_CODE),
    ("Address", SortKey.ADDRESS),
    ("Phone", SortKey.PHONE),
    ("Contract", SortKey.CONTRACT_TYPE),
    ("Billing", SortKey.BILLING_AMOUNT),
]


class MainWindow(QMainWindow):
    """Owns the record store and routes user actions to it."""

    def __init__(self, container: ServiceContainer):
        super().__init__()
        self.customer_service = container.customer_service
        self.thread_pool = QThreadPool.globalInstance()
        self.dispatcher = QtDispatcher(self.thread_pool, self)

        self.store = RecordStore()
        self.sort_state = SortState()
        self._listed: list[Customer] = []
        self._selected_id: str | None = None
        self._return_view = 0

        self.setWindowTitle("SnowDesk - Snow Removal Customers")
        self.resize(1280, 860)

        self.pages = QStackedWidget()
        self.pages.addWidget(self._build_list_page())
        self.map_panel = MapPanel(
            container.config.map,
            container.routing_client,
            self.dispatcher,
            on_select=self._on_map_customer_selected,
        )
        self.pages.addWidget(self.map_panel)
        self.form_view = CustomerFormView(
            container.geocoding_client,
            container.postal_lookup_client,
            self.dispatcher,
            on_commit=self._on_form_committed,
            on_cancel=self._close_form,
        )
        self.pages.addWidget(self.form_view)

        central = QWidget()
        layout = QVBoxLayout(central)
        layout.addLayout(self._build_nav_bar())
        layout.addWidget(self.pages)
        self.setCentralWidget(central)

        self.refresh_customers()

    def _build_nav_bar(self) -> QHBoxLayout:
        nav = QHBoxLayout()
        nav.addWidget(QLabel("<h2>Snow Removal Customers</h2>"))
        nav.addStretch(1)
        list_button = QPushButton("List")
        list_button.clicked.connect(lambda: self.show_view(0))
        map_button = QPushButton("Map")
        map_button.clicked.connect(lambda: self.show_view(1))
        new_button = QPushButton("New customer")
        new_button.clicked.connect(self.add_customer)
        nav.addWidget(list_button)
        nav.addWidget(map_button)
        nav.addWidget(new_button)
        return nav

    def _build_list_page(self) -> QWidget:
        page = QWidget()
        layout = QVBoxLayout(page)

        filters = QHBoxLayout()
        self.name_search = QLineEdit()
        self.name_search.setPlaceholderText("Search by name")
        self.postal_search = QLineEdit()
        self.postal_search.setPlaceholderText("Postal code (e.g. 123-4567)")
        self.address_search = QLineEdit()
        self.address_search.setPlaceholderText("Search by address")
        self.phone_search = QLineEdit()
        self.phone_search.setPlaceholderText("Search by phone")
        for widget in [self.name_search, self.postal_search, self.address_search, self.phone_search]:
            widget.textChanged.connect(self.render_list)
            filters.addWidget(widget)
        self.contract_search = QComboBox()
        self.contract_search.addItem("Contract type", None)
        for contract_type in ContractType:
            self.contract_search.addItem(contract_type.label, contract_type)
        self.contract_search.currentIndexChanged.connect(self.render_list)
        filters.addWidget(self.contract_search)

        self.customers_table = QTableWidget(0, len(LIST_COLUMNS))
        self.customers_table.setHorizontalHeaderLabels([title for title, _ in LIST_COLUMNS])
        self.customers_table.setSelectionBehavior(QTableWidget.SelectionBehavior.SelectRows)
        self.customers_table.setEditTriggers(QTableWidget.EditTrigger.NoEditTriggers)
        self.customers_table.horizontalHeader().sectionClicked.connect(self._on_header_clicked)
        self.customers_table.cellClicked.connect(self._on_row_selected)
        self.customers_table.cellDoubleClicked.connect(lambda row, _col: self.edit_customer())

        actions = QHBoxLayout()
        map_button = QPushButton("Show on map")
        map_button.clicked.connect(self.show_selected_on_map)
        edit_button = QPushButton("Edit")
        edit_button.clicked.connect(self.edit_customer)
        delete_button = QPushButton("Delete")
        delete_button.clicked.connect(self.delete_customer)
        actions.addStretch(1)
        actions.addWidget(map_button)
        actions.addWidget(edit_button)
        actions.addWidget(delete_button)

        layout.addLayout(filters)
        layout.addWidget(self.customers_table)
        layout.addLayout(actions)
        return page

    def show_view(self, index: int) -> None:
        if self.pages.currentWidget() is self.form_view:
            self.form_view.cancel()
        self.pages.setCurrentIndex(index)

    def refresh_customers(self) -> None:
        task = LoadCustomersTask(self.customer_service)
        task.signals.done.connect(self._set_store)
        task.signals.error.connect(lambda message: QMessageBox.critical(self, "Error", message))
        self.thread_pool.start(task)

    def _set_store(self, store: RecordStore) -> None:
        self.store = store
        self.render_list()
        self.map_panel.set_records(store.records)

    def current_search(self) -> SearchParams:
        return SearchParams(
            name=self.name_search.text().strip() or None,
            postal_code=self.postal_search.text().strip() or None,
            address=self.address_search.text().strip() or None,
            phone=self.phone_search.text().strip() or None,
            contract_type=self.contract_search.currentData(),
        )

    def render_list(self) -> None:
        self._listed = search_customers(self.store.records, self.current_search(), self.sort_state)
        table = self.customers_table
        table.setRowCount(len(self._listed))
        for row_index, customer in enumerate(self._listed):
            table.setItem(row_index, 0, QTableWidgetItem(customer.name))
            table.setItem(row_index, 1, QTableWidgetItem(customer.postal_code))
            table.setItem(row_index, 2, QTableWidgetItem(customer.address))
            table.setItem(row_index, 3, QTableWidgetItem(customer.phone))
            table.setItem(row_index, 4, QTableWidgetItem(customer.contract_type.label))
            billing = QTableWidgetItem(f"¥{customer.billing_amount:,}")
            billing.setTextAlignment(Qt.AlignmentFlag.AlignRight | Qt.AlignmentFlag.AlignVCenter)
            table.setItem(row_index, 5, billing)

        header = table.horizontalHeader()
        column = next(
            index for index, (_, key) in enumerate(LIST_COLUMNS) if key is self.sort_state.key
        )
        order = (
            Qt.SortOrder.AscendingOrder
            if self.sort_state.direction is SortDirection.ASC
            else Qt.SortOrder.DescendingOrder
        )
        header.setSortIndicatorShown(True)
        header.setSortIndicator(column, order)

    def _on_header_clicked(self, column: int) -> None:
        key = LIST_COLUMNS[column][1]
        if key is None:
            return
        self.sort_state = self.sort_state.toggle(key)
        self.render_list()

    def _on_row_selected(self, row: int, _column: int) -> None:
        if 0 <= row < len(self._listed):
            self._selected_id = self._listed[row].id

    def _selected_customer(self) -> Customer:
        if self._selected_id is None:
            raise ValueError("Select a customer first.")
        return self.store.require(self._selected_id)

    def _on_map_customer_selected(self, customer: Customer) -> None:
        self._selected_id = customer.id

    def add_customer(self) -> None:
        self._selected_id = None
        self._open_form(None)

    def edit_customer(self) -> None:
        try:
            self._open_form(self._selected_customer())
        except ValueError as error:
            QMessageBox.critical(self, "Error", str(error))

    def _open_form(self, customer: Customer | None) -> None:
        if self.pages.currentWidget() is not self.form_view:
            self._return_view = self.pages.currentIndex()
        self.form_view.start(customer)
        self.pages.setCurrentWidget(self.form_view)

    def _close_form(self) -> None:
        self._selected_id = None
        self.pages.setCurrentIndex(self._return_view)

    def _on_form_committed(self, draft: CustomerDraft) -> None:
        try:
            self._set_store(self.customer_service.save_draft(self.store, draft))
        except Exception as error:  # pylint: disable=broad-except
            logger.exception("Saving customer failed")
            QMessageBox.critical(self, "Error", str(error))
        self.form_view.controller = None
        self._close_form()

    def delete_customer(self) -> None:
        try:
            customer = self._selected_customer()
        except ValueError as error:
            QMessageBox.critical(self, "Error", str(error))
            return
        confirm = QMessageBox.question(
            self,
            "Delete customer",
            f"Delete {customer.name}? This cannot be undone.",
        )
        if confirm != QMessageBox.StandardButton.Yes:
            return
        try:
            self._set_store(self.customer_service.delete_customer(self.store, customer.id))
            self._selected_id = None
        except Exception as error:  # pylint: disable=broad-except
            QMessageBox.critical(self, "Error", str(error))

    def show_selected_on_map(self) -> None:
        try:
            customer = self._selected_customer()
        except ValueError as error:
            QMessageBox.critical(self, "Error", str(error))
            return
        self.pages.setCurrentWidget(self.map_panel)
        if not customer.is_geocoded:
            QMessageBox.information(self, "Map", f"{customer.name} has no location yet.")
            return
        if not self.map_panel.focus_customer(customer.id):
            QMessageBox.information(
                self,
                "Map",
                f"{customer.name} is hidden by the current map filters.",
            )
