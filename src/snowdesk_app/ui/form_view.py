"""Customer form bound to a FormController."""

from __future__ import annotations

from typing import Callable

from PySide6.QtWidgets import (
    QComboBox,
    QFormLayout,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMessageBox,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from snowdesk_app.core.validation import (
    parse_non_negative_decimal,
    parse_optional_date,
    validate_optional_email,
    validate_required_text,
)
from snowdesk_app.models.customer import ContractType, Customer, CustomerDraft
from snowdesk_app.services.dispatch import Dispatcher
from snowdesk_app.services.form_controller import FormController, FormState, Geocoder, PostalLookup


class CustomerFormView(QWidget):
    """Edits one draft at a time; a new controller is built per session."""

    def __init__(
        self,
        geocoder: Geocoder,
        postal_lookup: PostalLookup,
        dispatcher: Dispatcher,
        on_commit: Callable[[CustomerDraft], None],
        on_cancel: Callable[[], None],
        parent: QWidget | None = None,
    ):
        super().__init__(parent)
        self._geocoder = geocoder
        self._postal_lookup = postal_lookup
        self._dispatcher = dispatcher
        self._on_commit = on_commit
        self._on_cancel = on_cancel
        self.controller: FormController | None = None

        layout = QVBoxLayout(self)
        self.title_label = QLabel()
        form = QFormLayout()

        self.name_input = QLineEdit()
        self.postal_code_input = QLineEdit()
        self.postal_code_input.setPlaceholderText("1234567")
        self.postal_code_input.textEdited.connect(self._on_postal_code_edited)
        self.address_input = QLineEdit()
        self.address_input.textEdited.connect(self._on_address_edited)
        self.coordinates_label = QLabel()
        self.phone_input = QLineEdit()
        self.email_input = QLineEdit()
        self.contract_type_input = QComboBox()
        for contract_type in ContractType:
            self.contract_type_input.addItem(contract_type.label, contract_type)
        self.area_input = QLineEdit()
        self.start_date_input = QLineEdit()
        self.start_date_input.setPlaceholderText("YYYY-MM-DD")
        self.end_date_input = QLineEdit()
        self.end_date_input.setPlaceholderText("YYYY-MM-DD")
        self.billing_input = QLineEdit()

        form.addRow("Name *", self.name_input)
        form.addRow("Postal code", self.postal_code_input)
        form.addRow("Address *", self.address_input)
        form.addRow("Location", self.coordinates_label)
        form.addRow("Phone", self.phone_input)
        form.addRow("Email", self.email_input)
        form.addRow("Contract type", self.contract_type_input)
        form.addRow("Snow removal area (m²)", self.area_input)
        form.addRow("Contract start", self.start_date_input)
        form.addRow("Contract end", self.end_date_input)
        form.addRow("Billing amount (¥)", self.billing_input)

        buttons = QHBoxLayout()
        buttons.addStretch(1)
        cancel_button = QPushButton("Cancel")
        cancel_button.clicked.connect(self.cancel)
        self.save_button = QPushButton("Save")
        self.save_button.clicked.connect(self.submit)
        buttons.addWidget(cancel_button)
        buttons.addWidget(self.save_button)

        layout.addWidget(self.title_label)
        layout.addLayout(form)
        layout.addLayout(buttons)
        layout.addStretch(1)

    def start(self, customer: Customer | None = None) -> None:
        """Open a fresh draft, either blank or copied from a customer."""
        if self.controller is not None:
            self.controller.cancel()
        self.controller = FormController(
            self._geocoder,
            self._postal_lookup,
            initial=customer,
            dispatcher=self._dispatcher,
            on_change=self._on_controller_change,
        )
        draft = self.controller.draft
        self.title_label.setText("New customer" if customer is None else f"Edit {customer.name}")
        self.name_input.setText(draft.name)
        self.postal_code_input.setText(draft.postal_code)
        self.address_input.setText(draft.address)
        self.phone_input.setText(draft.phone)
        self.email_input.setText(draft.email)
        self.contract_type_input.setCurrentIndex(list(ContractType).index(draft.contract_type))
        self.area_input.setText(str(draft.snow_removal_area) if draft.snow_removal_area else "")
        self.start_date_input.setText(
            draft.contract_start_date.isoformat() if draft.contract_start_date else ""
        )
        self.end_date_input.setText(
            draft.contract_end_date.isoformat() if draft.contract_end_date else ""
        )
        self.billing_input.setText(str(draft.billing_amount) if draft.billing_amount else "")
        self.save_button.setEnabled(True)
        self._render_coordinates()
        self.name_input.setFocus()

    def _on_postal_code_edited(self, text: str) -> None:
        if self.controller is not None and self.controller.state is FormState.EDITING:
            self.controller.set_postal_code(text)

    def _on_address_edited(self, text: str) -> None:
        if self.controller is not None and self.controller.state is FormState.EDITING:
            self.controller.set_address(text)

    def _on_controller_change(self, field_name: str) -> None:
        if self.controller is None:
            return
        if field_name == "address":
            self.address_input.setText(self.controller.draft.address)
        self._render_coordinates()

    def _render_coordinates(self) -> None:
        coordinates = self.controller.draft.coordinates if self.controller else None
        if coordinates is None:
            self.coordinates_label.setText("Not located")
        else:
            self.coordinates_label.setText(f"{coordinates.lat:.5f}, {coordinates.lng:.5f}")

    def submit(self) -> None:
        if self.controller is None or self.controller.state is not FormState.EDITING:
            return
        try:
            # Required fields are checked here only; the controller trusts the form.
            validate_required_text(self.name_input.text(), "Name")
            validate_required_text(self.address_input.text(), "Address")
            values = {
                "name": self.name_input.text(),
                "phone": self.phone_input.text(),
                "email": validate_optional_email(self.email_input.text()),
                "contract_type": self.contract_type_input.currentData(),
                "snow_removal_area": parse_non_negative_decimal(
                    self.area_input.text(), "Snow removal area"
                ),
                "contract_start_date": parse_optional_date(
                    self.start_date_input.text(), "Contract start"
                ),
                "contract_end_date": parse_optional_date(
                    self.end_date_input.text(), "Contract end"
                ),
                "billing_amount": parse_non_negative_decimal(
                    self.billing_input.text(), "Billing amount"
                ),
            }
        except ValueError as error:
            QMessageBox.critical(self, "Error", str(error))
            return

        for field_name, value in values.items():
            self.controller.set_field(field_name, value)
        self.save_button.setEnabled(False)
        self.controller.submit(self._on_commit)

    def cancel(self) -> None:
        if self.controller is not None:
            self.controller.cancel()
            self.controller = None
        self._on_cancel()
