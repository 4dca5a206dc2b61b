"""Draft state machine behind the customer form."""

from __future__ import annotations

import logging
from dataclasses import replace
from enum import Enum
from typing import Any, Callable, Protocol

from snowdesk_app.core.validation import is_complete_postal_code, normalize_postal_code
from snowdesk_app.models.customer import Coordinates, Customer, CustomerDraft
from snowdesk_app.services.dispatch import Dispatcher, run_inline

logger = logging.getLogger(__name__)

ADDRESS_GEOCODE_MIN_LENGTH = 6

EDITABLE_FIELDS = frozenset(
    {
        "name",
        "phone",
        "email",
        "contract_type",
        "snow_removal_area",
        "contract_start_date",
        "contract_end_date",
        "billing_amount",
    }
)


class Geocoder(Protocol):
    def geocode(self, address: str) -> Coordinates | None: ...


class PostalLookup(Protocol):
    def lookup(self, postal_code: str) -> str | None: ...


class FormState(str, Enum):
    EDITING = "editing"
    RESOLVING_ADDRESS = "resolving_address"
    COMMITTED = "committed"
    CANCELLED = "cancelled"


class FormController:
    """Holds one draft from first edit to commit or cancel.

    Postal-code and address edits start lookups in the background. Each
    lookup carries a token; a response is applied only while its token is
    still the newest of its kind, so a slow reply cannot overwrite what the
    user typed after it was sent.
    """

    def __init__(
        self,
        geocoder: Geocoder,
        postal_lookup: PostalLookup,
        initial: Customer | None = None,
        dispatcher: Dispatcher = run_inline,
        on_change: Callable[[str], None] | None = None,
    ) -> None:
        self._geocoder = geocoder
        self._postal_lookup = postal_lookup
        self._dispatch = dispatcher
        self._on_change = on_change
        self._draft = CustomerDraft.from_customer(initial) if initial else CustomerDraft()
        self._state = FormState.EDITING
        self._coords_token = 0
        self._address_token = 0

    @property
    def state(self) -> FormState:
        return self._state

    @property
    def draft(self) -> CustomerDraft:
        """A copy of the current draft."""
        return replace(self._draft)

    @property
    def is_new(self) -> bool:
        return self._draft.id is None

    def set_field(self, field_name: str, value: Any) -> None:
        self._ensure_editing()
        if field_name not in EDITABLE_FIELDS:
            raise ValueError(f"Field cannot be edited directly: {field_name}")
        setattr(self._draft, field_name, value)

    def set_postal_code(self, raw: str) -> str:
        """Store the normalized code; a complete code looks up its address."""
        self._ensure_editing()
        code = normalize_postal_code(raw)
        self._draft.postal_code = code
        self._address_token += 1
        if is_complete_postal_code(code):
            token = self._address_token
            self._dispatch(
                lambda: self._postal_lookup.lookup(code),
                lambda address: self._apply_postal_address(token, code, address),
            )
        return code

    def set_address(self, text: str) -> None:
        """Store typed address text and refresh coordinates once it is long enough."""
        self._ensure_editing()
        self._draft.address = text
        # A manual edit wins over any postal lookup still in flight.
        self._address_token += 1
        if len(text) >= ADDRESS_GEOCODE_MIN_LENGTH and text.strip():
            self._refresh_coordinates(text.strip())
        else:
            self._coords_token += 1

    def submit(self, on_commit: Callable[[CustomerDraft], None]) -> None:
        """Resolve coordinates for the address, then hand the draft to on_commit.

        A failed lookup does not block the commit; coordinates keep their
        previous value.
        """
        self._ensure_editing()
        self._state = FormState.RESOLVING_ADDRESS
        self._address_token += 1
        self._coords_token += 1
        token = self._coords_token
        address = self._draft.address.strip()
        if not address:
            self._commit(on_commit)
            return
        self._dispatch(
            lambda: self._geocoder.geocode(address),
            lambda coordinates: self._finish_submit(token, coordinates, on_commit),
        )

    def cancel(self) -> None:
        """Abandon the draft; late responses are dropped."""
        if self._state is FormState.COMMITTED:
            return
        self._state = FormState.CANCELLED
        self._coords_token += 1
        self._address_token += 1

    def _ensure_editing(self) -> None:
        if self._state is not FormState.EDITING:
            raise ValueError(f"Draft is not editable in state {self._state.value}.")

    def _notify(self, field_name: str) -> None:
        if self._on_change is not None:
            self._on_change(field_name)

    def _refresh_coordinates(self, address: str) -> None:
        self._coords_token += 1
        token = self._coords_token
        self._dispatch(
            lambda: self._geocoder.geocode(address),
            lambda coordinates: self._apply_coordinates(token, coordinates),
        )

    def _apply_postal_address(self, token: int, code: str, address: str | None) -> None:
        if self._state is not FormState.EDITING or token != self._address_token:
            logger.debug("Dropped stale postal lookup result for %s", code)
            return
        if not address:
            logger.info("Postal code %s did not resolve; address left unchanged", code)
            return
        self._draft.address = address
        self._notify("address")
        self._refresh_coordinates(address)

    def _apply_coordinates(self, token: int, coordinates: Coordinates | None) -> None:
        if self._state is not FormState.EDITING or token != self._coords_token:
            logger.debug("Dropped stale coordinate result")
            return
        if coordinates is None:
            return
        self._draft.coordinates = coordinates
        self._notify("coordinates")

    def _finish_submit(
        self,
        token: int,
        coordinates: Coordinates | None,
        on_commit: Callable[[CustomerDraft], None],
    ) -> None:
        if self._state is not FormState.RESOLVING_ADDRESS or token != self._coords_token:
            return
        if coordinates is None:
            logger.info("Address could not be geocoded; keeping previous coordinates")
        else:
            self._draft.coordinates = coordinates
        self._commit(on_commit)

    def _commit(self, on_commit: Callable[[CustomerDraft], None]) -> None:
        self._state = FormState.COMMITTED
        on_commit(replace(self._draft))
