"""Tests for the customer draft state machine."""

from __future__ import annotations

import pytest

from snowdesk_app.models.customer import Coordinates
from snowdesk_app.services.form_controller import FormController, FormState

SAPPORO = Coordinates(lat=43.0618, lng=141.3545)
ASAHIKAWA = Coordinates(lat=43.7706, lng=142.3650)


class FakeGeocoder:
    def __init__(self, results=None):
        self.results = results or {}
        self.calls = []

    def geocode(self, address):
        self.calls.append(address)
        return self.results.get(address)


class FakePostalLookup:
    def __init__(self, results=None):
        self.results = results or {}
        self.calls = []

    def lookup(self, postal_code):
        self.calls.append(postal_code)
        return self.results.get(postal_code)


def test_complete_postal_code_triggers_single_lookup() -> None:
    geocoder = FakeGeocoder({"Hokkaido Sapporo Chuo": SAPPORO})
    postal = FakePostalLookup({"1234567": "Hokkaido Sapporo Chuo"})
    controller = FormController(geocoder, postal)

    code = controller.set_postal_code("123-4567")

    assert code == "1234567"
    assert postal.calls == ["1234567"]
    assert controller.draft.address == "Hokkaido Sapporo Chuo"
    assert controller.draft.coordinates == SAPPORO


def test_incomplete_postal_code_does_not_lookup() -> None:
    postal = FakePostalLookup()
    controller = FormController(FakeGeocoder(), postal)

    controller.set_postal_code("123-45")

    assert postal.calls == []
    assert controller.draft.postal_code == "12345"


def test_failed_postal_lookup_leaves_address() -> None:
    controller = FormController(FakeGeocoder(), FakePostalLookup())
    controller.set_address("Asahikawa 4-jo")

    controller.set_postal_code("0700034")

    assert controller.draft.address == "Asahikawa 4-jo"


def test_short_address_does_not_geocode() -> None:
    geocoder = FakeGeocoder()
    controller = FormController(geocoder, FakePostalLookup())

    controller.set_address("Tokyo")
    controller.set_address("Sapporo")

    assert geocoder.calls == ["Sapporo"]


def test_submit_with_geocoding_failure_keeps_absent_coordinates() -> None:
    committed = []
    controller = FormController(FakeGeocoder(), FakePostalLookup())
    controller.set_field("name", "Yamada")
    controller.set_address("Tokyo")

    controller.submit(committed.append)

    assert controller.state is FormState.COMMITTED
    assert len(committed) == 1
    assert committed[0].address == "Tokyo"
    assert committed[0].coordinates is None


def test_submit_with_geocoding_failure_keeps_previous_coordinates(make_customer) -> None:
    committed = []
    customer = make_customer("c1", address="Old address", coordinates=SAPPORO)
    controller = FormController(FakeGeocoder(), FakePostalLookup(), initial=customer)
    controller.set_address("Tokyo")

    controller.submit(committed.append)

    assert committed[0].id == "c1"
    assert committed[0].coordinates == SAPPORO


def test_submit_refreshes_coordinates() -> None:
    committed = []
    controller = FormController(FakeGeocoder({"Asahikawa": ASAHIKAWA}), FakePostalLookup())
    controller.set_address("Asahikawa")

    controller.submit(committed.append)

    assert committed[0].coordinates == ASAHIKAWA


def test_stale_coordinate_response_is_dropped(deferred) -> None:
    geocoder = FakeGeocoder({"Sapporo city": SAPPORO, "Asahikawa city": ASAHIKAWA})
    controller = FormController(geocoder, FakePostalLookup(), dispatcher=deferred)

    controller.set_address("Sapporo city")
    controller.set_address("Asahikawa city")
    deferred.run(1)
    deferred.run(0)

    assert controller.draft.coordinates == ASAHIKAWA


def test_manual_address_edit_wins_over_pending_postal_lookup(deferred) -> None:
    postal = FakePostalLookup({"0600001": "Hokkaido Sapporo"})
    controller = FormController(FakeGeocoder(), postal, dispatcher=deferred)

    controller.set_postal_code("060-0001")
    controller.set_address("Typed by hand 1-2-3")
    deferred.run_all()

    assert postal.calls == ["0600001"]
    assert controller.draft.address == "Typed by hand 1-2-3"


def test_cancel_during_resolution_never_commits(deferred) -> None:
    committed = []
    controller = FormController(FakeGeocoder({"Sapporo": SAPPORO}), FakePostalLookup(), dispatcher=deferred)
    controller.set_field("name", "Sato")
    controller.set_address("Sapporo")
    deferred.run_all()

    controller.submit(committed.append)
    controller.cancel()
    deferred.run_all()

    assert committed == []
    assert controller.state is FormState.CANCELLED


def test_edits_rejected_after_commit() -> None:
    controller = FormController(FakeGeocoder(), FakePostalLookup())
    controller.submit(lambda draft: None)

    with pytest.raises(ValueError):
        controller.set_field("name", "Late")


def test_coordinates_are_not_directly_editable() -> None:
    controller = FormController(FakeGeocoder(), FakePostalLookup())

    with pytest.raises(ValueError):
        controller.set_field("coordinates", SAPPORO)


def test_address_length_counts_typed_characters() -> None:
    geocoder = FakeGeocoder()
    controller = FormController(geocoder, FakePostalLookup())

    controller.set_address("Tokyo ")
    controller.set_address("      ")

    assert geocoder.calls == ["Tokyo"]
