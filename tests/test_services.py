"""Integration-like tests for the customer service over a SQLite file."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from snowdesk_app.core.config import DatabaseConfig
from snowdesk_app.core.crypto import CryptoService
from snowdesk_app.models.customer import ContractType, Coordinates, CustomerDraft
from snowdesk_app.repositories import db_pool
from snowdesk_app.repositories.customer_repository import CustomerRepository
from snowdesk_app.repositories.db_pool import ThreadLocalConnection
from snowdesk_app.repositories.schema import initialize_schema
from snowdesk_app.services.customer_service import CustomerService
from snowdesk_app.services.record_store import RecordStore


@pytest.fixture
def pool(monkeypatch, tmp_path):
    monkeypatch.setattr(db_pool, "SQLCIPHER_AVAILABLE", False)
    pool = ThreadLocalConnection(
        DatabaseConfig(
            path=str(tmp_path / "test.db"),
            key_env="SNOWDESK_DB_KEY",
            allow_sqlite_fallback=True,
        )
    )
    initialize_schema(pool)
    yield pool
    pool.close_connection()


@pytest.fixture
def service(pool):
    crypto = CryptoService.from_base64_key(CryptoService.generate_base64_key())
    return CustomerService(CustomerRepository(pool, crypto))


def sample_draft(**overrides) -> CustomerDraft:
    values = {
        "name": "Yamada Taro",
        "postal_code": "0600001",
        "address": "Hokkaido Sapporo Chuo-ku Kita 1-jo Nishi",
        "phone": "011-222-3333",
        "email": "yamada@example.jp",
        "contract_type": ContractType.PREMIUM,
        "snow_removal_area": Decimal("120.5"),
        "contract_start_date": date(2025, 11, 1),
        "contract_end_date": date(2026, 3, 31),
        "billing_amount": Decimal("48000"),
        "coordinates": Coordinates(lat=43.0621, lng=141.3544),
    }
    values.update(overrides)
    return CustomerDraft(**values)


def test_customer_crud_round_trip(service) -> None:
    store = service.create_customer(RecordStore(), sample_draft())
    created = store.last_created

    loaded = service.load_store()
    assert loaded.records == store.records

    draft = CustomerDraft.from_customer(created)
    draft.contract_type = ContractType.CUSTOM
    draft.coordinates = None
    store = service.update_customer(store, created.id, draft)

    reloaded = service.load_store().require(created.id)
    assert reloaded.contract_type is ContractType.CUSTOM
    assert reloaded.coordinates is None
    assert reloaded.snow_removal_area == Decimal("120.5")
    assert reloaded.contract_end_date == date(2026, 3, 31)

    store = service.delete_customer(store, created.id)
    assert len(store) == 0
    assert len(service.load_store()) == 0


def test_contact_fields_are_encrypted_at_rest(service, pool) -> None:
    service.create_customer(RecordStore(), sample_draft())

    row = pool.fetchone("SELECT phone_encrypted, email_encrypted FROM customers")

    assert b"011-222-3333" not in bytes(row["phone_encrypted"])
    assert b"yamada@example.jp" not in bytes(row["email_encrypted"])


def test_save_draft_creates_then_updates(service) -> None:
    store = service.save_draft(RecordStore(), sample_draft())
    customer_id = store.last_created.id

    store = service.save_draft(store, sample_draft(name="Yamada Hanako", id=customer_id))

    assert len(store) == 1
    assert service.load_store().require(customer_id).name == "Yamada Hanako"


def test_update_of_missing_row_raises_and_keeps_store(service, make_customer) -> None:
    stale = RecordStore.from_records([make_customer("ghost")])

    with pytest.raises(ValueError):
        service.update_customer(stale, "ghost", sample_draft())

    assert stale.require("ghost").name == "Customer ghost"


def test_load_store_keeps_creation_order(service) -> None:
    store = RecordStore()
    for name in ["Kato", "Abe", "Mori"]:
        store = service.create_customer(store, sample_draft(name=name))

    assert [customer.name for customer in service.load_store().records] == ["Kato", "Abe", "Mori"]


def test_missing_sqlcipher_without_fallback_is_refused(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(db_pool, "SQLCIPHER_AVAILABLE", False)
    pool = ThreadLocalConnection(
        DatabaseConfig(path=str(tmp_path / "x.db"), key_env="SNOWDESK_DB_KEY", allow_sqlite_fallback=False)
    )

    with pytest.raises(RuntimeError):
        pool.get_connection()


def test_repository_fetches_single_customer(pool) -> None:
    crypto = CryptoService.from_base64_key(CryptoService.generate_base64_key())
    repo = CustomerRepository(pool, crypto)
    store = RecordStore().create(sample_draft(coordinates=None))
    created = store.last_created
    repo.create_customer(created)

    assert repo.get_customer(created.id) == created
    assert repo.get_customer("missing") is None
