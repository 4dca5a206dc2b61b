from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from snowdesk_app.models.customer import ContractType, Coordinates, Customer

BASE_TIME = datetime(2025, 1, 24, 9, 0, tzinfo=timezone.utc)


def build_customer(customer_id: str, **overrides) -> Customer:
    values = {
        "id": customer_id,
        "name": f"Customer {customer_id}",
        "postal_code": "0600001",
        "address": "Sapporo Chuo-ku Kita 1-jo",
        "phone": "011-000-0000",
        "email": "",
        "contract_type": ContractType.BASIC,
        "snow_removal_area": Decimal("100"),
        "contract_start_date": None,
        "contract_end_date": None,
        "billing_amount": Decimal("10000"),
        "coordinates": Coordinates(lat=43.06, lng=141.35),
        "created_at": BASE_TIME,
        "updated_at": BASE_TIME,
    }
    values.update(overrides)
    return Customer(**values)


@pytest.fixture
def make_customer():
    return build_customer


class DeferredDispatcher:
    """Holds jobs until the test decides when (and in which order) they finish."""

    def __init__(self):
        self.jobs = []

    def __call__(self, job, on_done):
        self.jobs.append((job, on_done))

    def run(self, index: int) -> None:
        job, on_done = self.jobs.pop(index)
        on_done(job())

    def run_all(self) -> None:
        while self.jobs:
            self.run(0)


@pytest.fixture
def deferred():
    return DeferredDispatcher()
