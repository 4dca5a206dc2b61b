"""Immutable in-memory snapshot of the customer collection."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable

from snowdesk_app.models.customer import Customer, CustomerDraft


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_customer_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class RecordStore:
    """Customer records in insertion order.

    Mutations never touch the current instance; each returns a new store so
    the owner decides when to swap its reference.
    """

    records: tuple[Customer, ...] = ()
    id_factory: Callable[[], str] = field(default=new_customer_id, compare=False, repr=False)

    @classmethod
    def from_records(cls, records: Iterable[Customer]) -> "RecordStore":
        return cls(records=tuple(records))

    def __len__(self) -> int:
        return len(self.records)

    def get(self, customer_id: str) -> Customer | None:
        for customer in self.records:
            if customer.id == customer_id:
                return customer
        return None

    def require(self, customer_id: str) -> Customer:
        customer = self.get(customer_id)
        if customer is None:
            raise ValueError(f"Customer not found: {customer_id}")
        return customer

    def create(self, draft: CustomerDraft, now: datetime | None = None) -> "RecordStore":
        """Append a new record built from the draft with a generated id."""
        timestamp = now or utc_now()
        customer_id = self.id_factory()
        if self.get(customer_id) is not None:
            raise ValueError(f"Duplicate customer id generated: {customer_id}")
        customer = _build_customer(draft, customer_id, timestamp, timestamp)
        return RecordStore(records=self.records + (customer,), id_factory=self.id_factory)

    def update(
        self,
        customer_id: str,
        draft: CustomerDraft,
        now: datetime | None = None,
    ) -> "RecordStore":
        """Replace every editable field of one record."""
        current = self.require(customer_id)
        # Clock skew must never move updated_at backwards.
        updated_at = max(now or utc_now(), current.updated_at)
        replacement = _build_customer(draft, current.id, current.created_at, updated_at)
        return RecordStore(
            records=tuple(
                replacement if customer.id == customer_id else customer
                for customer in self.records
            ),
            id_factory=self.id_factory,
        )

    def delete(self, customer_id: str) -> "RecordStore":
        self.require(customer_id)
        return RecordStore(
            records=tuple(customer for customer in self.records if customer.id != customer_id),
            id_factory=self.id_factory,
        )

    @property
    def last_created(self) -> Customer | None:
        return self.records[-1] if self.records else None


def _build_customer(
    draft: CustomerDraft,
    customer_id: str,
    created_at: datetime,
    updated_at: datetime,
) -> Customer:
    return Customer(
        id=customer_id,
        name=draft.name.strip(),
        postal_code=draft.postal_code,
        address=draft.address.strip(),
        phone=draft.phone.strip(),
        email=draft.email.strip(),
        contract_type=draft.contract_type,
        snow_removal_area=draft.snow_removal_area,
        contract_start_date=draft.contract_start_date,
        contract_end_date=draft.contract_end_date,
        billing_amount=draft.billing_amount,
        coordinates=draft.coordinates,
        created_at=created_at,
        updated_at=updated_at,
    )
