"""Customer domain models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


class ContractType(str, Enum):
    """Contract tier; declaration order is the sort order."""

    BASIC = "basic"
    PREMIUM = "premium"
    CUSTOM = "custom"

    @property
    def label(self) -> str:
        return _CONTRACT_LABELS[self]

    @classmethod
    def parse(cls, value: "str | ContractType | None") -> "ContractType":
        """Parse a stored or widget value; blank means basic."""
        if isinstance(value, cls):
            return value
        normalized = (value or "").strip().lower()
        if not normalized:
            return cls.BASIC
        try:
            return cls(normalized)
        except ValueError as error:
            raise ValueError(f"Unknown contract type: {value}") from error


_CONTRACT_LABELS = {
    ContractType.BASIC: "Basic plan",
    ContractType.PREMIUM: "Premium plan",
    ContractType.CUSTOM: "Custom plan",
}


@dataclass(frozen=True)
class Coordinates:
    """Latitude/longitude pair in WGS84 degrees."""

    lat: float
    lng: float


@dataclass
class CustomerDraft:
    """Mutable in-progress copy of a customer held by the form."""

    name: str = ""
    postal_code: str = ""
    address: str = ""
    phone: str = ""
    email: str = ""
    contract_type: ContractType = ContractType.BASIC
    snow_removal_area: Decimal = Decimal("0")
    contract_start_date: date | None = None
    contract_end_date: date | None = None
    billing_amount: Decimal = Decimal("0")
    coordinates: Coordinates | None = None
    id: str | None = None

    @classmethod
    def from_customer(cls, customer: "Customer") -> "CustomerDraft":
        return cls(
            name=customer.name,
            postal_code=customer.postal_code,
            address=customer.address,
            phone=customer.phone,
            email=customer.email,
            contract_type=customer.contract_type,
            snow_removal_area=customer.snow_removal_area,
            contract_start_date=customer.contract_start_date,
            contract_end_date=customer.contract_end_date,
            billing_amount=customer.billing_amount,
            coordinates=customer.coordinates,
            id=customer.id,
        )


@dataclass(frozen=True)
class Customer:
    """A persisted customer record."""

    id: str
    name: str
    postal_code: str
    address: str
    phone: str
    email: str
    contract_type: ContractType
    snow_removal_area: Decimal
    contract_start_date: date | None
    contract_end_date: date | None
    billing_amount: Decimal
    coordinates: Coordinates | None
    created_at: datetime
    updated_at: datetime

    @property
    def is_geocoded(self) -> bool:
        return self.coordinates is not None
