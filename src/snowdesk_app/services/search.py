"""List-view filtering and sorting over customer records."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Iterable

from snowdesk_app.core.validation import normalize_postal_code
from snowdesk_app.models.customer import ContractType, Customer


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"

    def flipped(self) -> "SortDirection":
        return SortDirection.DESC if self is SortDirection.ASC else SortDirection.ASC


def _text(value: str) -> str:
    return (value or "").casefold()


def _contract_rank(contract_type: ContractType) -> int:
    return list(ContractType).index(contract_type)


def _optional(value: date | datetime | None) -> tuple[bool, Any]:
    # Absent values order before any present value.
    return (value is not None, value if value is not None else 0)


class SortKey(str, Enum):
    """Sortable columns; each maps to one accessor with a fixed comparison."""

    NAME = "name"
    POSTAL_CODE = "postal_code"
    ADDRESS = "address"
    PHONE = "phone"
    EMAIL = "email"
    CONTRACT_TYPE = "contract_type"
    SNOW_REMOVAL_AREA = "snow_removal_area"
    BILLING_AMOUNT = "billing_amount"
    CONTRACT_START_DATE = "contract_start_date"
    CONTRACT_END_DATE = "contract_end_date"
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"

    def sort_value(self, customer: Customer) -> Any:
        return _SORT_ACCESSORS[self](customer)


_SORT_ACCESSORS: dict[SortKey, Callable[[Customer], Any]] = {
    SortKey.NAME: lambda c: _text(c.name),
    SortKey.POSTAL_CODE: lambda c: normalize_postal_code(c.postal_code),
    SortKey.ADDRESS: lambda c: _text(c.address),
    SortKey.PHONE: lambda c: _text(c.phone),
    SortKey.EMAIL: lambda c: _text(c.email),
    SortKey.CONTRACT_TYPE: lambda c: _contract_rank(c.contract_type),
    SortKey.SNOW_REMOVAL_AREA: lambda c: c.snow_removal_area,
    SortKey.BILLING_AMOUNT: lambda c: c.billing_amount,
    SortKey.CONTRACT_START_DATE: lambda c: _optional(c.contract_start_date),
    SortKey.CONTRACT_END_DATE: lambda c: _optional(c.contract_end_date),
    SortKey.CREATED_AT: lambda c: c.created_at,
    SortKey.UPDATED_AT: lambda c: c.updated_at,
}


@dataclass(frozen=True)
class SortState:
    """Current list ordering; clicking a header toggles it."""

    key: SortKey = SortKey.NAME
    direction: SortDirection = SortDirection.ASC

    def toggle(self, key: SortKey) -> "SortState":
        if key is self.key:
            return replace(self, direction=self.direction.flipped())
        return SortState(key=key, direction=SortDirection.ASC)


@dataclass(frozen=True)
class SearchParams:
    """Sparse list-view predicates; blank values do not constrain."""

    name: str | None = None
    postal_code: str | None = None
    address: str | None = None
    phone: str | None = None
    contract_type: ContractType | None = None

    def is_empty(self) -> bool:
        return not any(
            [self.name, self.postal_code, self.address, self.phone, self.contract_type]
        )


def _contains(haystack: str, needle: str | None) -> bool:
    if not needle:
        return True
    return needle.casefold() in (haystack or "").casefold()


def matches(customer: Customer, params: SearchParams) -> bool:
    """Return True when the record satisfies every supplied predicate."""
    return (
        _contains(customer.name, params.name)
        and _contains(customer.address, params.address)
        and _contains(customer.phone, params.phone)
        and _matches_postal_code(customer.postal_code, params.postal_code)
        and (params.contract_type is None or customer.contract_type is params.contract_type)
    )


def _matches_postal_code(postal_code: str, query: str | None) -> bool:
    if not query:
        return True
    digits = normalize_postal_code(query)
    # A query with no digits at all can never match a stored code.
    return bool(digits) and digits in normalize_postal_code(postal_code)


def filter_customers(records: Iterable[Customer], params: SearchParams) -> list[Customer]:
    return [customer for customer in records if matches(customer, params)]


def sort_customers(
    records: Iterable[Customer],
    key: SortKey,
    direction: SortDirection = SortDirection.ASC,
) -> list[Customer]:
    """Sort stably; equal keys keep their input order in both directions."""
    return sorted(
        records,
        key=key.sort_value,
        reverse=direction is SortDirection.DESC,
    )


def search_customers(
    records: Iterable[Customer],
    params: SearchParams,
    sort: SortState = SortState(),
) -> list[Customer]:
    """Filter then sort, returning a new list."""
    return sort_customers(filter_customers(records, params), sort.key, sort.direction)
