"""Customer repository with encrypted contact fields."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from snowdesk_app.core.crypto import CryptoService
from snowdesk_app.models.customer import ContractType, Coordinates, Customer
from snowdesk_app.repositories.db_pool import ThreadLocalConnection

_COLUMNS = """
    id,
    name,
    postal_code,
    address,
    phone_encrypted,
    email_encrypted,
    contract_type,
    snow_removal_area,
    contract_start_date,
    contract_end_date,
    billing_amount,
    lat,
    lng,
    created_at,
    updated_at
"""


def _iso_or_none(value: date | None) -> str | None:
    return value.isoformat() if value else None


def _date_or_none(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


class CustomerRepository:
    """Handles customer persistence and retrieval."""

    def __init__(self, pool: ThreadLocalConnection, crypto_service: CryptoService):
        self._pool = pool
        self._crypto = crypto_service

    def _to_customer(self, row: Any) -> Customer:
        coordinates = None
        if row["lat"] is not None and row["lng"] is not None:
            coordinates = Coordinates(lat=float(row["lat"]), lng=float(row["lng"]))
        return Customer(
            id=row["id"],
            name=row["name"],
            postal_code=row["postal_code"] or "",
            address=row["address"],
            phone=self._crypto.decrypt_text(row["phone_encrypted"]),
            email=self._crypto.decrypt_text(row["email_encrypted"]),
            contract_type=ContractType.parse(row["contract_type"]),
            snow_removal_area=Decimal(row["snow_removal_area"]),
            contract_start_date=_date_or_none(row["contract_start_date"]),
            contract_end_date=_date_or_none(row["contract_end_date"]),
            billing_amount=Decimal(row["billing_amount"]),
            coordinates=coordinates,
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def _values(self, customer: Customer) -> tuple[Any, ...]:
        coordinates = customer.coordinates
        return (
            customer.name,
            customer.postal_code,
            customer.address,
            self._crypto.encrypt_text(customer.phone),
            self._crypto.encrypt_text(customer.email),
            customer.contract_type.value,
            str(customer.snow_removal_area),
            _iso_or_none(customer.contract_start_date),
            _iso_or_none(customer.contract_end_date),
            str(customer.billing_amount),
            coordinates.lat if coordinates else None,
            coordinates.lng if coordinates else None,
            customer.updated_at.isoformat(),
        )

    def create_customer(self, customer: Customer) -> None:
        """Insert a record whose id and timestamps were assigned by the store."""
        self._pool.execute(
            """
            INSERT INTO customers (
                name,
                postal_code,
                address,
                phone_encrypted,
                email_encrypted,
                contract_type,
                snow_removal_area,
                contract_start_date,
                contract_end_date,
                billing_amount,
                lat,
                lng,
                updated_at,
                id,
                created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            self._values(customer) + (customer.id, customer.created_at.isoformat()),
        )

    def get_customer(self, customer_id: str) -> Customer | None:
        row = self._pool.fetchone(
            f"SELECT {_COLUMNS} FROM customers WHERE id = ?",
            (customer_id,),
        )
        return self._to_customer(row) if row else None

    def list_customers(self) -> list[Customer]:
        """Fetch every customer in creation order."""
        rows = self._pool.fetchall(
            f"SELECT {_COLUMNS} FROM customers ORDER BY created_at, rowid"
        )
        return [self._to_customer(row) for row in rows]

    def update_customer(self, customer: Customer) -> int:
        """Replace all editable columns and return affected row count."""
        cursor = self._pool.execute(
            """
            UPDATE customers
            SET
                name = ?,
                postal_code = ?,
                address = ?,
                phone_encrypted = ?,
                email_encrypted = ?,
                contract_type = ?,
                snow_removal_area = ?,
                contract_start_date = ?,
                contract_end_date = ?,
                billing_amount = ?,
                lat = ?,
                lng = ?,
                updated_at = ?
            WHERE id = ?
            """,
            self._values(customer) + (customer.id,),
        )
        return cursor.rowcount

    def delete_customer(self, customer_id: str) -> int:
        cursor = self._pool.execute("DELETE FROM customers WHERE id = ?", (customer_id,))
        return cursor.rowcount
