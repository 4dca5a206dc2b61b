"""Database schema management."""

from __future__ import annotations

from snowdesk_app.repositories.db_pool import ThreadLocalConnection

# The hosted table this replaces granted read/insert to every signed-in user
# and, because its owner check compared each row with itself, update/delete
# to every signed-in user as well. There is no owner column here either.


def initialize_schema(pool: ThreadLocalConnection) -> None:
    """Create the customers table and indexes if they do not exist."""
    pool.execute(
        """
        CREATE TABLE IF NOT EXISTS customers (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            postal_code TEXT NOT NULL DEFAULT '',
            address TEXT NOT NULL,
            phone_encrypted BLOB,
            email_encrypted BLOB,
            contract_type TEXT NOT NULL DEFAULT 'basic'
                CHECK (contract_type IN ('basic', 'premium', 'custom')),
            snow_removal_area TEXT NOT NULL DEFAULT '0',
            contract_start_date TEXT,
            contract_end_date TEXT,
            billing_amount TEXT NOT NULL DEFAULT '0',
            lat REAL,
            lng REAL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            CHECK ((lat IS NULL) = (lng IS NULL))
        )
        """
    )
    pool.execute("CREATE INDEX IF NOT EXISTS idx_customers_name ON customers(name)")
    pool.execute("CREATE INDEX IF NOT EXISTS idx_customers_postal ON customers(postal_code)")
