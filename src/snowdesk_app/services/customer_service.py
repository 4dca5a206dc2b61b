"""Customer use cases: apply a change to the store and persist it."""

from __future__ import annotations

import logging

from snowdesk_app.models.customer import CustomerDraft
from snowdesk_app.repositories.customer_repository import CustomerRepository
from snowdesk_app.services.record_store import RecordStore

logger = logging.getLogger(__name__)


class CustomerService:
    """Coordinates the record store with the customer table.

    Every mutation takes the caller's current store and returns the store to
    use next; the caller's instance is left untouched when persistence fails.
    """

    def __init__(self, customer_repo: CustomerRepository):
        self._customer_repo = customer_repo

    def load_store(self) -> RecordStore:
        """Read every customer into a fresh store."""
        store = RecordStore.from_records(self._customer_repo.list_customers())
        logger.info("Loaded %d customers", len(store))
        return store

    def create_customer(self, store: RecordStore, draft: CustomerDraft) -> RecordStore:
        """Create a customer from a committed draft and persist it."""
        new_store = store.create(draft)
        customer = new_store.last_created
        self._customer_repo.create_customer(customer)
        logger.info("Customer created: id=%s", customer.id)
        return new_store

    def update_customer(
        self,
        store: RecordStore,
        customer_id: str,
        draft: CustomerDraft,
    ) -> RecordStore:
        """Replace a customer with the committed draft."""
        new_store = store.update(customer_id, draft)
        updated = self._customer_repo.update_customer(new_store.require(customer_id))
        if updated == 0:
            raise ValueError(f"Customer to update was not found: {customer_id}")
        logger.info("Customer updated: id=%s", customer_id)
        return new_store

    def delete_customer(self, store: RecordStore, customer_id: str) -> RecordStore:
        """Delete a customer; confirmation happens in the UI."""
        new_store = store.delete(customer_id)
        deleted = self._customer_repo.delete_customer(customer_id)
        if deleted == 0:
            raise ValueError(f"Customer to delete was not found: {customer_id}")
        logger.info("Customer deleted: id=%s", customer_id)
        return new_store

    def save_draft(self, store: RecordStore, draft: CustomerDraft) -> RecordStore:
        """Create or update depending on whether the draft carries an id."""
        if draft.id is None:
            return self.create_customer(store, draft)
        return self.update_customer(store, draft.id, draft)
