"""Application dependency container."""

from __future__ import annotations

from dataclasses import dataclass

from snowdesk_app.core.config import AppConfig, ensure_runtime_keys, get_required_env, load_config
from snowdesk_app.core.crypto import CryptoService
from snowdesk_app.repositories.customer_repository import CustomerRepository
from snowdesk_app.repositories.db_pool import ThreadLocalConnection
from snowdesk_app.repositories.schema import initialize_schema
from snowdesk_app.services.customer_service import CustomerService
from snowdesk_app.services.geocoding import GeocodingClient
from snowdesk_app.services.postal_lookup import PostalLookupClient
from snowdesk_app.services.routing import RoutingClient


@dataclass
class ServiceContainer:
    """Wires repositories, services, and HTTP clients."""

    config: AppConfig
    pool: ThreadLocalConnection
    customer_service: CustomerService
    geocoding_client: GeocodingClient
    postal_lookup_client: PostalLookupClient
    routing_client: RoutingClient

    def close(self) -> None:
        self.geocoding_client.close()
        self.postal_lookup_client.close()
        self.routing_client.close()
        self.pool.close_connection()


def build_container(config: AppConfig | None = None) -> ServiceContainer:
    """Build dependencies and initialize schema."""
    config = config or load_config()
    ensure_runtime_keys(config.database.path)
    crypto = CryptoService.from_base64_key(get_required_env(config.encryption.key_env))

    pool = ThreadLocalConnection(config.database)
    initialize_schema(pool)

    return ServiceContainer(
        config=config,
        pool=pool,
        customer_service=CustomerService(CustomerRepository(pool, crypto)),
        geocoding_client=GeocodingClient.from_config(config.services),
        postal_lookup_client=PostalLookupClient.from_config(config.services),
        routing_client=RoutingClient.from_config(config.services),
    )
