"""
Service layer — операции, доступные вызывающему слою (HTTP-контроллерам).

AdminServices собирает сервисы вокруг одного хранилища и одного
CounterStore.
"""

from dataclasses import dataclass
from typing import Optional

from invoicegate.config import AdminConfig
from invoicegate.credentials import CredentialService, Pbkdf2CredentialService
from invoicegate.sequencing.counter_store import CounterStore
from invoicegate.storage.base import AdminStore
from invoicegate.storage.memory import InMemoryStore
from invoicegate.storage.sql import SqlAlchemyStore

from .auth import AuthService, LoginResult
from .identities import IdentityService
from .invoices import InvoiceService


@dataclass(frozen=True)
class AdminServices:
    store: AdminStore
    auth: AuthService
    identities: IdentityService
    invoices: InvoiceService

    @classmethod
    def build(
        cls,
        store: AdminStore,
        config: Optional[AdminConfig] = None,
        credentials: Optional[CredentialService] = None,
    ) -> "AdminServices":
        config = config or AdminConfig()
        credentials = credentials or Pbkdf2CredentialService(
            iterations=config.pbkdf2_iterations,
            token_ttl_seconds=config.token_ttl_seconds,
        )
        counters = CounterStore(store)
        return cls(
            store=store,
            auth=AuthService(store, credentials, config, counters),
            identities=IdentityService(store, credentials, config, counters),
            invoices=InvoiceService(store, config),
        )

    @classmethod
    def in_memory(cls, config: Optional[AdminConfig] = None, **kwargs) -> "AdminServices":
        return cls.build(InMemoryStore(), config, **kwargs)

    @classmethod
    def from_config(cls, config: Optional[AdminConfig] = None, **kwargs) -> "AdminServices":
        config = config or AdminConfig.from_env()
        return cls.build(SqlAlchemyStore.from_url(config.database_url), config, **kwargs)


__all__ = [
    "AdminServices",
    "AuthService",
    "LoginResult",
    "IdentityService",
    "InvoiceService",
]
