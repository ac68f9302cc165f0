"""
Хранилища invoicegate.

- AdminStore     : абстрактный контракт (identities, invoices, counters)
- InMemoryStore  : реализация в памяти процесса
- SqlAlchemyStore: реализация на SQLAlchemy Core
"""

from .base import AdminStore, DirectorySnapshot, InvoiceQuery
from .memory import InMemoryStore
from .sql import SqlAlchemyStore

__all__ = [
    "AdminStore",
    "DirectorySnapshot",
    "InvoiceQuery",
    "InMemoryStore",
    "SqlAlchemyStore",
]
