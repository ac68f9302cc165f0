"""
AdminStore — абстрактное транзакционное хранилище.

Три логические таблицы:
- identities (директория)
- invoices   (реестр счетов, уникальность (number, fiscal_year))
- counters   (role → count)

Гарантии, которые обязана дать реализация:
1. increment_counter линеаризуем по ключу: два конкурентных вызова для одного
   ключа никогда не получают одно и то же значение
2. insert_invoice / replace_invoice отвергают дубликат (number, fiscal_year)
   ошибкой Conflict даже при гонке (последний рубеж после валидатора)
3. ledger_lock(fiscal_years) сериализует check-then-write по финансовому году
4. directory_snapshot() возвращает согласованный срез директории
5. Транзиентные сбои поднимаются как StorageUnavailable
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional

from invoicegate.core.domain.identity import Identity
from invoicegate.core.domain.invoice import Invoice


@dataclass(frozen=True)
class DirectorySnapshot:
    """Согласованный срез директории (read-only)."""

    identities: tuple[Identity, ...]
    _by_id: dict[str, Identity] = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self):
        self._by_id.update({identity.id: identity for identity in self.identities})

    def get(self, identity_id: str) -> Optional[Identity]:
        return self._by_id.get(identity_id)

    def __iter__(self):
        return iter(self.identities)

    def __len__(self) -> int:
        return len(self.identities)


@dataclass(frozen=True)
class InvoiceQuery:
    """Фильтры списка счетов. Пустые поля не фильтруют."""

    fiscal_year: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    number: Optional[int] = None

    def matches(self, invoice: Invoice) -> bool:
        if self.fiscal_year is not None and invoice.fiscal_year != self.fiscal_year:
            return False
        if self.start_date is not None and invoice.invoice_date < self.start_date:
            return False
        if self.end_date is not None and invoice.invoice_date > self.end_date:
            return False
        if self.number is not None and invoice.number != self.number:
            return False
        return True


class AdminStore(ABC):
    """Абстрактное хранилище identities/invoices/counters."""

    # ------------------------------------------------------------------
    # counters
    # ------------------------------------------------------------------

    @abstractmethod
    def increment_counter(self, key: str) -> int:
        """Атомарный инкремент (счетчик создается с 0). Возвращает новое значение."""

    @abstractmethod
    def counter_value(self, key: str) -> int:
        """Текущее значение счетчика (0 если счетчика нет)."""

    # ------------------------------------------------------------------
    # identities
    # ------------------------------------------------------------------

    @abstractmethod
    def directory_snapshot(self) -> DirectorySnapshot:
        ...

    @abstractmethod
    def get_identity(self, identity_id: str) -> Optional[Identity]:
        ...

    @abstractmethod
    def find_identity_by_email(self, email: str) -> Optional[Identity]:
        ...

    @abstractmethod
    def insert_identity(self, identity: Identity) -> Identity:
        """Raises Conflict(reason="duplicate_email") при дубликате email."""

    @abstractmethod
    def replace_identity(self, identity: Identity) -> Identity:
        """Raises NotFound если identity отсутствует."""

    @abstractmethod
    def delete_identity(self, identity_id: str) -> bool:
        ...

    # ------------------------------------------------------------------
    # invoices
    # ------------------------------------------------------------------

    @abstractmethod
    def ledger_lock(self, fiscal_years: Iterable[str]) -> AbstractContextManager:
        """Сериализация записи в реестр по финансовым годам (в порядке сортировки)."""

    @abstractmethod
    def find_invoice(self, number: int, fiscal_year: str) -> Optional[Invoice]:
        ...

    @abstractmethod
    def find_invoices_by_number(self, number: int) -> list[Invoice]:
        ...

    @abstractmethod
    def insert_invoice(self, invoice: Invoice) -> Invoice:
        """Raises Conflict(reason="duplicate_number")."""

    @abstractmethod
    def replace_invoice(self, invoice: Invoice) -> Invoice:
        """Raises Conflict(reason="duplicate_number") / NotFound."""

    @abstractmethod
    def delete_invoices(self, invoice_ids: Iterable[str]) -> int:
        ...

    @abstractmethod
    def query_invoices(
        self, query: InvoiceQuery, offset: int, limit: int
    ) -> tuple[int, list[Invoice]]:
        """(total, страница), сортировка по number, затем fiscal_year."""
