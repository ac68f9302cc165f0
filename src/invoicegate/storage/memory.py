"""
InMemoryStore — потокобезопасная реализация AdminStore.

Блокировки:
- _counter_locks: отдельный Lock на каждый ключ счетчика (arena key → counter),
  создание Lock защищено _registry_lock
- _directory_lock: RLock директории; snapshot копируется под ним
- _ledger_locks: отдельный RLock на каждый финансовый год
- _invoice_lock: защищает индексы счетов (id и (number, fiscal_year))
"""

import threading
from contextlib import ExitStack, contextmanager
from typing import Iterable, Iterator, Optional

from invoicegate.core.domain.identity import Identity, normalize_email
from invoicegate.core.domain.invoice import Invoice
from invoicegate.core.errors import Conflict, NotFound
from .base import AdminStore, DirectorySnapshot, InvoiceQuery


class InMemoryStore(AdminStore):
    """AdminStore в памяти процесса."""

    def __init__(self):
        self._registry_lock = threading.Lock()

        self._counters: dict[str, int] = {}
        self._counter_locks: dict[str, threading.Lock] = {}

        self._directory_lock = threading.RLock()
        self._identities: dict[str, Identity] = {}

        self._ledger_locks: dict[str, threading.RLock] = {}
        self._invoice_lock = threading.RLock()
        self._invoices: dict[str, Invoice] = {}
        self._invoice_index: dict[tuple[int, str], str] = {}

    # ------------------------------------------------------------------
    # counters
    # ------------------------------------------------------------------

    def _counter_lock(self, key: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._counter_locks.get(key)
            if lock is None:
                lock = self._counter_locks[key] = threading.Lock()
            return lock

    def increment_counter(self, key: str) -> int:
        with self._counter_lock(key):
            value = self._counters.get(key, 0) + 1
            self._counters[key] = value
            return value

    def counter_value(self, key: str) -> int:
        with self._counter_lock(key):
            return self._counters.get(key, 0)

    # ------------------------------------------------------------------
    # identities
    # ------------------------------------------------------------------

    def directory_snapshot(self) -> DirectorySnapshot:
        with self._directory_lock:
            return DirectorySnapshot(identities=tuple(self._identities.values()))

    def get_identity(self, identity_id: str) -> Optional[Identity]:
        with self._directory_lock:
            return self._identities.get(identity_id)

    def find_identity_by_email(self, email: str) -> Optional[Identity]:
        email = normalize_email(email)
        with self._directory_lock:
            for identity in self._identities.values():
                if identity.email == email:
                    return identity
        return None

    def insert_identity(self, identity: Identity) -> Identity:
        with self._directory_lock:
            if identity.id in self._identities:
                raise Conflict(f"identity {identity.id} already exists")
            if self.find_identity_by_email(identity.email) is not None:
                raise Conflict(f"email {identity.email} already exists", reason="duplicate_email")
            self._identities[identity.id] = identity
            return identity

    def replace_identity(self, identity: Identity) -> Identity:
        with self._directory_lock:
            if identity.id not in self._identities:
                raise NotFound(f"identity {identity.id} not found")
            self._identities[identity.id] = identity
            return identity

    def delete_identity(self, identity_id: str) -> bool:
        with self._directory_lock:
            return self._identities.pop(identity_id, None) is not None

    # ------------------------------------------------------------------
    # invoices
    # ------------------------------------------------------------------

    def _ledger_lock_for(self, fiscal_year: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._ledger_locks.get(fiscal_year)
            if lock is None:
                lock = self._ledger_locks[fiscal_year] = threading.RLock()
            return lock

    @contextmanager
    def ledger_lock(self, fiscal_years: Iterable[str]) -> Iterator[None]:
        # Фиксированный порядок захвата исключает deadlock при переносе между годами
        with ExitStack() as stack:
            for fiscal_year in sorted(set(fiscal_years)):
                stack.enter_context(self._ledger_lock_for(fiscal_year))
            yield

    def find_invoice(self, number: int, fiscal_year: str) -> Optional[Invoice]:
        with self._invoice_lock:
            invoice_id = self._invoice_index.get((number, fiscal_year))
            return self._invoices.get(invoice_id) if invoice_id else None

    def find_invoices_by_number(self, number: int) -> list[Invoice]:
        with self._invoice_lock:
            matches = [inv for inv in self._invoices.values() if inv.number == number]
        return sorted(matches, key=lambda inv: inv.fiscal_year)

    def insert_invoice(self, invoice: Invoice) -> Invoice:
        key = (invoice.number, invoice.fiscal_year)
        with self._invoice_lock:
            if key in self._invoice_index:
                raise Conflict(
                    f"invoice {invoice.number} already exists in {invoice.fiscal_year}",
                    reason="duplicate_number",
                )
            if invoice.id in self._invoices:
                raise Conflict(f"invoice record {invoice.id} already exists")
            self._invoices[invoice.id] = invoice
            self._invoice_index[key] = invoice.id
            return invoice

    def replace_invoice(self, invoice: Invoice) -> Invoice:
        key = (invoice.number, invoice.fiscal_year)
        with self._invoice_lock:
            existing = self._invoices.get(invoice.id)
            if existing is None:
                raise NotFound(f"invoice record {invoice.id} not found")
            owner = self._invoice_index.get(key)
            if owner is not None and owner != invoice.id:
                raise Conflict(
                    f"invoice {invoice.number} already exists in {invoice.fiscal_year}",
                    reason="duplicate_number",
                )
            del self._invoice_index[(existing.number, existing.fiscal_year)]
            self._invoices[invoice.id] = invoice
            self._invoice_index[key] = invoice.id
            return invoice

    def delete_invoices(self, invoice_ids: Iterable[str]) -> int:
        deleted = 0
        with self._invoice_lock:
            for invoice_id in set(invoice_ids):
                invoice = self._invoices.pop(invoice_id, None)
                if invoice is None:
                    continue
                del self._invoice_index[(invoice.number, invoice.fiscal_year)]
                deleted += 1
        return deleted

    def query_invoices(
        self, query: InvoiceQuery, offset: int, limit: int
    ) -> tuple[int, list[Invoice]]:
        with self._invoice_lock:
            matches = [inv for inv in self._invoices.values() if query.matches(inv)]
        matches.sort(key=lambda inv: (inv.number, inv.fiscal_year))
        return len(matches), matches[offset:offset + limit]
