"""
SqlAlchemyStore — реализация AdminStore на SQLAlchemy Core.

Таблицы:
- identities: email UNIQUE
- invoices:   UNIQUE (number, fiscal_year) — последний рубеж против гонки
              check-then-write между процессами
- counters:   role PRIMARY KEY, count >= 0

Инкремент счетчика — один UPDATE ... SET count = count + 1 RETURNING count.
Если строки еще нет, она вставляется с count = 1; проигравший гонку INSERT
получает IntegrityError и повторяет UPDATE в новой транзакции.

ledger_lock сериализует запись по финансовому году внутри процесса;
между процессами конфликт ловит уникальное ограничение.

На SQLite сумма хранится текстом (_DecimalText), чтобы Decimal не терял точность.

Маппинг ошибок:
- IntegrityError             → Conflict
- OperationalError/DBAPIError → StorageUnavailable
"""

import threading
from contextlib import AbstractContextManager, ExitStack, contextmanager, nullcontext
from decimal import Decimal
from typing import Iterable, Iterator, Optional, Union

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    TypeDecorator,
    UniqueConstraint,
    create_engine,
    delete,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.engine import URL, Connection, Engine, make_url
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.pool import StaticPool

from invoicegate.core.domain.identity import Identity, normalize_email
from invoicegate.core.domain.invoice import Invoice
from invoicegate.core.errors import Conflict, NotFound, StorageUnavailable
from invoicegate.logging import get_logger

from .base import AdminStore, DirectorySnapshot, InvoiceQuery

logger = get_logger(__name__)


class _DecimalText(TypeDecorator):
    """Decimal как текст: SQLite хранит Numeric в REAL и теряет точность."""

    impl = String(48)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else Decimal(value)


_AMOUNT_TYPE = Numeric(20, 4).with_variant(_DecimalText(), "sqlite")

metadata = MetaData()

identities = Table(
    "identities",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("display_name", String(200), nullable=False),
    Column("email", String(320), nullable=False, unique=True),
    Column("credential_ref", String(512), nullable=False),
    Column("role", String(32), nullable=False, index=True),
    Column("created_by", String(64), nullable=True, index=True),
    Column("admin_group", JSON, nullable=False, default=list),
    Column("unit_group", JSON, nullable=False, default=list),
    Column("sequence_id", String(32), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

invoices = Table(
    "invoices",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("number", Integer, nullable=False),
    Column("invoice_date", Date, nullable=False),
    Column("amount", _AMOUNT_TYPE, nullable=False),
    Column("fiscal_year", String(9), nullable=False, index=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("number", "fiscal_year", name="uq_invoice_number_fiscal_year"),
)

counters = Table(
    "counters",
    metadata,
    Column("role", String(32), primary_key=True),
    Column("count", Integer, nullable=False, default=0),
    CheckConstraint("count >= 0", name="chk_counter_non_negative"),
)

_COUNTER_ATTEMPTS = 2


def _is_memory_sqlite(url: Union[str, URL]) -> bool:
    url = make_url(url)
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


class SqlAlchemyStore(AdminStore):
    """AdminStore поверх любой СУБД, поддерживающей UPDATE ... RETURNING.

    In-memory SQLite живет в одном DBAPI-соединении (StaticPool), которое
    делят все потоки. Транзакции на нем не изолированы друг от друга, поэтому
    для такого engine каждое обращение сериализуется через _engine_lock.
    """

    def __init__(self, engine: Engine):
        self._engine = engine
        self._engine_lock: Optional[threading.RLock] = (
            threading.RLock() if _is_memory_sqlite(engine.url) else None
        )
        self._registry_lock = threading.Lock()
        self._ledger_locks: dict[str, threading.RLock] = {}

    @classmethod
    def from_url(cls, url: str, create_schema: bool = True) -> "SqlAlchemyStore":
        if _is_memory_sqlite(url):
            # Одна общая in-memory БД для всех соединений
            engine = create_engine(
                url, poolclass=StaticPool, connect_args={"check_same_thread": False}
            )
        else:
            engine = create_engine(url, pool_pre_ping=True)
        store = cls(engine)
        if create_schema:
            store.create_schema()
        return store

    def create_schema(self) -> None:
        with self._translate_errors(), self._serialized():
            metadata.create_all(self._engine)

    def _serialized(self) -> AbstractContextManager:
        return self._engine_lock if self._engine_lock is not None else nullcontext()

    @contextmanager
    def _begin(self) -> Iterator[Connection]:
        with self._serialized(), self._engine.begin() as conn:
            yield conn

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        with self._serialized(), self._engine.connect() as conn:
            yield conn

    @contextmanager
    def _translate_errors(self, conflict_reason: str = "constraint_violation") -> Iterator[None]:
        try:
            yield
        except IntegrityError as e:
            raise Conflict(f"constraint violation: {e.orig}", reason=conflict_reason) from e
        except DBAPIError as e:
            logger.warning("storage failure: %s", e)
            raise StorageUnavailable(f"storage unavailable: {e.orig}") from e

    # ------------------------------------------------------------------
    # counters
    # ------------------------------------------------------------------

    def increment_counter(self, key: str) -> int:
        bump = (
            update(counters)
            .where(counters.c.role == key)
            .values(count=counters.c.count + 1)
            .returning(counters.c.count)
        )
        for attempt in range(_COUNTER_ATTEMPTS):
            try:
                with self._translate_errors(), self._begin() as conn:
                    row = conn.execute(bump).first()
                    if row is not None:
                        return row.count
                    conn.execute(insert(counters).values(role=key, count=1))
                    return 1
            except Conflict:
                # Конкурент создал строку счетчика первым; UPDATE ее увидит
                logger.debug("counter %s created concurrently (attempt %d)", key, attempt + 1)
        raise Conflict(f"counter {key} could not be incremented", reason="counter_race")

    def counter_value(self, key: str) -> int:
        with self._translate_errors(), self._connect() as conn:
            value = conn.execute(select(counters.c.count).where(counters.c.role == key)).scalar()
        return value or 0

    # ------------------------------------------------------------------
    # identities
    # ------------------------------------------------------------------

    @staticmethod
    def _identity_from_row(row) -> Identity:
        return Identity(
            id=row.id,
            display_name=row.display_name,
            email=row.email,
            credential_ref=row.credential_ref,
            role=row.role,
            created_by=row.created_by,
            admin_group=frozenset(row.admin_group or ()),
            unit_group=frozenset(row.unit_group or ()),
            sequence_id=row.sequence_id,
            created_at=row.created_at,
        )

    @staticmethod
    def _identity_values(identity: Identity) -> dict:
        return {
            "id": identity.id,
            "display_name": identity.display_name,
            "email": identity.email,
            "credential_ref": identity.credential_ref,
            "role": identity.role.value,
            "created_by": identity.created_by,
            "admin_group": sorted(identity.admin_group),
            "unit_group": sorted(identity.unit_group),
            "sequence_id": identity.sequence_id,
            "created_at": identity.created_at,
        }

    def directory_snapshot(self) -> DirectorySnapshot:
        # Один SELECT дает согласованный срез
        with self._translate_errors(), self._connect() as conn:
            rows = conn.execute(select(identities).order_by(identities.c.created_at)).all()
        return DirectorySnapshot(identities=tuple(self._identity_from_row(r) for r in rows))

    def get_identity(self, identity_id: str) -> Optional[Identity]:
        with self._translate_errors(), self._connect() as conn:
            row = conn.execute(select(identities).where(identities.c.id == identity_id)).first()
        return self._identity_from_row(row) if row is not None else None

    def find_identity_by_email(self, email: str) -> Optional[Identity]:
        stmt = select(identities).where(identities.c.email == normalize_email(email))
        with self._translate_errors(), self._connect() as conn:
            row = conn.execute(stmt).first()
        return self._identity_from_row(row) if row is not None else None

    def insert_identity(self, identity: Identity) -> Identity:
        with self._translate_errors("duplicate_email"), self._begin() as conn:
            conn.execute(insert(identities).values(**self._identity_values(identity)))
        return identity

    def replace_identity(self, identity: Identity) -> Identity:
        values = self._identity_values(identity)
        del values["id"]
        stmt = update(identities).where(identities.c.id == identity.id).values(**values)
        with self._translate_errors("duplicate_email"), self._begin() as conn:
            result = conn.execute(stmt)
        if result.rowcount == 0:
            raise NotFound(f"identity {identity.id} not found")
        return identity

    def delete_identity(self, identity_id: str) -> bool:
        with self._translate_errors(), self._begin() as conn:
            result = conn.execute(delete(identities).where(identities.c.id == identity_id))
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # invoices
    # ------------------------------------------------------------------

    @staticmethod
    def _invoice_from_row(row) -> Invoice:
        return Invoice(
            id=row.id,
            number=row.number,
            invoice_date=row.invoice_date,
            amount=row.amount,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _invoice_values(invoice: Invoice) -> dict:
        return {
            "id": invoice.id,
            "number": invoice.number,
            "invoice_date": invoice.invoice_date,
            "amount": invoice.amount,
            "fiscal_year": invoice.fiscal_year,
            "created_at": invoice.created_at,
            "updated_at": invoice.updated_at,
        }

    def _ledger_lock_for(self, fiscal_year: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._ledger_locks.get(fiscal_year)
            if lock is None:
                lock = self._ledger_locks[fiscal_year] = threading.RLock()
            return lock

    @contextmanager
    def ledger_lock(self, fiscal_years: Iterable[str]) -> Iterator[None]:
        with ExitStack() as stack:
            for fiscal_year in sorted(set(fiscal_years)):
                stack.enter_context(self._ledger_lock_for(fiscal_year))
            yield

    def find_invoice(self, number: int, fiscal_year: str) -> Optional[Invoice]:
        stmt = select(invoices).where(
            invoices.c.number == number, invoices.c.fiscal_year == fiscal_year
        )
        with self._translate_errors(), self._connect() as conn:
            row = conn.execute(stmt).first()
        return self._invoice_from_row(row) if row is not None else None

    def find_invoices_by_number(self, number: int) -> list[Invoice]:
        stmt = (
            select(invoices)
            .where(invoices.c.number == number)
            .order_by(invoices.c.fiscal_year)
        )
        with self._translate_errors(), self._connect() as conn:
            rows = conn.execute(stmt).all()
        return [self._invoice_from_row(r) for r in rows]

    def insert_invoice(self, invoice: Invoice) -> Invoice:
        with self._translate_errors("duplicate_number"), self._begin() as conn:
            conn.execute(insert(invoices).values(**self._invoice_values(invoice)))
        return invoice

    def replace_invoice(self, invoice: Invoice) -> Invoice:
        values = self._invoice_values(invoice)
        del values["id"]
        stmt = update(invoices).where(invoices.c.id == invoice.id).values(**values)
        with self._translate_errors("duplicate_number"), self._begin() as conn:
            result = conn.execute(stmt)
        if result.rowcount == 0:
            raise NotFound(f"invoice record {invoice.id} not found")
        return invoice

    def delete_invoices(self, invoice_ids: Iterable[str]) -> int:
        ids = list(set(invoice_ids))
        if not ids:
            return 0
        with self._translate_errors(), self._begin() as conn:
            result = conn.execute(delete(invoices).where(invoices.c.id.in_(ids)))
        return result.rowcount

    def query_invoices(
        self, query: InvoiceQuery, offset: int, limit: int
    ) -> tuple[int, list[Invoice]]:
        conditions = []
        if query.fiscal_year is not None:
            conditions.append(invoices.c.fiscal_year == query.fiscal_year)
        if query.start_date is not None:
            conditions.append(invoices.c.invoice_date >= query.start_date)
        if query.end_date is not None:
            conditions.append(invoices.c.invoice_date <= query.end_date)
        if query.number is not None:
            conditions.append(invoices.c.number == query.number)

        count_stmt = select(func.count()).select_from(invoices).where(*conditions)
        page_stmt = (
            select(invoices)
            .where(*conditions)
            .order_by(invoices.c.number, invoices.c.fiscal_year)
            .offset(offset)
            .limit(limit)
        )
        with self._translate_errors(), self._connect() as conn:
            total = conn.execute(count_stmt).scalar_one()
            rows = conn.execute(page_stmt).all()
        return total, [self._invoice_from_row(r) for r in rows]
