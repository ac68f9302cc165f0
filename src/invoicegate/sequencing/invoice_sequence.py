"""
Invoice Sequence — целостность нумерации счетов по финансовому году.

Алгоритм (create и update):
1. fiscal_year выводится из даты; клиентское значение игнорируется
2. duplicate_number: (number, fiscal_year) уже занят другой записью
3. Поиск хронологических соседей number-1 и number+1 в том же году
4. out_of_order: date <= predecessor.date или date >= successor.date
5. Принятая запись сохраняется с выведенным fiscal_year

Номера не перенумеровываются при удалении: разрывы допустимы, проверяются
только непосредственные соседи, существующие в момент записи.

Разделение ответственности:
- InvoiceSequenceGate: чистая функция решения (без I/O)
- InvoiceSequencer:    поиск соседей и запись под ledger_lock финансового года
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional

from invoicegate.core.domain.fiscal_year import fiscal_year_for
from invoicegate.core.domain.invoice import Invoice, InvoiceDraft
from invoicegate.core.errors import Conflict, NotFound
from invoicegate.logging import get_logger
from invoicegate.storage.base import AdminStore

logger = get_logger(__name__)


# =============================================================================
# REJECT REASONS
# =============================================================================

REASON_DUPLICATE_NUMBER = "duplicate_number"
REASON_OUT_OF_ORDER_PREDECESSOR = "out_of_order_predecessor"
REASON_OUT_OF_ORDER_SUCCESSOR = "out_of_order_successor"


# =============================================================================
# RESULT
# =============================================================================


@dataclass(frozen=True)
class SequenceCheckResult:
    """Результат проверки последовательности."""

    accepted: bool
    reject_reason: str

    number: int
    invoice_date: date
    fiscal_year: str

    # Хронологические соседи (None если соседа нет)
    predecessor_date: Optional[date]
    successor_date: Optional[date]

    # Сохраненная запись (только при accepted)
    invoice: Optional[Invoice]

    # Детали
    details: str

    @property
    def out_of_order(self) -> bool:
        return self.reject_reason in (
            REASON_OUT_OF_ORDER_PREDECESSOR,
            REASON_OUT_OF_ORDER_SUCCESSOR,
        )


# =============================================================================
# GATE
# =============================================================================


class InvoiceSequenceGate:
    """Решение accept/reject для предлагаемой записи счета.

    Порядок проверок:
    1. Дубликат (number, fiscal_year) → reject, независимо от дат
    2. Предшественник N-1: date должна быть строго позже
    3. Преемник N+1: date должна быть строго раньше
    """

    def evaluate(
        self,
        number: int,
        invoice_date: date,
        duplicate: Optional[Invoice],
        predecessor: Optional[Invoice],
        successor: Optional[Invoice],
    ) -> SequenceCheckResult:
        fiscal_year = fiscal_year_for(invoice_date)
        predecessor_date = predecessor.invoice_date if predecessor else None
        successor_date = successor.invoice_date if successor else None

        def result(accepted: bool, reason: str, details: str) -> SequenceCheckResult:
            return SequenceCheckResult(
                accepted=accepted,
                reject_reason=reason,
                number=number,
                invoice_date=invoice_date,
                fiscal_year=fiscal_year,
                predecessor_date=predecessor_date,
                successor_date=successor_date,
                invoice=None,
                details=details,
            )

        # 1. Дубликат
        if duplicate is not None:
            return result(
                False,
                REASON_DUPLICATE_NUMBER,
                f"Invoice number {number} already exists in financial year {fiscal_year}",
            )

        # 2. Предшественник
        if predecessor_date is not None and invoice_date <= predecessor_date:
            return result(
                False,
                REASON_OUT_OF_ORDER_PREDECESSOR,
                f"Date must be after previous invoice date "
                f"(#{number - 1} on {predecessor_date.isoformat()})",
            )

        # 3. Преемник
        if successor_date is not None and invoice_date >= successor_date:
            return result(
                False,
                REASON_OUT_OF_ORDER_SUCCESSOR,
                f"Date must be before next invoice date "
                f"(#{number + 1} on {successor_date.isoformat()})",
            )

        return result(
            True,
            "",
            f"PASS: #{number} on {invoice_date.isoformat()} in {fiscal_year}",
        )


# =============================================================================
# SEQUENCER
# =============================================================================


class InvoiceSequencer:
    """Проверка и запись счета под блокировкой финансового года.

    Уникальное ограничение хранилища остается последним рубежом: если запись
    все же столкнулась с конкурентом, Conflict из хранилища превращается в
    отклонение duplicate_number, а не в тихую порчу реестра.
    """

    def __init__(self, store: AdminStore, gate: Optional[InvoiceSequenceGate] = None):
        self._store = store
        self._gate = gate or InvoiceSequenceGate()

    def validate_and_assign(
        self,
        draft: InvoiceDraft,
        record_id: Optional[str] = None,
    ) -> SequenceCheckResult:
        """Проверка предлагаемой записи и сохранение при успехе.

        Args:
            draft: номер, дата и сумма
            record_id: id обновляемой записи (None для create)

        Returns:
            SequenceCheckResult; invoice заполнен только при accepted
        """
        fiscal_year = fiscal_year_for(draft.invoice_date)
        existing = None
        lock_years = {fiscal_year}
        if record_id is not None:
            existing = self._find_record(draft.number, record_id)
            lock_years.add(existing.fiscal_year)

        while True:
            with self._store.ledger_lock(lock_years):
                if record_id is not None:
                    # Повторное чтение под блокировкой
                    existing = self._find_record(draft.number, record_id)
                    if existing.fiscal_year not in lock_years:
                        # Запись перенесли в другой год до захвата блокировок
                        lock_years = {fiscal_year, existing.fiscal_year}
                        continue
                return self._check_and_write(draft, fiscal_year, existing, record_id)

    def _check_and_write(
        self,
        draft: InvoiceDraft,
        fiscal_year: str,
        existing: Optional[Invoice],
        record_id: Optional[str],
    ) -> SequenceCheckResult:
        """Проверка и запись; вызывается под ledger_lock всех затронутых лет."""
        duplicate = self._store.find_invoice(draft.number, fiscal_year)
        if duplicate is not None and duplicate.id == record_id:
            duplicate = None

        check = self._gate.evaluate(
            number=draft.number,
            invoice_date=draft.invoice_date,
            duplicate=duplicate,
            predecessor=self._store.find_invoice(draft.number - 1, fiscal_year),
            successor=self._store.find_invoice(draft.number + 1, fiscal_year),
        )
        if not check.accepted:
            logger.warning(
                "invoice #%d rejected: %s (%s)",
                draft.number, check.reject_reason, check.details,
            )
            return check

        try:
            invoice = self._persist(draft, existing)
        except Conflict as e:
            logger.warning("invoice #%d lost a write race: %s", draft.number, e)
            return _rejected_by_store(check, str(e))

        logger.info(
            "invoice #%d %s in %s (%s)",
            invoice.number,
            "updated" if existing is not None else "created",
            invoice.fiscal_year,
            invoice.id,
        )
        return SequenceCheckResult(
            accepted=True,
            reject_reason="",
            number=check.number,
            invoice_date=check.invoice_date,
            fiscal_year=check.fiscal_year,
            predecessor_date=check.predecessor_date,
            successor_date=check.successor_date,
            invoice=invoice,
            details=check.details,
        )

    def _find_record(self, number: int, record_id: str) -> Invoice:
        for invoice in self._store.find_invoices_by_number(number):
            if invoice.id == record_id:
                return invoice
        raise NotFound(f"invoice record {record_id} with number {number} not found")

    def _persist(self, draft: InvoiceDraft, existing: Optional[Invoice]) -> Invoice:
        if existing is None:
            return self._store.insert_invoice(Invoice.from_draft(draft))
        # model_validate заново выводит fiscal_year из новой даты
        updated = Invoice.model_validate(
            {
                **existing.model_dump(),
                "invoice_date": draft.invoice_date,
                "amount": draft.amount,
                "updated_at": datetime.now(timezone.utc),
            }
        )
        return self._store.replace_invoice(updated)


def _rejected_by_store(check: SequenceCheckResult, details: str) -> SequenceCheckResult:
    return SequenceCheckResult(
        accepted=False,
        reject_reason=REASON_DUPLICATE_NUMBER,
        number=check.number,
        invoice_date=check.invoice_date,
        fiscal_year=check.fiscal_year,
        predecessor_date=check.predecessor_date,
        successor_date=check.successor_date,
        invoice=None,
        details=details,
    )
