"""
InvoiceService — операции реестра счетов для вызывающего слоя.

Каждая запись проходит через InvoiceSequencer. Отклонения превращаются в
исключения:
- duplicate_number         → Conflict(reason="duplicate_number")
- out_of_order_predecessor → OutOfOrder (сосед number-1)
- out_of_order_successor   → OutOfOrder (сосед number+1)

fiscalYear в payload никогда не используется: год всегда выводится из даты.
"""

from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional, Union
from uuid import UUID

from invoicegate.config import AdminConfig
from invoicegate.core.contracts.validators import parse_invoice_draft, parse_invoice_patch
from invoicegate.core.domain.fiscal_year import is_fiscal_year_label
from invoicegate.core.domain.invoice import Invoice, InvoiceDraft, InvoicePatch
from invoicegate.core.domain.page import Page
from invoicegate.core.errors import Conflict, NotFound, OutOfOrder, ValidationError
from invoicegate.logging import get_logger
from invoicegate.sequencing.invoice_sequence import (
    REASON_DUPLICATE_NUMBER,
    REASON_OUT_OF_ORDER_PREDECESSOR,
    InvoiceSequencer,
    SequenceCheckResult,
)
from invoicegate.storage.base import AdminStore, InvoiceQuery

from .pagination import positive_int, resolve_page

logger = get_logger(__name__)


class InvoiceService:
    def __init__(
        self,
        store: AdminStore,
        config: Optional[AdminConfig] = None,
        sequencer: Optional[InvoiceSequencer] = None,
    ):
        self._store = store
        self._config = config or AdminConfig()
        self._sequencer = sequencer or InvoiceSequencer(store)

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------

    def create_invoice(self, proposed: Union[InvoiceDraft, Mapping[str, Any]]) -> Invoice:
        if isinstance(proposed, InvoiceDraft):
            draft = proposed
        else:
            draft = parse_invoice_draft(proposed)
            _note_ignored_fiscal_year(proposed, draft.fiscal_year)

        return _accepted_or_raise(self._sequencer.validate_and_assign(draft))

    def update_invoice(
        self,
        number: Any,
        patch: Union[InvoicePatch, Mapping[str, Any]],
        fiscal_year: Optional[str] = None,
    ) -> Invoice:
        """Обновление даты и/или суммы счета с номером number.

        Номер уникален только внутри финансового года; если записей с таким
        номером несколько, fiscal_year обязателен.
        """
        number = positive_int(number, "invoiceNumber")
        if isinstance(patch, InvoicePatch):
            changes = patch
        else:
            changes = parse_invoice_patch(patch)

        existing = self._locate(number, fiscal_year)
        draft = InvoiceDraft(
            number=number,
            invoice_date=changes.invoice_date or existing.invoice_date,
            amount=changes.amount if changes.amount is not None else existing.amount,
        )
        if not isinstance(patch, InvoicePatch):
            _note_ignored_fiscal_year(patch, draft.fiscal_year)

        return _accepted_or_raise(
            self._sequencer.validate_and_assign(draft, record_id=existing.id)
        )

    def delete_invoices(self, ids: Union[str, Iterable[str], None]) -> int:
        """Bulk delete по id записей. Номера не перенумеровываются."""
        if not ids:
            raise ValidationError("Invoice ID(s) required", field="ids")
        if isinstance(ids, str):
            ids = [ids]
        ids = list(ids)

        invalid = [str(i) for i in ids if not _is_record_id(i)]
        if invalid:
            raise ValidationError(f"Invalid ID(s): {', '.join(invalid)}", field="ids")

        deleted = self._store.delete_invoices(UUID(i).hex for i in ids)
        logger.info("deleted %d of %d requested invoice(s)", deleted, len(ids))
        return deleted

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    def list_invoices(
        self,
        fiscal_year: Optional[str] = None,
        start_date: Union[date, str, None] = None,
        end_date: Union[date, str, None] = None,
        number_search: Union[int, str, None] = None,
        page: Any = 1,
        limit: Optional[Any] = None,
    ) -> Page[Invoice]:
        """Список счетов с фильтрами, сортировка по номеру."""
        page, limit, offset = resolve_page(page, limit, self._config)

        if fiscal_year is not None and not is_fiscal_year_label(fiscal_year):
            raise ValidationError(f"invalid financial year {fiscal_year!r}", field="fiscalYear")
        start = _parse_date(start_date, "startDate")
        end = _parse_date(end_date, "endDate")
        if start is not None and end is not None and start > end:
            raise ValidationError("startDate must not be after endDate", field="startDate")
        number = None
        if number_search not in (None, ""):
            number = positive_int(number_search, "search")

        query = InvoiceQuery(fiscal_year=fiscal_year, start_date=start, end_date=end, number=number)
        total, invoices = self._store.query_invoices(query, offset, limit)
        return Page[Invoice](total=total, page=page, limit=limit, items=invoices)

    def _locate(self, number: int, fiscal_year: Optional[str]) -> Invoice:
        candidates = self._store.find_invoices_by_number(number)
        if fiscal_year is not None:
            candidates = [inv for inv in candidates if inv.fiscal_year == fiscal_year]
        if not candidates:
            raise NotFound(f"Invoice {number} not found")
        if len(candidates) > 1:
            years = ", ".join(inv.fiscal_year for inv in candidates)
            raise ValidationError(
                f"invoice number {number} exists in several financial years ({years}); "
                f"specify fiscalYear",
                field="fiscalYear",
            )
        return candidates[0]


# =============================================================================
# HELPERS
# =============================================================================


def _accepted_or_raise(result: SequenceCheckResult) -> Invoice:
    if result.accepted:
        return result.invoice
    if result.reject_reason == REASON_DUPLICATE_NUMBER:
        raise Conflict(result.details, reason=REASON_DUPLICATE_NUMBER)
    if result.reject_reason == REASON_OUT_OF_ORDER_PREDECESSOR:
        raise OutOfOrder(result.details, result.number - 1, result.predecessor_date)
    raise OutOfOrder(result.details, result.number + 1, result.successor_date)


def _note_ignored_fiscal_year(payload: Mapping[str, Any], derived: str) -> None:
    supplied = payload.get("fiscalYear")
    if supplied is not None and supplied != derived:
        logger.debug("ignoring client fiscalYear %r, derived %s", supplied, derived)


def _parse_date(value: Union[date, str, None], field: str) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError(f"invalid date {value!r}", field=field) from None


def _is_record_id(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        UUID(value)
    except ValueError:
        return False
    return True
