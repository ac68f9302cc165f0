"""
Invoice — модель счета.

Immutable Pydantic модель. fiscal_year всегда выводится из invoice_date и не
может быть задан независимо: model_validator перезаписывает любое переданное
значение.

Инварианты:
1. (number, fiscal_year) глобально уникальна
2. Внутри финансового года номера и даты ко-монотонны:
   date(N-1) < date(N) < date(N+1) для существующих соседей
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator

from .fiscal_year import fiscal_year_for


def new_invoice_id() -> str:
    return uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InvoiceDraft(BaseModel):
    """Предлагаемый счет (create)."""

    number: int = Field(..., ge=1, description="Номер счета внутри финансового года")
    invoice_date: date = Field(..., description="Дата счета")
    amount: Decimal = Field(..., gt=0, description="Сумма счета")

    model_config = {"frozen": True}

    @property
    def fiscal_year(self) -> str:
        return fiscal_year_for(self.invoice_date)


class InvoicePatch(BaseModel):
    """Частичное обновление счета (update). Номер не меняется."""

    invoice_date: Optional[date] = None
    amount: Optional[Decimal] = Field(None, gt=0)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_not_empty(self) -> "InvoicePatch":
        if self.invoice_date is None and self.amount is None:
            raise ValueError("at least one of invoice_date, amount is required")
        return self


class Invoice(BaseModel):
    """
    Сохраненный счет.

    id — идентификатор записи (используется для bulk delete).
    """

    id: str = Field(default_factory=new_invoice_id, min_length=1)
    number: int = Field(..., ge=1)
    invoice_date: date
    amount: Decimal = Field(..., gt=0)
    fiscal_year: str = Field("", description="Выводится из invoice_date")
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    model_config = {"frozen": True}

    @model_validator(mode="before")
    @classmethod
    def derive_fiscal_year(cls, data):
        # Клиентское значение fiscal_year никогда не сохраняется
        if isinstance(data, dict) and data.get("invoice_date") is not None:
            data = dict(data)
            invoice_date = data["invoice_date"]
            if isinstance(invoice_date, str):
                invoice_date = date.fromisoformat(invoice_date[:10])
            data["fiscal_year"] = fiscal_year_for(invoice_date)
        return data

    @classmethod
    def from_draft(cls, draft: InvoiceDraft, record_id: Optional[str] = None) -> "Invoice":
        values = {
            "number": draft.number,
            "invoice_date": draft.invoice_date,
            "amount": draft.amount,
        }
        if record_id is not None:
            values["id"] = record_id
        return cls(**values)
