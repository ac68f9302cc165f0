"""
Sequencing — атомарные счетчики и целостность нумерации счетов.

- CounterStore:         per-role sequence id ("SA1", "A12", "UM3", "U40")
- InvoiceSequenceGate:  решение accept/reject по соседям
- InvoiceSequencer:     проверка + запись под блокировкой финансового года
"""

from .counter_store import CounterStore
from .invoice_sequence import (
    REASON_DUPLICATE_NUMBER,
    REASON_OUT_OF_ORDER_PREDECESSOR,
    REASON_OUT_OF_ORDER_SUCCESSOR,
    InvoiceSequenceGate,
    InvoiceSequencer,
    SequenceCheckResult,
)

__all__ = [
    "CounterStore",
    "InvoiceSequenceGate",
    "InvoiceSequencer",
    "SequenceCheckResult",
    "REASON_DUPLICATE_NUMBER",
    "REASON_OUT_OF_ORDER_PREDECESSOR",
    "REASON_OUT_OF_ORDER_SUCCESSOR",
]
