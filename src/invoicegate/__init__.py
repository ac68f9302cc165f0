"""
invoicegate — ядро администрирования пользователей и счетов.

Содержит две подсистемы с реальными инвариантами:
- access/      : иерархическая видимость identity и правила создания/смены роли
- sequencing/  : атомарные счетчики sequence id и целостность нумерации счетов

HTTP-слой, UI и формат токенов находятся вне пакета.
"""

__version__ = "0.3.0"
