"""
CounterStore — выдача человекочитаемых sequence id по ролям.

next_sequence_id(role) = префикс роли + новое значение счетчика роли.

Инварианты:
1. Значение счетчика только растет
2. Инкремент атомарен (делегируется AdminStore.increment_counter), поэтому
   конкурентные вызовы для одной роли никогда не получают одно значение
3. Значение сохранено в хранилище до возврата sequence id
"""

from typing import Union

from invoicegate.core.domain.role import Role, sequence_prefix
from invoicegate.logging import get_logger
from invoicegate.storage.base import AdminStore

logger = get_logger(__name__)


class CounterStore:
    """Атомарные per-role счетчики поверх AdminStore."""

    def __init__(self, store: AdminStore):
        self._store = store

    @staticmethod
    def counter_key(role: Union[Role, str]) -> str:
        return role.value if isinstance(role, Role) else str(role)

    def next_sequence_id(self, role: Union[Role, str]) -> str:
        """Инкремент счетчика роли и сборка sequence id.

        Args:
            role: роль (Role или строка; неизвестная роль получает префикс "X")

        Returns:
            Например "A12" для двенадцатого ADMIN
        """
        key = self.counter_key(role)
        count = self._store.increment_counter(key)
        sequence_id = f"{sequence_prefix(role)}{count}"
        logger.debug("counter %s -> %d (%s)", key, count, sequence_id)
        return sequence_id

    def current(self, role: Union[Role, str]) -> int:
        return self._store.counter_value(self.counter_key(role))
