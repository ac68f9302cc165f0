"""
Таксономия ошибок invoicegate.

Все ошибки обнаруживаются синхронно и передаются вызывающему слою без
автокоррекции и без внутренних retry. Повторять имеет смысл только
StorageUnavailable (и Conflict, если вызывающий слой сам так решил).

Коды (code) стабильны и пригодны для маппинга в HTTP-статусы:
- validation_error       → 400
- permission_denied      → 403
- authentication_failed  → 401
- conflict               → 409
- out_of_order           → 400
- not_found              → 404
- storage_unavailable    → 503
"""

from datetime import date
from typing import Optional


class AdminError(Exception):
    """Базовая ошибка invoicegate."""

    code: str = "admin_error"
    retryable: bool = False

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(AdminError):
    """Отсутствующие или некорректные поля запроса."""

    code = "validation_error"

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message if field is None else f"{field}: {message}")


class PermissionDenied(AdminError):
    """Нарушение иерархии ролей при создании, смене роли или удалении."""

    code = "permission_denied"


class AuthenticationFailed(PermissionDenied):
    """Неверные учетные данные или невалидный токен."""

    code = "authentication_failed"


class Conflict(AdminError):
    """Нарушение уникальности.

    reason:
    - duplicate_email: email уже зарегистрирован
    - duplicate_number: (number, fiscal_year) уже существует
    - constraint_violation: гонка, пойманная уникальным ограничением хранилища
    """

    code = "conflict"

    def __init__(self, message: str, reason: str = "constraint_violation"):
        self.reason = reason
        super().__init__(message)


class OutOfOrder(AdminError):
    """Нарушение хронологии номеров и дат счетов внутри финансового года."""

    code = "out_of_order"

    def __init__(
        self,
        message: str,
        neighbor_number: Optional[int] = None,
        neighbor_date: Optional[date] = None,
    ):
        self.neighbor_number = neighbor_number
        self.neighbor_date = neighbor_date
        super().__init__(message)


class NotFound(AdminError):
    """Identity или счет не найден."""

    code = "not_found"


class StorageUnavailable(AdminError):
    """Транзиентный сбой хранилища. Единственный вид ошибки для retry."""

    code = "storage_unavailable"
    retryable = True
