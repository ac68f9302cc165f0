"""Разбор параметров пагинации (page/limit приходят из query-строки)."""

from typing import Any, Optional

from invoicegate.config import AdminConfig
from invoicegate.core.errors import ValidationError


def positive_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"must be a positive integer, got {value!r}", field=field)
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"must be a positive integer, got {value!r}", field=field) from None
    if not isinstance(value, str) and number != value:
        # int() усекает дробные float/Decimal
        raise ValidationError(f"must be a positive integer, got {value!r}", field=field)
    if number < 1:
        raise ValidationError(f"must be a positive integer, got {value!r}", field=field)
    return number


def resolve_page(page: Any, limit: Optional[Any], config: AdminConfig) -> tuple[int, int, int]:
    """(page, limit, offset) с проверкой границ.

    Raises:
        ValidationError: page/limit не положительные целые или limit > max_page_limit
    """
    page = positive_int(page, "page")
    limit = config.default_page_limit if limit is None else positive_int(limit, "limit")
    if limit > config.max_page_limit:
        raise ValidationError(
            f"must not exceed {config.max_page_limit}, got {limit}", field="limit"
        )
    return page, limit, (page - 1) * limit
