"""
Финансовый год.

Финансовый год начинается 1 апреля года Y и заканчивается 31 марта года Y+1,
метка записывается как "Y-(Y+1)". Значение всегда выводится из даты счета,
клиентское значение никогда не используется для проверок целостности.

Examples:
    >>> fiscal_year_for(date(2023, 3, 31))
    '2022-2023'
    >>> fiscal_year_for(date(2023, 4, 1))
    '2023-2024'
"""

import re
from datetime import date, datetime
from typing import Final, Union

FISCAL_YEAR_START_MONTH: Final[int] = 4

FISCAL_YEAR_PATTERN: Final[re.Pattern] = re.compile(r"^(\d{4})-(\d{4})$")


def fiscal_year_for(
    value: Union[date, datetime],
    start_month: int = FISCAL_YEAR_START_MONTH,
) -> str:
    """Метка финансового года для даты.

    Args:
        value: дата счета (datetime усекается до даты)
        start_month: месяц начала финансового года (default: апрель)

    Returns:
        "Y-(Y+1)" если month >= start_month, иначе "(Y-1)-Y"
    """
    if isinstance(value, datetime):
        value = value.date()
    if value.month >= start_month:
        return f"{value.year}-{value.year + 1}"
    return f"{value.year - 1}-{value.year}"


def is_fiscal_year_label(label: str) -> bool:
    """Проверка формата метки: два соседних года через дефис."""
    match = FISCAL_YEAR_PATTERN.match(label)
    if match is None:
        return False
    return int(match.group(2)) == int(match.group(1)) + 1
