"""Тесты вывода финансового года.

Coverage:
- Граница 31 марта / 1 апреля
- datetime усекается до даты
- Формат метки
- Property: любой день года попадает в год, содержащий эту дату
"""

from datetime import date, datetime, timedelta

from hypothesis import given, strategies as st

from invoicegate.core.domain import fiscal_year_for, is_fiscal_year_label


class TestFiscalYearFor:
    def test_march_31_belongs_to_previous_year(self):
        assert fiscal_year_for(date(2023, 3, 31)) == "2022-2023"

    def test_april_1_starts_new_year(self):
        assert fiscal_year_for(date(2023, 4, 1)) == "2023-2024"

    def test_january_belongs_to_previous_start_year(self):
        assert fiscal_year_for(date(2024, 1, 15)) == "2023-2024"

    def test_december(self):
        assert fiscal_year_for(date(2023, 12, 31)) == "2023-2024"

    def test_datetime_is_truncated(self):
        assert fiscal_year_for(datetime(2023, 3, 31, 23, 59, 59)) == "2022-2023"

    def test_custom_start_month(self):
        assert fiscal_year_for(date(2023, 6, 30), start_month=7) == "2022-2023"
        assert fiscal_year_for(date(2023, 7, 1), start_month=7) == "2023-2024"


class TestFiscalYearLabel:
    def test_valid_label(self):
        assert is_fiscal_year_label("2023-2024")

    def test_non_consecutive_years(self):
        assert not is_fiscal_year_label("2023-2025")

    def test_malformed(self):
        assert not is_fiscal_year_label("2023/2024")
        assert not is_fiscal_year_label("FY2023")
        assert not is_fiscal_year_label("")


class TestFiscalYearProperties:
    @given(st.dates(min_value=date(1900, 1, 1), max_value=date(2200, 12, 31)))
    def test_label_spans_the_date(self, d):
        """Для любой даты: 1 апреля start_year <= d <= 31 марта end_year."""
        label = fiscal_year_for(d)
        assert is_fiscal_year_label(label)
        start_year, end_year = (int(part) for part in label.split("-"))
        assert date(start_year, 4, 1) <= d <= date(end_year, 3, 31)

    @given(st.dates(min_value=date(1900, 1, 1), max_value=date(2200, 12, 30)))
    def test_label_is_monotonic(self, d):
        """Следующий день никогда не попадает в более ранний финансовый год."""
        assert fiscal_year_for(d + timedelta(days=1)) >= fiscal_year_for(d)
