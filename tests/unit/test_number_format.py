"""
Unit tests for BR number parsing and display formatting.
"""
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from lojapdv.utils.number_format import (
    to_number_br, to_money, to_qty, round2, clamp_pct, parse_br_decimal, parse_br_number,
)
from lojapdv.utils.formatters import (
    money_br, qty_br, pct_br, code_br, date_br, datetime_br, month_label_br, safe_csv, local_naive,
)


class TestLenientParsing:

    @pytest.mark.parametrize('raw,expected', [
        ('1.234,56', Decimal('1234.56')),
        ('2,5', Decimal('2.5')),
        ('10', Decimal('10')),
        ('  7 ', Decimal('7')),
        ('', Decimal('0')),
        ('abc', Decimal('0')),
        (None, Decimal('0')),
        (3, Decimal('3')),
        (Decimal('1.5'), Decimal('1.5')),
    ])
    def test_to_number_br(self, raw, expected):
        assert to_number_br(raw) == expected

    def test_dot_is_thousands_separator(self):
        assert to_number_br('89.90') == Decimal('8990')

    def test_to_money_rounds_half_up(self):
        assert to_money('10,005') == Decimal('10.01')
        assert round2(Decimal('161.815')) == Decimal('161.82')

    def test_to_qty_floor(self):
        assert to_qty('0') == Decimal('0.001')
        assert to_qty('-3') == Decimal('0.001')
        assert to_qty('2,5') == Decimal('2.5')

    def test_clamp_pct(self):
        assert clamp_pct(120) == Decimal('100')
        assert clamp_pct(-1) == Decimal('0')
        assert clamp_pct('12.5') == Decimal('12.5')


class TestStrictParsing:

    def test_parse_br_decimal(self):
        assert parse_br_decimal('1.234,56') == Decimal('1234.56')
        with pytest.raises(ValueError):
            parse_br_decimal('1234.5')

    def test_parse_br_number_accepts_plain_dot_decimal(self):
        assert parse_br_number('89.90') == Decimal('89.90')
        assert parse_br_number('1.234') == Decimal('1234')
        assert parse_br_number('89,9') == Decimal('89.9')

    def test_parse_br_number_rejects(self):
        with pytest.raises(ValueError):
            parse_br_number('')
        with pytest.raises(ValueError):
            parse_br_number('-5')
        with pytest.raises(ValueError):
            parse_br_number('abc')


class TestFormatters:

    def test_money_br(self):
        assert money_br(1500) == '1.500,00'
        assert money_br(Decimal('161.815')) == '161,82'
        assert money_br(None) == '0,00'
        assert money_br(-3) == '-3,00'

    def test_qty_br(self):
        assert qty_br(5) == '5'
        assert qty_br(Decimal('1.5')) == '1,5'
        assert qty_br(Decimal('0.125')) == '0,125'

    def test_pct_br(self):
        assert pct_br(10) == '10'
        assert pct_br(Decimal('16.6666')) == '16,67'

    def test_code_br(self):
        assert code_br(12) == '12*'
        assert code_br(None) == '—'

    def test_dates(self):
        assert date_br(date(2026, 1, 12)) == '12/01/2026'
        assert date_br(None) == '—'
        assert datetime_br(datetime(2026, 1, 12, 15, 30)) == '12/01/2026 15:30'
        assert month_label_br(date(2026, 3, 1)) == 'mar/26'

    def test_local_naive(self):
        naive = datetime(2026, 1, 12, 15, 30)
        assert local_naive(naive) is naive

        aware = datetime(2026, 1, 12, 15, 30, tzinfo=timezone(timedelta(hours=-3)))
        converted = local_naive(aware)
        assert converted.tzinfo is None
        assert converted == aware.astimezone().replace(tzinfo=None)

    def test_safe_csv(self):
        assert safe_csv('Rua A; 10\nFundos') == 'Rua A, 10 Fundos'
        assert safe_csv(None) == ''
