"""
Unit tests for catalog lookups and the small parsing helpers of the services.
"""
from decimal import Decimal
from types import SimpleNamespace

import pytest

from lojapdv.exceptions import BusinessLogicError, NotFoundError
from lojapdv.services.product_service import (
    ProductCatalog, parse_code_strict, code_digits, parse_min_stock, normalize_brand, product_label,
)
from lojapdv.services.customer_service import whatsapp_link
from lojapdv.services.cash_out_service import compute_amounts
from lojapdv.services.bulk_sale_service import parse_row_date, BulkRow


def _product(pid, code, description, brand='Outros'):
    return SimpleNamespace(id=pid, code=code, description=description, brand=brand,
                           unit_price=Decimal('10.00'), min_stock=None)


@pytest.fixture
def catalog():
    return ProductCatalog([
        _product(10, 1, 'Ração Golden 15kg', 'Golden'),
        _product(11, 12, 'Coleira Nylon'),
        _product(12, None, 'Sem código', ''),
    ])


class TestCodeParsing:

    @pytest.mark.parametrize('raw,expected', [
        ('12*', 12),
        (' 3 *', 3),
        ('12', None),
        ('*', None),
        ('a*', None),
        ('', None),
        (None, None),
    ])
    def test_parse_code_strict(self, raw, expected):
        assert parse_code_strict(raw) == expected

    def test_code_digits(self):
        assert code_digits('1 2a') == 12
        assert code_digits('abc') is None

    @pytest.mark.parametrize('raw,expected', [
        ('-', None),
        ('', None),
        (None, None),
        ('5', 5),
        ('5,9', 5),
        ('-3', 0),
        ('x', None),
        (7, 7),
    ])
    def test_parse_min_stock(self, raw, expected):
        assert parse_min_stock(raw) == expected

    def test_normalize_brand(self):
        assert normalize_brand('') == 'Outros'
        assert normalize_brand('OUTROS') == 'Outros'
        assert normalize_brand(' Golden ') == 'Golden'


class TestProductCatalog:

    def test_labels(self, catalog):
        assert product_label(catalog.get_product(10)) == 'Ração Golden 15kg • Golden (1*)'
        assert product_label(catalog.get_product(12)) == 'Sem código (—)'

    def test_resolve_order(self, catalog):
        assert catalog.resolve(11, '1*', None).id == 11
        assert catalog.resolve(None, '1*', 'Coleira Nylon • Outros (12*)').id == 10
        assert catalog.resolve(None, '', 'Coleira Nylon • Outros (12*)').id == 11
        assert catalog.resolve(None, '99*', 'nada') is None

    def test_quick_entry_suggestion_wins(self, catalog):
        assert catalog.quick_entry('12').id == 11
        assert catalog.quick_entry('1*').id == 10

    def test_quick_entry_requires_asterisk(self, catalog):
        with pytest.raises(BusinessLogicError) as exc:
            catalog.quick_entry('99')
        assert exc.value.message == 'Para evitar confusão, use o formato: 1* (com asterisco).'

    def test_quick_entry_unknown_code(self, catalog):
        with pytest.raises(NotFoundError) as exc:
            catalog.quick_entry('99*')
        assert exc.value.message == 'ID não encontrado.'

    def test_get_product_bad_id(self, catalog):
        assert catalog.get_product('x') is None
        assert catalog.get_product(None) is None


class TestWhatsapp:

    def test_prefixes_country_code(self):
        assert whatsapp_link('(11) 98765-4321', 'Ana') == 'https://wa.me/5511987654321?text=Ol%C3%A1%20Ana%21'

    def test_keeps_existing_country_code(self):
        assert whatsapp_link('+55 11 98765-4321', 'Ana').startswith('https://wa.me/5511987654321?')

    def test_long_numbers_kept(self):
        assert whatsapp_link('351 912 345 678', '').startswith('https://wa.me/351912345678?')

    def test_no_digits(self):
        assert whatsapp_link('sem telefone') is None


class TestCashOutAmounts:

    def test_total_follows_unit(self):
        amounts = compute_amounts('3', '12,50')
        assert amounts['total_value'] == Decimal('37.50')
        assert amounts['unit_value'] == Decimal('12.50')

    def test_typed_total_derives_unit(self):
        amounts = compute_amounts('3', '12,50', '40,00')
        assert amounts['total_value'] == Decimal('40.00')
        assert amounts['unit_value'] == Decimal('13.33')

    def test_fractional_quantity(self):
        amounts = compute_amounts('2,5', '4')
        assert amounts['quantity'] == Decimal('2.500')
        assert amounts['total_value'] == Decimal('10.00')


class TestBulkRowParsing:

    def test_parse_row_date(self):
        assert parse_row_date('2026-02-28').isoformat() == '2026-02-28'
        assert parse_row_date('2026-02-30') is None
        assert parse_row_date('28/02/2026') is None
        assert parse_row_date('') is None

    def test_from_dict_defaults(self):
        row = BulkRow.from_dict({'date': '2026-01-05', 'code': '1*'}, 3)
        assert row.key == '3'
        assert row.qty == '1'
        assert row.customer_id is None
        assert row.received_touched is False
        assert not row.is_blank()
        assert BulkRow.from_dict({}, 0).is_blank()
