"""
Integration tests for the product, inventory, customer and cash-out services.
"""
from datetime import date
from decimal import Decimal

import pytest

from lojapdv.exceptions import BusinessLogicError, NotFoundError
from lojapdv.models import Sale, Product
from lojapdv.services import (
    product_service, inventory_service, customer_service, cash_out_service,
)


class TestProductService:

    def test_codes_are_sequential_per_store(self, session, store, other_store):
        first = product_service.create_product(session, store.id, 'Ração', 'Ração A', 'PremieR', '89,90')
        second = product_service.create_product(session, store.id, 'Ração', 'Ração B', 'PremieR', '10')
        foreign = product_service.create_product(session, other_store.id, 'Ração', 'Ração C', 'PremieR', '10')

        assert (first.code, second.code) == (1, 2)
        assert foreign.code == 1
        assert first.unit_price == Decimal('89.90')
        assert first.brand == 'Outros'

    def test_required_fields(self, session, store):
        with pytest.raises(BusinessLogicError) as exc:
            product_service.create_product(session, store.id, '', 'Ração', 'PremieR', '10')
        assert exc.value.message == 'Preencha pelo menos: Tipo, Descrição e Fornecedor.'

    def test_invalid_price(self, session, store):
        with pytest.raises(BusinessLogicError) as exc:
            product_service.create_product(session, store.id, 'Ração', 'Ração', 'PremieR', 'abc')
        assert exc.value.message == 'Preço inválido.'
        assert session.query(Product).count() == 0

    def test_inline_edits(self, session, store, ration):
        product_service.update_price(session, store.id, ration.id, '1.299,90')
        product_service.update_min_stock(session, store.id, ration.id, '-')

        product = product_service.get_product(session, store.id, ration.id)
        assert product.unit_price == Decimal('1299.90')
        assert product.min_stock is None

    def test_invalid_inline_price_keeps_value(self, session, store, ration):
        with pytest.raises(BusinessLogicError):
            product_service.update_price(session, store.id, ration.id, '-1')
        assert product_service.get_product(session, store.id, ration.id).unit_price == Decimal('89.90')

    def test_other_store_product_not_found(self, session, other_store, ration):
        with pytest.raises(NotFoundError):
            product_service.get_product(session, other_store.id, ration.id)

    def test_search(self, session, store, ration, collar):
        assert [p.id for p in product_service.search_products(session, store.id, 'golden')] == [ration.id]
        assert [p.id for p in product_service.search_products(session, store.id, '2*')] == [collar.id]
        assert [p.id for p in product_service.search_products(session, store.id, '', 'premier')] == [ration.id]
        assert product_service.known_brands(session, store.id) == ['Golden', 'Outros']


class TestInventoryService:

    def test_entry_adds_truncated_quantity(self, session, store, ration):
        record = inventory_service.add_stock_entry(session, store.id, ration.id, '5,9', 'saco')
        assert record.quantity == Decimal('12')
        assert record.unit == 'saco'

    def test_entry_creates_missing_record(self, session, store, product_factory):
        product = product_factory(store, 3, 'Sem estoque', '1.00')
        record = inventory_service.add_stock_entry(session, store.id, product.id, '4')
        assert record.quantity == Decimal('4')
        assert record.unit == 'un'

    def test_invalid_quantity(self, session, store, ration):
        with pytest.raises(BusinessLogicError):
            inventory_service.add_stock_entry(session, store.id, ration.id, 'muito')

    def test_set_quantity_and_unit(self, session, store, ration):
        inventory_service.set_quantity(session, store.id, ration.id, '-4')
        record = inventory_service.set_unit(session, store.id, ration.id, 'kg')
        assert record.quantity == Decimal('0')
        assert record.unit == 'kg'

    def test_list_stock_alerts(self, session, store, ration, collar):
        data = inventory_service.list_stock(session, store.id)

        assert data['alerts'] == {'red': 0, 'orange': 1, 'total': 1}
        assert [item['id'] for item in data['alert_items']] == [ration.id]
        statuses = {item['id']: item['status']['level'] for item in data['items']}
        assert statuses == {ration.id: 'orange', collar.id: 'none'}

    def test_list_stock_filter_keeps_store_alerts(self, session, store, ration, collar):
        data = inventory_service.list_stock(session, store.id, 'coleira')
        assert [item['id'] for item in data['items']] == [collar.id]
        assert data['alerts']['total'] == 1


class TestCustomerService:

    def test_create_and_list(self, session, store, other_store):
        customer_service.create_customer(session, store.id, ' Ana ', phone='', city='Campinas')
        customer_service.create_customer(session, other_store.id, 'Bruno')

        customers = customer_service.list_customers(session, store.id)
        assert [c.name for c in customers] == ['Ana']
        assert customers[0].phone is None
        assert customer_service.list_customers(session, store.id, 'campinas')[0].name == 'Ana'

    def test_name_required(self, session, store):
        with pytest.raises(BusinessLogicError) as exc:
            customer_service.create_customer(session, store.id, '  ')
        assert exc.value.message == 'Preencha pelo menos o Nome.'

    def test_update(self, session, store, customer):
        customer_service.update_customer(session, store.id, customer.id, phone='11 4000-0000', unknown='x')
        assert customer_service.get_customer(session, store.id, customer.id).phone == '11 4000-0000'

        with pytest.raises(BusinessLogicError):
            customer_service.update_customer(session, store.id, customer.id, name='')
        assert customer_service.get_customer(session, store.id, customer.id).name == 'Maria Souza'

    def test_delete_detaches_sales(self, session, store, customer):
        sale = Sale(store_id=store.id, sale_number=1, customer_id=customer.id, payment_method='Pix',
                    subtotal=Decimal('10'), total=Decimal('10'))
        session.add(sale)
        session.commit()
        sale_id = sale.id

        customer_service.delete_customer(session, store.id, customer.id)

        assert session.get(Sale, sale_id).customer_id is None
        with pytest.raises(NotFoundError):
            customer_service.get_customer(session, store.id, customer.id)

    def test_export_csv(self, session, store):
        customer_service.create_customer(session, store.id, 'Ana', phone='119999', address='Rua A; 10')
        content = customer_service.export_customers_csv(customer_service.list_customers(session, store.id))
        lines = content.strip().split('\n')
        assert lines[0] == 'Nome;Telefone;Endereço;Bairro;Cidade;Data cadastro'
        assert lines[1].startswith('Ana;119999;Rua A, 10;;;')


class TestCashOutService:

    def test_expense(self, session, store):
        entry = cash_out_service.create_cash_out(
            session, store.id, 'expense', '2026-01-05', '1', unit_value='150,00', description='Aluguel'
        )
        assert entry.total_value == Decimal('150.00')
        assert entry.description == 'Aluguel'

    def test_expense_requires_description(self, session, store):
        with pytest.raises(BusinessLogicError) as exc:
            cash_out_service.create_cash_out(session, store.id, 'expense', '2026-01-05', '1', '10')
        assert exc.value.message == 'Digite a descrição da despesa.'

    def test_purchase_updates_last_cost(self, session, store, ration):
        entry = cash_out_service.create_cash_out(
            session, store.id, 'product', '2026-01-05', '10', total_value='600,00', product_id=ration.id
        )
        assert entry.description == 'Compra: Ração Golden 15kg • Golden'
        assert entry.unit_value == Decimal('60.00')
        assert product_service.get_product(session, store.id, ration.id).last_cost == Decimal('60.00')

    def test_purchase_requires_store_product(self, session, other_store, ration):
        with pytest.raises(NotFoundError):
            cash_out_service.create_cash_out(
                session, other_store.id, 'product', '2026-01-05', '1', '10', product_id=ration.id
            )

    @pytest.mark.parametrize('out_date,quantity,message', [
        ('', '1', 'Selecione a data.'),
        ('05/01/2026', '1', 'Data inválida.'),
        ('2026-01-05', '0', 'Quantidade inválida.'),
    ])
    def test_invalid_fields(self, session, store, out_date, quantity, message):
        with pytest.raises(BusinessLogicError) as exc:
            cash_out_service.create_cash_out(
                session, store.id, 'expense', out_date, quantity, '10', description='Luz'
            )
        assert exc.value.message == message

    def test_list_window_and_totals(self, session, store, ration):
        today = date(2026, 1, 31)
        cash_out_service.create_cash_out(session, store.id, 'expense', '2026-01-30', '1', '100', description='Luz')
        cash_out_service.create_cash_out(session, store.id, 'product', '2026-01-25', '2', '30',
                                         product_id=ration.id)
        cash_out_service.create_cash_out(session, store.id, 'expense', '2026-01-01', '1', '999', description='Velho')

        result = cash_out_service.list_cash_out(session, store.id, '7d', today=today)

        assert result['count'] == 2
        assert result['total'] == Decimal('160.00')
        assert result['by_kind'] == {
            'products': Decimal('60.00'), 'expenses': Decimal('100.00'), 'total': Decimal('160.00')
        }
        assert result['expense_descriptions'] == ['Luz']

        filtered = cash_out_service.list_cash_out(session, store.id, '30d', 'golden', today=today)
        assert filtered['count'] == 1

    def test_delete(self, session, store):
        entry = cash_out_service.create_cash_out(
            session, store.id, 'expense', '2026-01-05', '1', '10', description='Luz'
        )
        cash_out_service.delete_cash_out(session, store.id, entry.id)
        with pytest.raises(NotFoundError):
            cash_out_service.delete_cash_out(session, store.id, entry.id)
