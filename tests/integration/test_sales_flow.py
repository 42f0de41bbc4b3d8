"""
Integration tests for finalizing carts, the sales history and bulk entry.
"""
from datetime import datetime
from decimal import Decimal

import pytest

from lojapdv.exceptions import (
    CartValidationError, SaleLedgerError, BulkEntryInterrupted, InsufficientStockError, LineError,
)
from lojapdv.models import Sale, InventoryRecord
from lojapdv.services import sales_service, bulk_sale_service
from lojapdv.services.bulk_sale_service import BulkRow
from lojapdv.services.cart import Cart
from lojapdv.services.inventory_service import InventorySnapshot
from lojapdv.services.product_service import ProductCatalog
from lojapdv.services.sale_ledger import SaleLedger, SaleReceipt, SqlSaleLedger


class RecordingLedger(SaleLedger):
    """Ledger double: records requests, optionally fails on the Nth create."""

    def __init__(self, fail_on=None, error=None):
        self.requests = []
        self.fail_on = fail_on
        self.error = error or SaleLedgerError('Falha no servidor')

    def create(self, request):
        if self.fail_on is not None and len(self.requests) + 1 == self.fail_on:
            raise self.error
        self.requests.append(request)
        n = len(self.requests)
        return SaleReceipt(sale_id=n, sale_number=n, subtotal=Decimal('0'), total=Decimal('0'),
                           received_total=request.received_total)

    def reverse(self, store_id, sale_id):
        raise NotImplementedError


def _context(session, store):
    return ProductCatalog.for_store(session, store.id), InventorySnapshot.for_store(session, store.id)


def _stock(session, product):
    return session.query(InventoryRecord).filter_by(product_id=product.id).one().quantity


class TestFinalizeSale:

    def test_finalize_writes_sale_and_clears_cart(self, session, store, owner, ration, customer):
        catalog, snapshot = _context(session, store)
        cart = Cart()
        cart.add(catalog.get_product(ration.id), 2)
        cart.set_discount_pct(ration.id, '10')

        receipt = sales_service.finalize_sale(
            cart, catalog, snapshot, SqlSaleLedger(session), store.id, owner.id, 'Pix',
            customer_id=customer.id,
        )

        assert receipt.total == Decimal('161.82')
        assert cart.is_empty
        sale = session.get(Sale, receipt.sale_id)
        assert sale.customer_id == customer.id
        assert sale.payment_method == 'Pix'
        assert _stock(session, ration) == Decimal('5')

    def test_over_stock_rejected_locally_and_cart_kept(self, session, store, owner, ration):
        catalog, snapshot = _context(session, store)
        cart = Cart()
        cart.add(catalog.get_product(ration.id), 10)
        before = cart.to_dict()
        ledger = RecordingLedger()

        with pytest.raises(CartValidationError) as exc:
            sales_service.finalize_sale(cart, catalog, snapshot, ledger, store.id, owner.id, 'Dinheiro')

        assert exc.value.line_errors[0].code == LineError.INSUFFICIENT_STOCK
        assert exc.value.line_errors[0].line_key == ration.id
        assert ledger.requests == []
        assert cart.to_dict() == before

    def test_ledger_error_keeps_cart(self, session, store, owner, collar):
        catalog, snapshot = _context(session, store)
        cart = Cart()
        cart.add(catalog.get_product(collar.id), 1)
        before = cart.to_dict()

        with pytest.raises(SaleLedgerError) as exc:
            sales_service.finalize_sale(
                cart, catalog, snapshot, RecordingLedger(fail_on=1), store.id, owner.id, 'Dinheiro'
            )

        assert exc.value.message == 'Falha no servidor'
        assert cart.to_dict() == before

    def test_stale_snapshot_rejected_by_ledger(self, session, store, owner, ration):
        catalog, snapshot = _context(session, store)
        record = session.query(InventoryRecord).filter_by(product_id=ration.id).one()
        record.quantity = Decimal('1')
        session.commit()

        cart = Cart()
        cart.add(catalog.get_product(ration.id), 3)

        with pytest.raises(InsufficientStockError):
            sales_service.finalize_sale(
                cart, catalog, snapshot, SqlSaleLedger(session), store.id, owner.id, 'Dinheiro'
            )
        assert len(cart) == 1

    def test_received_amount_is_submitted(self, session, store, owner, collar):
        catalog, snapshot = _context(session, store)
        cart = Cart()
        cart.add(catalog.get_product(collar.id), 4)
        cart.set_received('90')
        ledger = RecordingLedger()

        sales_service.finalize_sale(cart, catalog, snapshot, ledger, store.id, owner.id, 'Dinheiro')

        request = ledger.requests[0]
        assert request.received_total == Decimal('90.00')
        assert request.overall_discount_pct == Decimal('10.00')


class TestHistory:

    def _sell(self, session, store, owner, product, qty, when, customer_id=None):
        catalog, snapshot = _context(session, store)
        cart = Cart()
        cart.add(catalog.get_product(product.id), qty)
        ledger = SqlSaleLedger(session)
        receipt = sales_service.finalize_sale(
            cart, catalog, snapshot, ledger, store.id, owner.id, 'Dinheiro', customer_id=customer_id
        )
        sale = session.get(Sale, receipt.sale_id)
        sale.created_at = when
        session.commit()
        return receipt

    def test_list_sales_newest_first(self, session, store, owner, collar, customer):
        self._sell(session, store, owner, collar, 1, datetime(2026, 1, 5, 10, 0))
        self._sell(session, store, owner, collar, 2, datetime(2026, 1, 6, 10, 0), customer.id)

        rows = sales_service.list_sales(session, store.id)

        assert [r['sale_number'] for r in rows] == [2, 1]
        assert rows[0]['customer_name'] == 'Maria Souza'
        assert rows[1]['customer_name'] == 'Indefinido'
        assert rows[0]['items_count'] == 1

    def test_export_csv_oldest_first(self, session, store, owner, collar):
        self._sell(session, store, owner, collar, 1, datetime(2026, 1, 6, 10, 0))
        self._sell(session, store, owner, collar, 2, datetime(2026, 1, 5, 9, 30))

        content = sales_service.export_sales_csv(sales_service.list_sales(session, store.id))
        lines = content.strip().split('\n')

        assert lines[0] == 'Data;Venda;Cliente;Pagamento;Itens;Total;Recebido'
        assert lines[1] == '05/01/2026 09:30;2;Indefinido;Dinheiro;1;50,00;50,00'
        assert lines[2] == '06/01/2026 10:00;1;Indefinido;Dinheiro;1;25,00;25,00'

    def test_update_sale_fields(self, session, store, owner, collar, customer):
        receipt = self._sell(session, store, owner, collar, 1, datetime(2026, 1, 5, 10, 0))

        sales_service.update_sale(session, store.id, receipt.sale_id,
                                  customer_id=customer.id, payment_method='cartao', received_total='30,00')
        detail = sales_service.get_sale_detail(session, store.id, receipt.sale_id)

        assert detail['customer_name'] == 'Maria Souza'
        assert detail['payment_method'] == 'Cartão'
        assert detail['received_total'] == Decimal('30.00')
        assert detail['items'][0]['code'] == '2*'

    def test_reverse_sale(self, session, store, owner, collar):
        receipt = self._sell(session, store, owner, collar, 5, datetime(2026, 1, 5, 10, 0))
        assert _stock(session, collar) == Decimal('15')

        sales_service.reverse_sale(SqlSaleLedger(session), store.id, receipt.sale_id)

        assert _stock(session, collar) == Decimal('20')
        assert sales_service.list_sales(session, store.id) == []


class TestBulkEntry:

    def _rows(self, *dicts):
        return [BulkRow.from_dict(d, i) for i, d in enumerate(dicts)]

    def test_each_row_is_a_cash_sale_at_noon(self, session, store, owner, ration, collar, customer):
        catalog, snapshot = _context(session, store)
        rows = self._rows(
            {'date': '2026-01-05', 'code': '1*', 'qty': '2', 'customer_id': customer.id},
            {'date': '2026-01-06', 'description': 'Coleira Nylon • Outros (2*)', 'qty': '1',
             'received': '20', 'received_touched': True},
            {},  # blank rows are ignored
        )

        receipts = bulk_sale_service.submit_bulk_sales(
            rows, catalog, snapshot, SqlSaleLedger(session), store.id, owner.id
        )

        assert [r.sale_number for r in receipts] == [1, 2]
        first = session.get(Sale, receipts[0].sale_id)
        second = session.get(Sale, receipts[1].sale_id)
        assert first.payment_method == 'Dinheiro'
        assert first.created_at.replace(tzinfo=None) == datetime(2026, 1, 5, 12, 0)
        assert first.total == Decimal('179.80')
        assert first.received_total == Decimal('179.80')
        assert first.customer_id == customer.id
        assert second.received_total == Decimal('20.00')
        assert _stock(session, ration) == Decimal('5')

    def test_validation_marks_every_bad_row(self, session, store, owner, ration):
        catalog, snapshot = _context(session, store)
        rows = self._rows(
            {'key': 'a', 'date': '2026-13-01', 'code': '1*'},
            {'key': 'b', 'date': '2026-01-05', 'code': '99*'},
            {'key': 'c', 'date': '2026-01-05', 'code': '1*', 'qty': '5'},
            {'key': 'd', 'date': '2026-01-06', 'code': '1*', 'qty': '3'},
        )
        ledger = RecordingLedger()

        with pytest.raises(CartValidationError) as exc:
            bulk_sale_service.submit_bulk_sales(rows, catalog, snapshot, ledger, store.id, owner.id)

        errors = {(e.line_key, e.code) for e in exc.value.line_errors}
        assert errors == {
            ('a', LineError.INVALID_DATE),
            ('b', LineError.ITEM_NOT_FOUND),
            ('d', LineError.INSUFFICIENT_STOCK),
        }
        assert exc.value.message == 'Corrija as linhas marcadas em vermelho.'
        assert ledger.requests == []

    def test_empty_batch(self, session, store, owner):
        catalog, snapshot = _context(session, store)
        with pytest.raises(CartValidationError) as exc:
            bulk_sale_service.submit_bulk_sales(
                self._rows({}, {}), catalog, snapshot, RecordingLedger(), store.id, owner.id
            )
        assert exc.value.message == 'Adicione pelo menos 1 linha.'

    def test_ledger_failure_stops_batch(self, session, store, owner, collar):
        catalog, snapshot = _context(session, store)
        rows = self._rows(
            {'key': 'r1', 'date': '2026-01-05', 'code': '2*'},
            {'key': 'r2', 'date': '2026-01-05', 'code': '2*'},
            {'key': 'r3', 'date': '2026-01-05', 'code': '2*'},
        )
        ledger = RecordingLedger(fail_on=2, error=SaleLedgerError('Erro ao registrar venda: timeout'))

        with pytest.raises(BulkEntryInterrupted) as exc:
            bulk_sale_service.submit_bulk_sales(rows, catalog, snapshot, ledger, store.id, owner.id)

        assert exc.value.saved == 1
        assert exc.value.status_code == 502
        assert exc.value.to_dict()['line_errors'] == [{
            'line': 'r2', 'code': LineError.LEDGER_ERROR, 'message': 'Erro ao registrar venda: timeout'
        }]
        assert len(ledger.requests) == 1
