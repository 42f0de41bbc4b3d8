"""Sales blueprint - cart, finalize, history and bulk entry (store-scoped)."""
from flask import Blueprint, jsonify, request, session, g, current_app, Response

from lojapdv.blueprints import request_data
from lojapdv.blueprints.metrics import sales_created_total, sales_rejected_total, sale_value
from lojapdv.database import get_session
from lojapdv.exceptions import PdvError, CartValidationError, NotFoundError, BusinessLogicError
from lojapdv.middleware import require_login, require_store
from lojapdv.services import sales_service, bulk_sale_service
from lojapdv.services.cart import Cart
from lojapdv.services.inventory_service import InventorySnapshot
from lojapdv.services.product_service import ProductCatalog, CODE_NOT_FOUND
from lojapdv.services.sale_ledger import SqlSaleLedger

sales_bp = Blueprint('sales', __name__, url_prefix='/sales')


def get_cart() -> Cart:
    """Cart of the current store from the Flask session."""
    carts = session.get('cart_by_store') or {}
    return Cart.from_dict(carts.get(str(g.store_id)))


def save_cart(cart: Cart) -> None:
    carts = dict(session.get('cart_by_store') or {})
    carts[str(g.store_id)] = cart.to_dict()
    session['cart_by_store'] = carts
    session.modified = True


def _cart_response(cart: Cart, status_code=200):
    return jsonify({'status': 'ok', 'cart': cart.summary()}), status_code


def _customer_id(value):
    """Customer id from the request body; blank means no customer."""
    if value in (None, ''):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BusinessLogicError('Cliente inválido.')


def _rejection_reason(error: PdvError) -> str:
    if isinstance(error, CartValidationError) or error.status_code == 400:
        return 'validation'
    if error.status_code == 409:
        return 'stock'
    return 'ledger'


@sales_bp.route('/cart', methods=['GET'])
@require_login
@require_store
def view_cart():
    return _cart_response(get_cart())


@sales_bp.route('/cart', methods=['PATCH'])
@require_login
@require_store
def update_cart():
    """Overall discount and/or received amount."""
    data = request_data()
    cart = get_cart()
    if 'overall_discount_pct' in data:
        cart.set_overall_discount_pct(data['overall_discount_pct'])
    if 'received' in data:
        cart.set_received(data['received'])
    save_cart(cart)
    return _cart_response(cart)


@sales_bp.route('/cart', methods=['DELETE'])
@require_login
@require_store
def clear_cart():
    cart = get_cart()
    cart.clear()
    save_cart(cart)
    return _cart_response(cart)


@sales_bp.route('/cart/items', methods=['POST'])
@require_login
@require_store
def add_to_cart():
    """
    Add a product by id, by label, or by the quick-entry code ("12*").

    Adding a product already in the cart sums the quantities.
    """
    data = request_data()
    catalog = ProductCatalog.for_store(get_session(), g.store_id)

    code = (data.get('code') or '').strip()
    if code and not data.get('product_id'):
        product = catalog.quick_entry(code)
    else:
        product = catalog.resolve(data.get('product_id'), None, data.get('label'))
        if product is None:
            raise NotFoundError(CODE_NOT_FOUND)

    cart = get_cart()
    cart.add(product, data.get('qty', 1))
    save_cart(cart)
    return _cart_response(cart, 201)


@sales_bp.route('/cart/items/<int:product_id>', methods=['PATCH'])
@require_login
@require_store
def update_cart_item(product_id):
    """Quantity, line discount or typed line total."""
    data = request_data()
    cart = get_cart()
    try:
        if 'quantity' in data:
            cart.set_quantity(product_id, data['quantity'])
        if 'discount_pct' in data:
            cart.set_discount_pct(product_id, data['discount_pct'])
        if 'line_total' in data:
            cart.set_line_total(product_id, data['line_total'])
    except KeyError:
        raise NotFoundError('Item não está no carrinho.')
    save_cart(cart)
    return _cart_response(cart)


@sales_bp.route('/cart/items/<int:product_id>', methods=['DELETE'])
@require_login
@require_store
def remove_cart_item(product_id):
    cart = get_cart()
    if not cart.remove(product_id):
        raise NotFoundError('Item não está no carrinho.')
    save_cart(cart)
    return _cart_response(cart)


@sales_bp.route('/finalize', methods=['POST'])
@require_login
@require_store
def finalize():
    """
    Submit the cart as a sale.

    On any error the cart in the session is left untouched so the cashier
    can fix it and retry.
    """
    data = request_data()
    db_session = get_session()
    cart = get_cart()
    try:
        receipt = sales_service.finalize_sale(
            cart,
            ProductCatalog.for_store(db_session, g.store_id),
            InventorySnapshot.for_store(db_session, g.store_id),
            SqlSaleLedger(db_session),
            g.store_id,
            g.user_id,
            data.get('payment_method') or '',
            customer_id=_customer_id(data.get('customer_id')),
        )
    except PdvError as e:
        sales_rejected_total.labels(source='cart', reason=_rejection_reason(e)).inc()
        current_app.logger.info(f"Sale rejected: store={g.store_id} reason={e.message}")
        raise

    sales_created_total.labels(source='cart').inc()
    sale_value.observe(float(receipt.total))
    save_cart(cart)
    return jsonify({'status': 'ok', 'sale': receipt.to_dict(), 'cart': cart.summary()}), 201


@sales_bp.route('/history')
@require_login
@require_store
def history():
    rows = sales_service.list_sales(
        get_session(), g.store_id, limit=current_app.config.get('SALES_HISTORY_LIMIT', 300)
    )
    return jsonify({'items': [sales_service.sale_row_to_dict(r) for r in rows]})


@sales_bp.route('/export.csv')
@require_login
@require_store
def export_csv():
    rows = sales_service.list_sales(
        get_session(), g.store_id, limit=current_app.config.get('SALES_HISTORY_LIMIT', 300)
    )
    return Response(
        sales_service.export_sales_csv(rows),
        mimetype='text/csv; charset=utf-8',
        headers={'Content-Disposition': 'attachment; filename=vendas.csv'}
    )


@sales_bp.route('/<int:sale_id>', methods=['GET'])
@require_login
@require_store
def sale_detail(sale_id):
    detail = sales_service.get_sale_detail(get_session(), g.store_id, sale_id)
    data = sales_service.sale_row_to_dict(detail)
    data['items'] = [
        {**item, 'qty': str(item['qty']), 'discount_pct': str(item['discount_pct']),
         'total_final': str(item['total_final'])}
        for item in detail['items']
    ]
    return jsonify(data)


@sales_bp.route('/<int:sale_id>', methods=['PATCH'])
@require_login
@require_store
def update_sale(sale_id):
    """Inline edits: customer_id, payment_method, received_total."""
    data = request_data()
    changes = {k: data[k] for k in ('customer_id', 'payment_method', 'received_total') if k in data}
    if not changes:
        raise BusinessLogicError('Nada para atualizar.')
    if 'customer_id' in changes:
        changes['customer_id'] = _customer_id(changes['customer_id'])

    db_session = get_session()
    sales_service.update_sale(db_session, g.store_id, sale_id, **changes)
    detail = sales_service.get_sale_detail(db_session, g.store_id, sale_id)
    detail.pop('items')
    return jsonify({'status': 'ok', 'sale': sales_service.sale_row_to_dict(detail)})


@sales_bp.route('/<int:sale_id>', methods=['DELETE'])
@require_login
@require_store
def reverse_sale(sale_id):
    """Reverse a sale: stock goes back and the sale disappears."""
    receipt = sales_service.reverse_sale(SqlSaleLedger(get_session()), g.store_id, sale_id)
    return jsonify({'status': 'ok', 'reversal': receipt.to_dict()})


@sales_bp.route('/bulk', methods=['POST'])
@require_login
@require_store
def bulk_entry():
    """
    Bulk entry: one cash sale per row.

    Body: {"rows": [{"key", "date", "customer_id", "code", "description",
    "product_id", "qty", "received", "received_touched"}, ...]}
    """
    data = request.get_json(silent=True) or {}
    rows = [
        bulk_sale_service.BulkRow.from_dict(row, index)
        for index, row in enumerate(data.get('rows') or [])
        if isinstance(row, dict)
    ]

    db_session = get_session()
    try:
        receipts = bulk_sale_service.submit_bulk_sales(
            rows,
            ProductCatalog.for_store(db_session, g.store_id),
            InventorySnapshot.for_store(db_session, g.store_id),
            SqlSaleLedger(db_session),
            g.store_id,
            g.user_id,
        )
    except PdvError as e:
        sales_rejected_total.labels(source='bulk', reason=_rejection_reason(e)).inc()
        saved = getattr(e, 'saved', 0)
        if saved:
            sales_created_total.labels(source='bulk').inc(saved)
        raise

    sales_created_total.labels(source='bulk').inc(len(receipts))
    return jsonify({'status': 'ok', 'saved': len(receipts), 'sales': [r.to_dict() for r in receipts]}), 201
