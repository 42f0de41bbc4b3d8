"""Stock blueprint - on-hand quantities, entries and alerts."""
from flask import Blueprint, jsonify, request, g

from lojapdv.blueprints import request_data
from lojapdv.database import get_session
from lojapdv.exceptions import BusinessLogicError
from lojapdv.middleware import require_login, require_store
from lojapdv.services import inventory_service

stock_bp = Blueprint('stock', __name__, url_prefix='/stock')


def _record_dict(record) -> dict:
    return {
        'product_id': record.product_id,
        'quantity': str(record.quantity),
        'unit': record.unit,
    }


@stock_bp.route('', methods=['GET'])
@require_login
@require_store
def list_stock():
    data = inventory_service.list_stock(
        get_session(),
        g.store_id,
        request.args.get('q', ''),
        request.args.get('brand_or_supplier', ''),
    )
    return jsonify(data)


@stock_bp.route('/entries', methods=['POST'])
@require_login
@require_store
def add_entry():
    """Stock entry: adds to the quantity on hand."""
    data = request_data()
    if not data.get('product_id'):
        raise BusinessLogicError('Selecione o produto.')

    record = inventory_service.add_stock_entry(
        get_session(),
        g.store_id,
        int(data['product_id']),
        data.get('quantity'),
        data.get('unit'),
    )
    return jsonify({'status': 'ok', 'record': _record_dict(record)}), 201


@stock_bp.route('/<int:product_id>', methods=['PATCH'])
@require_login
@require_store
def update_record(product_id):
    """Inline edits: quantity and/or unit."""
    db_session = get_session()
    data = request_data()

    record = None
    if 'quantity' in data:
        record = inventory_service.set_quantity(db_session, g.store_id, product_id, data['quantity'])
    if 'unit' in data:
        record = inventory_service.set_unit(db_session, g.store_id, product_id, data['unit'])
    if record is None:
        raise BusinessLogicError('Nada para atualizar.')

    return jsonify({'status': 'ok', 'record': _record_dict(record)})
