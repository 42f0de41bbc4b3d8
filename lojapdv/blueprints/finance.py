"""Finance blueprint - cash-out (purchases and expenses)."""
from datetime import date

from flask import Blueprint, jsonify, request, g

from lojapdv.blueprints import request_data
from lojapdv.database import get_session
from lojapdv.middleware import require_login, require_store
from lojapdv.services import cash_out_service

finance_bp = Blueprint('finance', __name__, url_prefix='/finance')


@finance_bp.route('/cash-out', methods=['GET'])
@require_login
@require_store
def list_cash_out():
    result = cash_out_service.list_cash_out(
        get_session(),
        g.store_id,
        request.args.get('range', cash_out_service.DEFAULT_RANGE),
        request.args.get('q', ''),
        today=date.today(),
    )
    return jsonify({
        'entries': [cash_out_service.cash_out_to_dict(e) for e in result['entries']],
        'total': str(result['total']),
        'count': result['count'],
        'by_kind': {k: str(v) for k, v in result['by_kind'].items()},
        'range': result['range'],
        'start': result['start'].isoformat(),
        'expense_descriptions': result['expense_descriptions'],
    })


@finance_bp.route('/cash-out', methods=['POST'])
@require_login
@require_store
def create_cash_out():
    data = request_data()
    product_id = data.get('product_id')
    entry = cash_out_service.create_cash_out(
        get_session(),
        g.store_id,
        kind=data.get('kind'),
        out_date=data.get('out_date'),
        quantity=data.get('quantity'),
        unit_value=data.get('unit_value'),
        total_value=data.get('total_value'),
        description=data.get('description'),
        product_id=int(product_id) if product_id else None,
    )
    return jsonify({'status': 'ok', 'entry': cash_out_service.cash_out_to_dict(entry)}), 201


@finance_bp.route('/cash-out/<int:cash_out_id>', methods=['DELETE'])
@require_login
@require_store
def delete_cash_out(cash_out_id):
    cash_out_service.delete_cash_out(get_session(), g.store_id, cash_out_id)
    return jsonify({'status': 'ok'})
