"""Admin blueprint - platform overview across stores."""
from datetime import date, datetime

from flask import Blueprint, jsonify, request

from lojapdv.database import get_session
from lojapdv.exceptions import BusinessLogicError
from lojapdv.middleware import require_login, require_admin
from lojapdv.services import admin_service

admin_bp = Blueprint('admin', __name__, url_prefix='/admin')


def _parse_day(text) -> date:
    text = (text or '').strip()
    if not text:
        return date.today()
    try:
        return datetime.strptime(text, '%Y-%m-%d').date()
    except ValueError:
        raise BusinessLogicError('Data inválida.')


@admin_bp.route('/overview')
@require_login
@require_admin
def overview():
    """Per-store sales and cash-out for ?date=YYYY-MM-DD (today by default)."""
    data = admin_service.get_overview(
        get_session(),
        _parse_day(request.args.get('date')),
        request.args.get('q', ''),
    )
    data['date'] = data['date'].isoformat()
    return jsonify(data)


@admin_bp.route('/stores/<int:store_id>')
@require_login
@require_admin
def store_detail(store_id):
    data = admin_service.get_store_detail(get_session(), store_id)
    for sale in data['recent_sales']:
        sale['created_at'] = sale['created_at'].isoformat() if sale['created_at'] else None
    return jsonify(data)
