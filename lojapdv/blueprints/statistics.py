"""Statistics blueprint - store dashboard."""
from flask import Blueprint, jsonify, request, g, current_app

from lojapdv.database import get_session
from lojapdv.middleware import require_login, require_store
from lojapdv.services import statistics_service

statistics_bp = Blueprint('statistics', __name__, url_prefix='/statistics')


@statistics_bp.route('')
@require_login
@require_store
def summary():
    """Dashboard numbers; ?range=7d|14d|30d picks the daily chart window."""
    data = statistics_service.get_statistics(
        get_session(),
        g.store_id,
        request.args.get('range', statistics_service.DEFAULT_DAILY_RANGE),
        ttl=current_app.config.get('CACHE_STATS_TTL'),
    )
    return jsonify(data)
