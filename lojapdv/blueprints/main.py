"""Health checks for the load balancer and monitoring."""
from flask import Blueprint, jsonify, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from lojapdv.database import get_session
from lojapdv.services.cache_service import get_cache

main_bp = Blueprint('main', __name__)


@main_bp.route('/health')
def health():
    """200 when the database answers SELECT 1, 500 otherwise."""
    try:
        get_session().execute(text("SELECT 1")).scalar()
    except SQLAlchemyError as e:
        current_app.logger.error(f"Health check failed: {e}")
        return jsonify({'status': 'unhealthy', 'database': 'disconnected', 'error': str(e)}), 500
    return jsonify({'status': 'healthy', 'database': 'connected'})


@main_bp.route('/health/cache')
def health_cache():
    """
    Redis status. Always 200: the point of sale works uncached, so a
    missing Redis only degrades the statistics screen.
    """
    try:
        available = get_cache().is_available()
    except RuntimeError:
        available = False

    if not available:
        return jsonify({'status': 'degraded', 'cache': 'unavailable'})
    return jsonify({'status': 'ok', 'cache': 'connected'})
