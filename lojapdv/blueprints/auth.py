"""
Authentication blueprint.
Email + password login against AppUser; the session keeps only the user id.
"""
import logging

from flask import Blueprint, jsonify, session, g
from flask_wtf.csrf import generate_csrf

from lojapdv.blueprints import request_data
from lojapdv.database import get_session
from lojapdv.exceptions import BusinessLogicError, AuthenticationError
from lojapdv.middleware import require_login
from lojapdv.models import AppUser

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')


def _user_dict(user: AppUser) -> dict:
    return {
        'id': user.id,
        'email': user.email,
        'full_name': user.full_name,
        'role': user.role,
        'store_id': user.store_id,
        'store_name': user.store.name if user.store else None,
    }


@auth_bp.route('/login', methods=['POST'])
def login():
    """Validate email + password and open a session."""
    data = request_data()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''

    if not email or not password:
        raise BusinessLogicError('Email e senha são obrigatórios.')

    db_session = get_session()
    user = db_session.query(AppUser).filter_by(email=email).first()

    if not user or not user.active or not user.check_password(password):
        logger.info(f"Login failed: email={email}")
        raise AuthenticationError('Email ou senha incorretos.')

    if user.store is not None and not user.store.active:
        raise AuthenticationError('Esta loja está suspensa. Contate o suporte.')

    session.clear()
    session['user_id'] = user.id
    session.permanent = True

    logger.info(f"Login: user={user.id} store={user.store_id}")
    return jsonify({'status': 'ok', 'user': _user_dict(user)})


@auth_bp.route('/logout', methods=['POST'])
def logout():
    session.clear()
    return jsonify({'status': 'ok'})


@auth_bp.route('/me')
@require_login
def me():
    return jsonify({'status': 'ok', 'user': _user_dict(g.user)})


@auth_bp.route('/csrf-token')
def csrf_token():
    """Token for the X-CSRFToken header of JSON posts."""
    return jsonify({'csrf_token': generate_csrf()})
