"""Middleware for authentication and store context."""
from functools import wraps
from flask import session, g, jsonify, current_app
from lojapdv.database import get_session
from lojapdv.models import AppUser, Store


def load_user_and_store():
    """
    Load current user and store into g (Flask's per-request global).

    Called before each request. Sets g.user, g.user_id and g.store_id if
    authenticated. A user of an inactive store is logged out.
    """
    g.user = None
    g.user_id = None
    g.store_id = None

    try:
        user_id = session.get('user_id')
        if not user_id:
            return

        db_session = get_session()
        if not db_session:
            return

        user = db_session.query(AppUser).filter_by(id=user_id, active=True).first()
        if not user:
            session.clear()
            return

        g.user = user
        g.user_id = user.id

        if user.store_id:
            store = db_session.query(Store).filter_by(id=user.store_id).first()
            if store and not store.active:
                # Store suspended - force re-login
                session.clear()
                g.user = None
                g.user_id = None
                return
            g.store_id = user.store_id
    except Exception as e:
        current_app.logger.error(f"Error in load_user_and_store: {e}")


def require_login(f):
    """Decorator: 401 JSON when nobody is logged in."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user') is None:
            return jsonify({'status': 'error', 'message': 'Faça login para continuar.'}), 401
        return f(*args, **kwargs)
    return decorated_function


def require_store(f):
    """
    Decorator: the logged user must belong to a store.

    Must be used AFTER require_login.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('store_id') is None:
            return jsonify({'status': 'error', 'message': 'Usuário sem loja vinculada.'}), 403
        return f(*args, **kwargs)
    return decorated_function


def require_admin(f):
    """Decorator: platform admins only. Must be used AFTER require_login."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user') is None or not g.user.is_admin():
            return jsonify({'status': 'error', 'message': 'Acesso restrito ao administrador.'}), 403
        return f(*args, **kwargs)
    return decorated_function
