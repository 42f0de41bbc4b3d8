"""Customers blueprint - store-scoped."""
from flask import Blueprint, jsonify, request, g, current_app, Response

from lojapdv.blueprints import request_data
from lojapdv.database import get_session
from lojapdv.middleware import require_login, require_store
from lojapdv.services import customer_service

customers_bp = Blueprint('customers', __name__, url_prefix='/customers')


@customers_bp.route('', methods=['GET'])
@require_login
@require_store
def list_customers():
    customers = customer_service.list_customers(
        get_session(),
        g.store_id,
        request.args.get('q', ''),
        limit=current_app.config.get('CUSTOMERS_LIMIT', 300),
    )
    return jsonify({'items': [customer_service.customer_to_dict(c) for c in customers]})


@customers_bp.route('', methods=['POST'])
@require_login
@require_store
def create_customer():
    data = request_data()
    customer = customer_service.create_customer(
        get_session(),
        g.store_id,
        name=data.get('name'),
        phone=data.get('phone'),
        address=data.get('address'),
        neighborhood=data.get('neighborhood'),
        city=data.get('city'),
    )
    return jsonify({'status': 'ok', 'customer': customer_service.customer_to_dict(customer)}), 201


@customers_bp.route('/<int:customer_id>', methods=['PATCH'])
@require_login
@require_store
def update_customer(customer_id):
    customer = customer_service.update_customer(get_session(), g.store_id, customer_id, **request_data())
    return jsonify({'status': 'ok', 'customer': customer_service.customer_to_dict(customer)})


@customers_bp.route('/<int:customer_id>', methods=['DELETE'])
@require_login
@require_store
def delete_customer(customer_id):
    customer_service.delete_customer(get_session(), g.store_id, customer_id)
    return jsonify({'status': 'ok'})


@customers_bp.route('/export.csv')
@require_login
@require_store
def export_csv():
    customers = customer_service.list_customers(
        get_session(),
        g.store_id,
        request.args.get('q', ''),
        limit=current_app.config.get('CUSTOMERS_LIMIT', 300),
    )
    content = customer_service.export_customers_csv(customers)
    return Response(
        content,
        mimetype='text/csv; charset=utf-8',
        headers={'Content-Disposition': 'attachment; filename=clientes.csv'}
    )
