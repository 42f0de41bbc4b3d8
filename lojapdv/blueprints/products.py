"""Products blueprint - catalog of the current store."""
from flask import Blueprint, jsonify, request, g

from lojapdv.blueprints import request_data
from lojapdv.database import get_session
from lojapdv.middleware import require_login, require_store
from lojapdv.services import product_service
from lojapdv.services.inventory_service import InventorySnapshot

products_bp = Blueprint('products', __name__, url_prefix='/products')


@products_bp.route('', methods=['GET'])
@require_login
@require_store
def list_products():
    """Products ordered by code, with quantity on hand."""
    db_session = get_session()
    products = product_service.search_products(
        db_session,
        g.store_id,
        request.args.get('q', ''),
        request.args.get('brand_or_supplier', ''),
    )
    snapshot = InventorySnapshot.for_store(db_session, g.store_id)

    return jsonify({
        'items': [
            product_service.product_to_dict(p, snapshot.get_quantity(g.store_id, p.id))
            for p in products
        ],
        'brands': product_service.known_brands(db_session, g.store_id),
        'next_code': product_service.format_code(product_service.next_product_code(db_session, g.store_id)),
    })


@products_bp.route('', methods=['POST'])
@require_login
@require_store
def create_product():
    data = request_data()
    product = product_service.create_product(
        get_session(),
        g.store_id,
        kind=data.get('kind'),
        description=data.get('description'),
        supplier=data.get('supplier'),
        unit_price=data.get('unit_price'),
        brand=data.get('brand'),
        min_stock=data.get('min_stock'),
    )
    return jsonify({'status': 'ok', 'product': product_service.product_to_dict(product)}), 201


@products_bp.route('/<int:product_id>', methods=['PATCH'])
@require_login
@require_store
def update_product(product_id):
    """Inline edits: unit_price and/or min_stock."""
    db_session = get_session()
    data = request_data()

    product = product_service.get_product(db_session, g.store_id, product_id)
    if 'unit_price' in data:
        product = product_service.update_price(db_session, g.store_id, product_id, data['unit_price'])
    if 'min_stock' in data:
        product = product_service.update_min_stock(db_session, g.store_id, product_id, data['min_stock'])

    return jsonify({'status': 'ok', 'product': product_service.product_to_dict(product)})


@products_bp.route('/lookup')
@require_login
@require_store
def lookup():
    """Quick entry box: "12*" (or a matching digits suggestion) to a product."""
    catalog = product_service.ProductCatalog.for_store(get_session(), g.store_id)
    product = catalog.quick_entry(request.args.get('code', ''))
    return jsonify({'status': 'ok', 'product': product_service.product_to_dict(product)})


@products_bp.route('/labels')
@require_login
@require_store
def labels():
    catalog = product_service.ProductCatalog.for_store(get_session(), g.store_id)
    return jsonify({'items': catalog.labels()})
