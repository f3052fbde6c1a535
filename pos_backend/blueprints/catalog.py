"""Catalog blueprint: products, suppliers and manual stock changes."""
from flask import Blueprint, request, jsonify

from pos_backend.database import get_session
from pos_backend.exceptions import InvalidItemError
from pos_backend.serializers import product_to_dict, supplier_to_dict, stock_move_to_dict
from pos_backend.services import catalog_service, inventory_service

catalog_bp = Blueprint('catalog', __name__, url_prefix='/api')


def _json_body():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise InvalidItemError('Request body must be a JSON object')
    return payload


@catalog_bp.route('/products', methods=['GET'])
def products_list():
    """List products with filters: category, supplierId, search, page, limit."""
    try:
        page = int(request.args.get('page', 1))
        limit = int(request.args.get('limit', 50))
    except ValueError:
        raise InvalidItemError('page and limit must be integers')

    result = catalog_service.list_products(
        get_session(),
        category=request.args.get('category') or None,
        supplier_id=request.args.get('supplierId') or None,
        search=request.args.get('search') or None,
        page=page,
        limit=limit,
    )
    return jsonify({
        'products': [product_to_dict(p) for p in result['products']],
        'pagination': {
            'page': result['page'],
            'limit': result['limit'],
            'total': result['total'],
            'pages': result['pages'],
        },
    })


@catalog_bp.route('/products', methods=['POST'])
def products_create():
    product = catalog_service.create_product(get_session(), _json_body())
    return jsonify(product_to_dict(product)), 201


@catalog_bp.route('/products/<product_id>', methods=['GET'])
def products_detail(product_id):
    session = get_session()
    product = catalog_service.get_product(session, product_id)
    data = product_to_dict(product)
    if request.args.get('moves'):
        data['moves'] = [stock_move_to_dict(m) for m in inventory_service.get_moves(session, product_id)]
    return jsonify(data)


@catalog_bp.route('/products/<product_id>', methods=['PUT'])
def products_update(product_id):
    product = catalog_service.update_product(get_session(), product_id, _json_body())
    return jsonify(product_to_dict(product))


@catalog_bp.route('/products/<product_id>', methods=['DELETE'])
def products_delete(product_id):
    catalog_service.delete_product(get_session(), product_id)
    return jsonify({'status': 'success', 'id': product_id})


@catalog_bp.route('/products/<product_id>/stock', methods=['PUT'])
def products_adjust_stock(product_id):
    """Set the on-hand quantity (stock take)."""
    payload = _json_body()
    if 'quantity' not in payload:
        raise InvalidItemError('quantity is required')
    product = inventory_service.adjust_stock(
        get_session(), product_id, payload['quantity'], payload.get('notes')
    )
    return jsonify(product_to_dict(product))


@catalog_bp.route('/products/<product_id>/receipts', methods=['POST'])
def products_receive_stock(product_id):
    payload = _json_body()
    product = inventory_service.receive_stock(
        get_session(), product_id, payload.get('quantity'),
        reference=payload.get('reference'), notes=payload.get('notes')
    )
    return jsonify(product_to_dict(product)), 201


@catalog_bp.route('/suppliers', methods=['GET'])
def suppliers_list():
    return jsonify({'suppliers': [supplier_to_dict(s) for s in catalog_service.list_suppliers(get_session())]})


@catalog_bp.route('/suppliers', methods=['POST'])
def suppliers_create():
    supplier = catalog_service.create_supplier(get_session(), _json_body())
    return jsonify(supplier_to_dict(supplier)), 201


@catalog_bp.route('/suppliers/<supplier_id>', methods=['GET'])
def suppliers_detail(supplier_id):
    supplier = catalog_service.get_supplier(get_session(), supplier_id)
    return jsonify(supplier_to_dict(supplier))


@catalog_bp.route('/suppliers/<supplier_id>', methods=['PUT'])
def suppliers_update(supplier_id):
    supplier = catalog_service.update_supplier(get_session(), supplier_id, _json_body())
    return jsonify(supplier_to_dict(supplier))


@catalog_bp.route('/suppliers/<supplier_id>', methods=['DELETE'])
def suppliers_delete(supplier_id):
    catalog_service.delete_supplier(get_session(), supplier_id)
    return jsonify({'status': 'success', 'id': supplier_id})


@catalog_bp.route('/suppliers/<supplier_id>/products', methods=['GET'])
def suppliers_products(supplier_id):
    products = catalog_service.get_supplier_products(get_session(), supplier_id)
    return jsonify({'products': [product_to_dict(p) for p in products]})
