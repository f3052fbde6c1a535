from flask import Blueprint, request, jsonify, current_app

from pos_backend.database import get_session
from pos_backend.exceptions import InvalidItemError
from pos_backend.serializers import customer_to_dict, sale_to_dict
from pos_backend.services import customer_service

customers_bp = Blueprint('customers', __name__, url_prefix='/api/customers')


@customers_bp.route('', methods=['GET'])
def customers_list():
    customers = customer_service.list_customers(get_session(), request.args.get('search') or None)
    return jsonify({'customers': [customer_to_dict(c) for c in customers]})


@customers_bp.route('', methods=['POST'])
def customers_create():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise InvalidItemError('Request body must be a JSON object')
    customer = customer_service.create_customer(get_session(), payload)
    return jsonify(customer_to_dict(customer)), 201


@customers_bp.route('/<customer_id>', methods=['GET'])
def customers_detail(customer_id):
    """Customer with outstanding credit balance."""
    customer = customer_service.get_customer(get_session(), customer_id)
    return jsonify(customer_to_dict(customer, with_balance=True))


@customers_bp.route('/<customer_id>', methods=['PUT'])
def customers_update(customer_id):
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise InvalidItemError('Request body must be a JSON object')
    customer = customer_service.update_customer(get_session(), customer_id, payload)
    return jsonify(customer_to_dict(customer, with_balance=True))


@customers_bp.route('/<customer_id>', methods=['DELETE'])
def customers_delete(customer_id):
    customer_service.delete_customer(get_session(), customer_id)
    return jsonify({'status': 'success', 'id': customer_id})


@customers_bp.route('/<customer_id>/sales', methods=['GET'])
def customers_sales(customer_id):
    try:
        page = int(request.args.get('page', 1))
        limit = int(request.args.get('limit', current_app.config.get('SALES_PAGE_SIZE', 10)))
    except ValueError:
        raise InvalidItemError('page and limit must be integers')

    result = customer_service.get_customer_sales(get_session(), customer_id, page=page, limit=limit)
    return jsonify({
        'sales': [sale_to_dict(sale) for sale in result['sales']],
        'pagination': {
            'page': result['page'],
            'limit': result['limit'],
            'total': result['total'],
            'pages': result['pages'],
        },
    })
