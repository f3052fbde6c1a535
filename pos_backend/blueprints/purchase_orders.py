"""Purchase orders blueprint: order from suppliers and receive into stock."""
from datetime import date

from flask import Blueprint, request, jsonify

from pos_backend.database import get_session
from pos_backend.exceptions import InvalidItemError
from pos_backend.serializers import purchase_order_to_dict
from pos_backend.services import purchase_order_service
from pos_backend.utils.money import money_str

purchase_orders_bp = Blueprint('purchase_orders', __name__, url_prefix='/api/purchase-orders')


def _json_body():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise InvalidItemError('Request body must be a JSON object')
    return payload


def _parse_date_arg(name):
    raw = request.args.get(name, '').strip()
    if not raw:
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        raise InvalidItemError(f'{name} must be an ISO date (YYYY-MM-DD)')


@purchase_orders_bp.route('', methods=['GET'])
def orders_list():
    """List orders with filters: supplierId, status, startDate, endDate, page, limit."""
    try:
        page = int(request.args.get('page', 1))
        limit = int(request.args.get('limit', 10))
    except ValueError:
        raise InvalidItemError('page and limit must be integers')

    result = purchase_order_service.list_purchase_orders(
        get_session(),
        supplier_id=request.args.get('supplierId') or None,
        status=purchase_order_service.parse_status(request.args.get('status')),
        start=_parse_date_arg('startDate'),
        end=_parse_date_arg('endDate'),
        page=page,
        limit=limit,
    )
    return jsonify({
        'orders': [purchase_order_to_dict(o) for o in result['orders']],
        'pagination': {
            'page': result['page'],
            'limit': result['limit'],
            'total': result['total'],
            'pages': result['pages'],
        },
    })


@purchase_orders_bp.route('', methods=['POST'])
def orders_create():
    order = purchase_order_service.create_purchase_order(get_session(), _json_body())
    return jsonify(purchase_order_to_dict(order)), 201


@purchase_orders_bp.route('/stats', methods=['GET'])
def orders_stats():
    stats = purchase_order_service.get_purchase_order_stats(
        get_session(), start=_parse_date_arg('startDate'), end=_parse_date_arg('endDate')
    )
    stats['totalValue'] = money_str(stats['totalValue'])
    return jsonify(stats)


@purchase_orders_bp.route('/<order_id>', methods=['GET'])
def orders_detail(order_id):
    order = purchase_order_service.get_purchase_order(get_session(), order_id)
    return jsonify(purchase_order_to_dict(order))


@purchase_orders_bp.route('/<order_id>', methods=['PUT'])
def orders_update(order_id):
    order = purchase_order_service.update_purchase_order(get_session(), order_id, _json_body())
    return jsonify(purchase_order_to_dict(order))


@purchase_orders_bp.route('/<order_id>', methods=['DELETE'])
def orders_delete(order_id):
    purchase_order_service.delete_purchase_order(get_session(), order_id)
    return jsonify({'status': 'success', 'id': order_id})


@purchase_orders_bp.route('/<order_id>/receive', methods=['POST'])
def orders_receive(order_id):
    """Add the order's lines to stock."""
    order = purchase_order_service.receive_purchase_order(get_session(), order_id)
    return jsonify(purchase_order_to_dict(order))
