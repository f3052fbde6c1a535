"""Sales blueprint: complete, list, inspect, reverse and settle sales."""
from datetime import date

from flask import Blueprint, request, jsonify, current_app

from pos_backend.blueprints.metrics import sales_completed_total, sale_failures_total, sales_reversed_total
from pos_backend.database import get_session
from pos_backend.exceptions import PosError, InvalidItemError
from pos_backend.schemas import SaleCandidate
from pos_backend.serializers import sale_to_dict
from pos_backend.services import sales_service
from pos_backend.services.sale_payment_service import record_payment
from pos_backend.services.sale_reversal_service import reverse_sale

sales_bp = Blueprint('sales', __name__, url_prefix='/api/sales')


def _parse_date_arg(name):
    raw = request.args.get(name, '').strip()
    if not raw:
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        raise InvalidItemError(f'{name} must be an ISO date (YYYY-MM-DD)')


def _int_arg(name, default):
    try:
        return int(request.args.get(name, default))
    except (TypeError, ValueError):
        raise InvalidItemError(f'{name} must be an integer')


@sales_bp.route('', methods=['POST'])
def create_sale():
    """Complete a sale from a JSON candidate."""
    session = get_session()
    payload = request.get_json(silent=True)

    try:
        candidate = SaleCandidate.from_payload(
            payload, current_app.config.get('DEFAULT_PAYMENT_METHOD', 'Cash')
        )
        outcome = sales_service.submit_sale(candidate, session)
    except PosError as e:
        sale_failures_total.labels(reason=e.code).inc()
        raise

    sale = outcome.sale
    if outcome.replayed:
        return jsonify(sale_to_dict(sale)), 200

    sales_completed_total.labels(payment_status=sale.payment_status).inc()
    current_app.logger.info(f"Sale {sale.id} recorded via API")
    return jsonify(sale_to_dict(sale, change_due=outcome.change_due)), 201


@sales_bp.route('', methods=['GET'])
def list_sales():
    session = get_session()
    result = sales_service.list_sales(
        session,
        start=_parse_date_arg('startDate'),
        end=_parse_date_arg('endDate'),
        customer_id=request.args.get('customerId') or None,
        payment_method=request.args.get('paymentMethod') or None,
        page=_int_arg('page', 1),
        limit=_int_arg('limit', current_app.config.get('SALES_PAGE_SIZE', 10)),
    )
    return jsonify({
        'sales': [sale_to_dict(sale) for sale in result['sales']],
        'pagination': {
            'page': result['page'],
            'limit': result['limit'],
            'total': result['total'],
            'pages': result['pages'],
        },
    })


@sales_bp.route('/<sale_id>', methods=['GET'])
def get_sale(sale_id):
    sale = sales_service.get_sale(get_session(), sale_id)
    return jsonify(sale_to_dict(sale))


@sales_bp.route('/<sale_id>', methods=['DELETE'])
def delete_sale(sale_id):
    """Delete a sale and restore its stock."""
    result = reverse_sale(sale_id, get_session())
    sales_reversed_total.inc()
    return jsonify(dict(result, status='success'))


@sales_bp.route('/<sale_id>/payments', methods=['POST'])
def add_payment(sale_id):
    payload = request.get_json(silent=True) or {}
    sale = record_payment(sale_id, payload.get('amount'), get_session())
    return jsonify(sale_to_dict(sale))
