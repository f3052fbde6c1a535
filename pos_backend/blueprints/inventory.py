from flask import Blueprint, request, jsonify, current_app

from pos_backend.database import get_session
from pos_backend.exceptions import InvalidItemError
from pos_backend.services.inventory_service import get_stock_alerts

inventory_bp = Blueprint('inventory', __name__, url_prefix='/api/inventory')


@inventory_bp.route('/alerts', methods=['GET'])
def stock_alerts():
    """Low stock, out of stock and near expiry products."""
    default_horizon = current_app.config.get('EXPIRY_HORIZON_DAYS', 30)
    try:
        horizon = int(request.args.get('horizonDays', default_horizon))
    except ValueError:
        raise InvalidItemError('horizonDays must be an integer')
    if horizon < 0:
        raise InvalidItemError('horizonDays cannot be negative')

    alerts = get_stock_alerts(get_session(), horizon_days=horizon)
    alerts['counts'] = {key: len(value) for key, value in alerts.items()}
    return jsonify(alerts)
