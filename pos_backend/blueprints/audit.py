from flask import Blueprint, request, jsonify

from pos_backend.database import get_session
from pos_backend.exceptions import InvalidItemError
from pos_backend.models import AuditAction
from pos_backend.serializers import audit_log_to_dict
from pos_backend.services.audit_service import get_audit_logs

audit_bp = Blueprint('audit', __name__, url_prefix='/api/audit-logs')


@audit_bp.route('', methods=['GET'])
def audit_list():
    """Audit trail, newest first. Filters: action, resourceType, resourceId, limit, offset."""
    try:
        limit = max(1, min(int(request.args.get('limit', 100)), 500))
        offset = max(0, int(request.args.get('offset', 0)))
    except ValueError:
        raise InvalidItemError('limit and offset must be integers')

    action = request.args.get('action') or None
    if action is not None:
        try:
            action = AuditAction(action.strip().upper())
        except ValueError:
            raise InvalidItemError(f'Unknown audit action {action}')

    entries = get_audit_logs(
        get_session(),
        limit=limit,
        offset=offset,
        action_filter=action,
        resource_type_filter=request.args.get('resourceType') or None,
        resource_id_filter=request.args.get('resourceId') or None,
    )
    return jsonify({'entries': [audit_log_to_dict(e) for e in entries]})
