"""
Audit logging service for tracking sale and catalog mutations.
Entries are added to the caller's session so they commit (or roll back)
together with the change they describe.
"""
from pos_backend.models import AuditLog, AuditAction
from flask import request, has_request_context
import json
import logging

logger = logging.getLogger(__name__)


def log_action(
    session,
    action: AuditAction,
    resource_type: str = None,
    resource_id: str = None,
    details: dict = None
):
    """
    Log an auditable action to the database.

    Args:
        session: Database session
        action: AuditAction enum value
        resource_type: Type of resource affected (e.g., 'product', 'sale')
        resource_id: ID of the affected resource
        details: Dict with additional details (will be JSON encoded)
    """
    ip_address = request.remote_addr if has_request_context() else None

    details_json = None
    if details:
        details_json = json.dumps(details, default=str)

    audit_entry = AuditLog(
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details_json,
        ip_address=ip_address,
    )
    session.add(audit_entry)
    # Note: Caller is responsible for committing the session

    logger.info(f"Audit log queued: {action.value} on {resource_type} {resource_id}")
    return audit_entry


def get_audit_logs(
    session,
    limit: int = 100,
    offset: int = 0,
    action_filter: AuditAction = None,
    resource_type_filter: str = None,
    resource_id_filter: str = None
):
    """
    Retrieve audit logs with optional filters, newest first.

    Returns:
        List of AuditLog objects
    """
    query = session.query(AuditLog)

    if action_filter:
        query = query.filter(AuditLog.action == action_filter)

    if resource_type_filter:
        query = query.filter(AuditLog.resource_type == resource_type_filter)

    if resource_id_filter:
        query = query.filter(AuditLog.resource_id == resource_id_filter)

    query = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
    query = query.limit(limit).offset(offset)

    return query.all()
