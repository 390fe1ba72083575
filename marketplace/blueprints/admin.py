"""
Admin blueprint - account moderation, listings, refunds, audit trail and platform KPIs.

All routes require ADMIN or SUPER_ADMIN.
"""
import logging
from flask import Blueprint, g, request

from marketplace.database import get_session
from marketplace.decorators.permissions import require_role
from marketplace.schemas import parse_body
from marketplace.schemas.admin import RefundRequest, UserStatusRequest
from marketplace.services import admin_service, credential_dispatcher, payment_service
from marketplace.models import AdminAuditLog, AuditAction
from marketplace.utils.responses import success

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__, url_prefix='/api/v1/admin')

ADMIN_ROLES = ('ADMIN', 'SUPER_ADMIN')


@admin_bp.route('/dashboard', methods=['GET'])
@require_role(*ADMIN_ROLES)
def dashboard():
    db_session = get_session()
    return success(admin_service.get_dashboard_summary(db_session), 'Dashboard retrieved')


@admin_bp.route('/users', methods=['GET'])
@require_role(*ADMIN_ROLES)
def list_users():
    """Filters: ?role=, ?status=, ?q= (email or name), ?limit=, ?offset="""
    db_session = get_session()
    limit = request.args.get('limit', 50, type=int)
    offset = request.args.get('offset', 0, type=int)
    users, total = admin_service.list_users(
        db_session,
        role=request.args.get('role', '').strip().upper() or None,
        status=request.args.get('status', '').strip().upper() or None,
        search=request.args.get('q', '').strip() or None,
        limit=limit,
        offset=offset,
    )
    return success({
        'users': [user.to_dict() for user in users],
        'meta': {'total': total, 'limit': limit, 'offset': offset},
    }, 'Users retrieved')


@admin_bp.route('/sellers', methods=['GET'])
@require_role(*ADMIN_ROLES)
def list_sellers():
    db_session = get_session()
    sellers = admin_service.list_sellers(
        db_session,
        search=request.args.get('q', '').strip() or None,
        limit=request.args.get('limit', 50, type=int),
        offset=request.args.get('offset', 0, type=int),
    )
    return success(sellers, 'Sellers retrieved')


@admin_bp.route('/users/<int:user_id>/status', methods=['PATCH'])
@require_role(*ADMIN_ROLES)
def update_user_status(user_id):
    """Block or unblock an account. Body: {"status": "BLOCKED", "reason": "..."}"""
    body = parse_body(UserStatusRequest)
    db_session = get_session()
    user = admin_service.update_user_status(
        db_session,
        admin_user_id=g.principal.id,
        target_user_id=user_id,
        status=body.status,
        reason=body.reason,
        ip_address=request.remote_addr,
    )
    return success(user.to_dict(), 'User status updated')


@admin_bp.route('/audit-logs', methods=['GET'])
@require_role(*ADMIN_ROLES)
def audit_logs():
    db_session = get_session()
    target = request.args.get('user_id', type=int)
    limit = request.args.get('limit', 100, type=int)
    offset = request.args.get('offset', 0, type=int)
    logs = admin_service.list_audit_logs(db_session, target_user_id=target, limit=limit, offset=offset)
    return success([log.to_dict() for log in logs], 'Audit logs retrieved')


@admin_bp.route('/credentials/dispatch', methods=['POST'])
@require_role(*ADMIN_ROLES)
def dispatch_credentials():
    """Re-issue and email credentials that were never delivered (?company_id= narrows it)."""
    db_session = get_session()
    company_id = request.args.get('company_id', type=int)
    result = credential_dispatcher.dispatch_pending_credentials(db_session, company_id=company_id)

    db_session.add(AdminAuditLog.log_action(
        admin_user_id=g.principal.id,
        action=AuditAction.RESEND_CREDENTIALS,
        details={'company_id': company_id, **result},
        ip_address=request.remote_addr,
    ))
    db_session.commit()
    logger.info(f"[ADMIN] Credential dispatch by admin {g.principal.id}: {result}")
    return success(result, 'Pending credentials dispatched')


@admin_bp.route('/payments/<int:payment_id>/refund', methods=['POST'])
@require_role(*ADMIN_ROLES)
def refund_payment(payment_id):
    """Body (optional): {"amount": "10.00", "reason": "requested_by_customer"}"""
    body = parse_body(RefundRequest)
    db_session = get_session()
    payment = payment_service.refund_payment(
        db_session,
        payment_id,
        admin_user_id=g.principal.id,
        amount=body.amount,
        reason=body.reason,
        ip_address=request.remote_addr,
    )
    return success(payment.to_dict(), 'Payment refunded')
