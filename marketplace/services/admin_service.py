"""
Admin service - account status toggling, user and seller listings, audit trail and platform KPIs.
"""
import logging
from decimal import Decimal
from sqlalchemy import func

from marketplace.models import (
    AdminAuditLog, AppUser, AuditAction, Checkout, CheckoutItem, CheckoutStatus, Course,
    EmployeeCredential, OrderStatus, Payment, PaymentStatus, UserRole, UserStatus,
)
from marketplace.exceptions import ForbiddenError, InvalidArgumentError, NotFoundError
from marketplace.utils.money import quantize_money

logger = logging.getLogger(__name__)


def update_user_status(session, admin_user_id: int, target_user_id: int, status: str,
                       reason: str = None, ip_address: str = None) -> AppUser:
    """
    Block or unblock an account and record the change in the audit log.

    Both writes share one commit.

    Raises:
        NotFoundError: target user missing
        InvalidArgumentError: unknown status, or admin targeting itself
        ForbiddenError: target is a super admin
    """
    if status not in (UserStatus.ACTIVE.value, UserStatus.BLOCKED.value):
        raise InvalidArgumentError('Status must be ACTIVE or BLOCKED')
    if admin_user_id == target_user_id:
        raise InvalidArgumentError('You cannot change your own status')

    user = session.get(AppUser, target_user_id)
    if not user:
        raise NotFoundError('User not found')
    if user.role == UserRole.SUPER_ADMIN.value:
        raise ForbiddenError('Super admin accounts cannot be blocked')

    previous = user.status
    user.status = status
    action = AuditAction.BLOCK_USER if status == UserStatus.BLOCKED.value else AuditAction.UNBLOCK_USER
    session.add(AdminAuditLog.log_action(
        admin_user_id=admin_user_id,
        action=action,
        target_user_id=user.id,
        details={'previous_status': previous, 'new_status': status, 'reason': reason},
        ip_address=ip_address,
    ))

    try:
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"[ADMIN] User {user.id} {previous} -> {status} by admin {admin_user_id}")
    return user


def list_audit_logs(session, target_user_id: int = None, limit: int = 100, offset: int = 0):
    query = session.query(AdminAuditLog)
    if target_user_id is not None:
        query = query.filter(AdminAuditLog.target_user_id == target_user_id)
    return (
        query.order_by(AdminAuditLog.created_at.desc(), AdminAuditLog.id.desc())
        .limit(min(limit, 500))
        .offset(offset)
        .all()
    )


def get_dashboard_summary(session) -> dict:
    """
    Platform KPIs for the admin panel.

    Returns dict with:
    - paid_checkouts / pending_checkouts: checkout counts by status
    - revenue: sum of completed payments net of refunds
    - unsent_credentials: employee credentials still waiting for delivery
    - blocked_users: accounts currently blocked
    """
    paid = session.query(func.count(Checkout.id)).filter(
        Checkout.status == CheckoutStatus.PAID.value
    ).scalar() or 0
    pending = session.query(func.count(Checkout.id)).filter(
        Checkout.status == CheckoutStatus.PENDING.value
    ).scalar() or 0
    revenue = session.query(func.sum(Payment.amount - Payment.refunded_amount)).filter(
        Payment.status == PaymentStatus.COMPLETED.value
    ).scalar() or Decimal('0')
    unsent = session.query(func.count(EmployeeCredential.id)).filter(
        EmployeeCredential.is_sent == False  # noqa: E712
    ).scalar() or 0
    blocked = session.query(func.count(AppUser.id)).filter(
        AppUser.status == UserStatus.BLOCKED.value
    ).scalar() or 0

    return {
        'paid_checkouts': paid,
        'pending_checkouts': pending,
        'revenue': str(quantize_money(revenue)),
        'unsent_credentials': unsent,
        'blocked_users': blocked,
    }


def list_users(session, role: str = None, status: str = None, search: str = None,
               limit: int = 50, offset: int = 0):
    """
    Page through accounts for the admin panel.

    Returns:
        tuple: (users, total) where total ignores limit/offset
    """
    query = session.query(AppUser)
    if role:
        query = query.filter(AppUser.role == role)
    if status:
        query = query.filter(AppUser.status == status)
    if search:
        pattern = f'%{search}%'
        query = query.filter(AppUser.email.ilike(pattern) | AppUser.full_name.ilike(pattern))

    total = query.count()
    users = (
        query.order_by(AppUser.created_at.desc(), AppUser.id.desc())
        .limit(min(limit, 500))
        .offset(offset)
        .all()
    )
    return users, total


def list_sellers(session, search: str = None, limit: int = 50, offset: int = 0) -> list:
    """
    Sellers with computed statistics.

    For each seller returns:
    - id, email, full_name, status, created_at
    - course_count: courses listed (active or not)
    - seats_sold / total_sales: over paid checkout lines not cancelled
    """
    courses_subq = session.query(
        Course.seller_id,
        func.count(Course.id).label('course_count')
    ).group_by(
        Course.seller_id
    ).subquery()

    sales_subq = session.query(
        Course.seller_id,
        func.coalesce(func.sum(CheckoutItem.quantity), 0).label('seats_sold'),
        func.coalesce(func.sum(CheckoutItem.line_total), 0).label('total_sales')
    ).join(
        CheckoutItem, CheckoutItem.course_id == Course.id
    ).join(
        Checkout, Checkout.id == CheckoutItem.checkout_id
    ).filter(
        Checkout.status == CheckoutStatus.PAID.value,
        CheckoutItem.order_status != OrderStatus.CANCELLED.value
    ).group_by(
        Course.seller_id
    ).subquery()

    query = session.query(
        AppUser,
        func.coalesce(courses_subq.c.course_count, 0).label('course_count'),
        func.coalesce(sales_subq.c.seats_sold, 0).label('seats_sold'),
        func.coalesce(sales_subq.c.total_sales, 0).label('total_sales')
    ).outerjoin(
        courses_subq, courses_subq.c.seller_id == AppUser.id
    ).outerjoin(
        sales_subq, sales_subq.c.seller_id == AppUser.id
    ).filter(
        AppUser.role == UserRole.SELLER.value
    )

    if search:
        pattern = f'%{search}%'
        query = query.filter(AppUser.email.ilike(pattern) | AppUser.full_name.ilike(pattern))

    rows = query.order_by(AppUser.id).limit(min(limit, 500)).offset(offset).all()

    return [
        {
            'id': user.id,
            'email': user.email,
            'full_name': user.full_name,
            'status': user.status,
            'created_at': user.created_at.isoformat() if user.created_at else None,
            'course_count': int(course_count),
            'seats_sold': int(seats_sold),
            'total_sales': str(quantize_money(total_sales)),
        }
        for user, course_count, seats_sold, total_sales in rows
    ]
