"""
Order service - seller view of paid checkouts.

An order is a PAID checkout seen from the seller's side: only the lines for
the seller's own courses, each with its own ``order_status``. Admins can
query across every seller.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy import func, distinct, select

from marketplace.models import AppUser, Checkout, CheckoutItem, CheckoutStatus, Course, OrderStatus
from marketplace.exceptions import InvalidArgumentError, InvalidStateError, NotFoundError
from marketplace.utils.money import quantize_money

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 200

# Lines in these states no longer move
FINAL_STATUSES = (OrderStatus.DELIVERED.value, OrderStatus.CANCELLED.value)


def _seller_lines(session, seller_id=None, status=None, date_from=None, date_to=None):
    """CheckoutItem query over paid checkouts, narrowed to one seller when given."""
    query = (
        session.query(CheckoutItem)
        .join(Checkout, Checkout.id == CheckoutItem.checkout_id)
        .join(Course, Course.id == CheckoutItem.course_id)
        .filter(Checkout.status == CheckoutStatus.PAID.value)
    )
    if seller_id is not None:
        query = query.filter(Course.seller_id == seller_id)
    if status:
        query = query.filter(CheckoutItem.order_status == status)
    if date_from:
        query = query.filter(Checkout.paid_at >= date_from)
    if date_to:
        query = query.filter(Checkout.paid_at < date_to)
    return query


def _customer(checkout: Checkout) -> dict:
    if checkout.company is not None:
        return {
            'customer_type': 'COMPANY',
            'customer_name': checkout.company.company_name,
            'customer_email': checkout.company.company_email,
        }
    user = checkout.user
    return {
        'customer_type': 'USER',
        'customer_name': user.full_name if user else None,
        'customer_email': user.email if user else None,
    }


def _order_dict(checkout: Checkout, lines) -> dict:
    return {
        'order_id': checkout.id,
        'paid_at': checkout.paid_at.isoformat() if checkout.paid_at else None,
        'payment_id': checkout.payment_id,
        **_customer(checkout),
        'items': [line.to_dict() for line in lines],
        'seats': sum(line.quantity for line in lines),
        'seller_total': str(quantize_money(sum((line.line_total for line in lines), Decimal('0')))),
    }


def _validate_status(status):
    if status and status not in {s.value for s in OrderStatus}:
        raise InvalidArgumentError('Unknown order status', payload={'status': status})


def list_orders(session, seller_id=None, status=None, date_from=None, date_to=None,
                limit: int = 50, offset: int = 0) -> dict:
    """
    Paid checkouts containing the seller's courses, newest first.

    Args:
        seller_id: Seller whose lines to return (None = all sellers, admin view)
        status: Only orders with at least one line in this status
        date_from / date_to: Paid-at window, end exclusive
        limit / offset: Page over orders, not lines

    Returns:
        dict: {'orders': [...], 'meta': {'total', 'limit', 'offset'}}
    """
    _validate_status(status)
    limit = max(1, min(limit, MAX_PAGE_SIZE))

    lines = _seller_lines(session, seller_id, status, date_from, date_to)
    ids_query = lines.with_entities(CheckoutItem.checkout_id).distinct().subquery()
    total = session.query(func.count()).select_from(ids_query).scalar() or 0

    page = (
        session.query(Checkout)
        .filter(Checkout.id.in_(select(ids_query.c.checkout_id)))
        .order_by(Checkout.paid_at.desc(), Checkout.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )

    orders = []
    for checkout in page:
        own = [
            line for line in checkout.items
            if (seller_id is None or line.course.seller_id == seller_id)
            and (not status or line.order_status == status)
        ]
        orders.append(_order_dict(checkout, own))

    return {'orders': orders, 'meta': {'total': total, 'limit': limit, 'offset': offset}}


def update_order_status(session, seller_id, checkout_id: int, status: str) -> dict:
    """
    Move the seller's lines of a paid checkout to ``status``.

    Args:
        seller_id: Seller acting (None lets an admin update every line)
        checkout_id: Order (checkout) id
        status: New OrderStatus value

    Raises:
        InvalidArgumentError: unknown status
        NotFoundError: checkout missing or without lines of this seller
        InvalidStateError: checkout not paid, or a line already DELIVERED/CANCELLED
    """
    if not status:
        raise InvalidArgumentError('Order status is required')
    _validate_status(status)

    checkout = session.get(Checkout, checkout_id)
    if not checkout:
        raise NotFoundError('Order not found')
    if not checkout.is_paid:
        raise InvalidStateError('Only paid checkouts can change order status')

    lines = [line for line in checkout.items if seller_id is None or line.course.seller_id == seller_id]
    if not lines:
        raise NotFoundError('Order not found')

    closed = [line.course_id for line in lines if line.order_status in FINAL_STATUSES and line.order_status != status]
    if closed:
        raise InvalidStateError('Order lines are already closed', payload={'course_ids': closed})

    now = datetime.now(timezone.utc)
    for line in lines:
        line.order_status = status
        line.status_updated_at = now

    try:
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"[ORDER] Checkout {checkout_id} lines of seller {seller_id} -> {status}")
    return _order_dict(checkout, lines)


def get_sales_report(session, seller_id=None, date_from=None, date_to=None,
                     limit: int = 50, offset: int = 0) -> dict:
    """
    One row per sold line (cancelled lines excluded), newest first.

    Returns:
        dict: {'sales': [...], 'meta': {'total', 'limit', 'offset'}}
    """
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    query = (
        _seller_lines(session, seller_id, date_from=date_from, date_to=date_to)
        .filter(CheckoutItem.order_status != OrderStatus.CANCELLED.value)
    )
    total = query.count()
    rows = (
        query.order_by(Checkout.paid_at.desc(), CheckoutItem.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )

    sales = []
    for line in rows:
        checkout = line.checkout
        payment = checkout.payment
        sales.append({
            'order_id': checkout.id,
            'course_id': line.course_id,
            'course_title': line.course.title,
            'quantity': line.quantity,
            'line_total': str(line.line_total),
            'order_status': line.order_status,
            'paid_at': checkout.paid_at.isoformat() if checkout.paid_at else None,
            # Checkouts settled by mark-paid have no provider payment
            'payment_method': (payment.payment_method or 'card') if payment else 'offline',
            **_customer(checkout),
        })

    return {'sales': sales, 'meta': {'total': total, 'limit': limit, 'offset': offset}}


def get_seller_summary(session, seller_id: int) -> dict:
    """
    Seller dashboard KPIs.

    Returns dict with:
    - seller_name
    - total_orders: paid checkouts containing the seller's courses
    - open_orders: of those, orders with a line still PROCESSING or SHIPPED
    - seats_sold: sum of quantities over non-cancelled lines
    - total_sales: sum of non-cancelled line totals
    """
    seller = session.get(AppUser, seller_id)
    if not seller:
        raise NotFoundError('Seller not found')

    lines = _seller_lines(session, seller_id)
    live = lines.filter(CheckoutItem.order_status != OrderStatus.CANCELLED.value)

    total_orders = lines.with_entities(func.count(distinct(CheckoutItem.checkout_id))).scalar() or 0
    open_orders = (
        lines.filter(CheckoutItem.order_status.in_([OrderStatus.PROCESSING.value, OrderStatus.SHIPPED.value]))
        .with_entities(func.count(distinct(CheckoutItem.checkout_id)))
        .scalar() or 0
    )
    seats = live.with_entities(func.sum(CheckoutItem.quantity)).scalar() or 0
    sales = live.with_entities(func.sum(CheckoutItem.line_total)).scalar() or Decimal('0')

    return {
        'seller_name': seller.full_name or seller.email,
        'total_orders': total_orders,
        'open_orders': open_orders,
        'seats_sold': int(seats),
        'total_sales': str(quantize_money(sales)),
    }
