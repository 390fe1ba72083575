"""
Orders blueprint - seller view of paid checkouts and sales reporting.

Sellers only ever see lines of their own courses. Admins see every seller,
or one seller with ?seller_id=.
"""
import logging
from datetime import datetime
from flask import Blueprint, g, request

from marketplace.database import get_session
from marketplace.decorators.permissions import require_role
from marketplace.exceptions import InvalidArgumentError
from marketplace.schemas import parse_body
from marketplace.schemas.order import OrderStatusRequest
from marketplace.services import order_service
from marketplace.utils.responses import success

logger = logging.getLogger(__name__)

orders_bp = Blueprint('orders', __name__, url_prefix='/api/v1/orders')

ORDER_ROLES = ('SELLER', 'ADMIN', 'SUPER_ADMIN')


def _scope_seller_id():
    """Sellers are pinned to themselves; admins may narrow with ?seller_id=."""
    if g.principal.role == 'SELLER':
        return g.principal.id
    return request.args.get('seller_id', type=int)


def _date_arg(name):
    raw = request.args.get(name, '').strip()
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        raise InvalidArgumentError(f'Invalid date for {name}', payload={name: raw})


@orders_bp.route('', methods=['GET'])
@require_role(*ORDER_ROLES)
def list_orders():
    """Filters: ?status=, ?from=, ?to= (ISO dates), ?limit=, ?offset="""
    db_session = get_session()
    result = order_service.list_orders(
        db_session,
        seller_id=_scope_seller_id(),
        status=request.args.get('status', '').strip().upper() or None,
        date_from=_date_arg('from'),
        date_to=_date_arg('to'),
        limit=request.args.get('limit', 50, type=int),
        offset=request.args.get('offset', 0, type=int),
    )
    return success(result, 'Orders retrieved')


@orders_bp.route('/summary', methods=['GET'])
@require_role(*ORDER_ROLES)
def summary():
    db_session = get_session()
    seller_id = _scope_seller_id()
    if seller_id is None:
        raise InvalidArgumentError('seller_id is required')
    return success(order_service.get_seller_summary(db_session, seller_id), 'Summary retrieved')


@orders_bp.route('/sales-report', methods=['GET'])
@require_role(*ORDER_ROLES)
def sales_report():
    db_session = get_session()
    result = order_service.get_sales_report(
        db_session,
        seller_id=_scope_seller_id(),
        date_from=_date_arg('from'),
        date_to=_date_arg('to'),
        limit=request.args.get('limit', 50, type=int),
        offset=request.args.get('offset', 0, type=int),
    )
    return success(result, 'Sales report retrieved')


@orders_bp.route('/<int:checkout_id>/status', methods=['PATCH'])
@require_role(*ORDER_ROLES)
def update_status(checkout_id):
    """Body: {"status": "SHIPPED"}"""
    body = parse_body(OrderStatusRequest)
    db_session = get_session()
    order = order_service.update_order_status(db_session, _scope_seller_id(), checkout_id, body.status)
    return success(order, 'Order status updated')
