"""Checkouts blueprint - create, inspect, discard and manually settle checkouts."""
import logging
from flask import Blueprint, g, request

from marketplace.database import get_session
from marketplace.decorators.permissions import require_role
from marketplace.schemas import parse_body
from marketplace.schemas.checkout import CreateCheckoutRequest, MarkPaidRequest
from marketplace.services import checkout_service, fulfillment_service
from marketplace.services.owner import resolve_owner
from marketplace.utils.responses import success

logger = logging.getLogger(__name__)

checkouts_bp = Blueprint('checkouts', __name__, url_prefix='/api/v1/checkouts')

BUYER_ROLES = ('STUDENT', 'COMPANY')


@checkouts_bp.route('', methods=['POST'])
@require_role(*BUYER_ROLES)
def create_checkout():
    """
    Snapshot the cart into a PENDING checkout.

    Body (optional): {"all": true} or {"courseIds": [1, 2]}
    """
    body = parse_body(CreateCheckoutRequest)
    db_session = get_session()
    owner = resolve_owner(db_session, g.principal)
    checkout = checkout_service.create_checkout(db_session, owner, course_ids=body.course_ids)
    return success(checkout.to_dict(), 'Checkout created', 201)


@checkouts_bp.route('', methods=['GET'])
@require_role(*BUYER_ROLES)
def list_checkouts():
    db_session = get_session()
    owner = resolve_owner(db_session, g.principal)
    status = request.args.get('status', '').strip().upper() or None
    checkouts = checkout_service.list_checkouts(db_session, owner, status=status)
    return success([c.to_dict() for c in checkouts], 'Checkouts retrieved')


@checkouts_bp.route('/<int:checkout_id>', methods=['GET'])
@require_role(*BUYER_ROLES)
def get_checkout(checkout_id):
    db_session = get_session()
    owner = resolve_owner(db_session, g.principal)
    checkout = checkout_service.get_checkout(db_session, owner, checkout_id)
    return success(checkout.to_dict(), 'Checkout retrieved')


@checkouts_bp.route('/<int:checkout_id>', methods=['DELETE'])
@require_role(*BUYER_ROLES)
def delete_checkout(checkout_id):
    db_session = get_session()
    owner = resolve_owner(db_session, g.principal)
    result = checkout_service.delete_checkout(db_session, owner, checkout_id)
    return success(result, 'Checkout deleted')


@checkouts_bp.route('/mark-paid', methods=['PATCH'])
@require_role(*BUYER_ROLES)
def mark_paid():
    """Settle a checkout paid outside the card flow (cash, bank transfer)."""
    body = parse_body(MarkPaidRequest)
    db_session = get_session()
    owner = resolve_owner(db_session, g.principal)
    checkout_service.get_checkout(db_session, owner, body.checkout_id)

    fulfillment_service.mark_paid(db_session, owner.owner_id, body.checkout_id, body.payment_id)
    logger.info(f"[CHECKOUT] Checkout {body.checkout_id} settled manually by user {g.principal.id}")

    checkout = checkout_service.load_checkout(db_session, body.checkout_id)
    return success(checkout.to_dict(), 'Checkout marked as paid')
